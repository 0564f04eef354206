import time

from lantern import socketio
from lantern.errors import LanternError
from . import events
from .scoring import drift_signals


_drift_started = False


def run_drift_tick(app) -> int:
    """Move station signals one step toward default and broadcast them.

    Returns the number of stations that changed.
    """
    with app.app_context():
        try:
            changed = drift_signals()
        except LanternError as exc:
            app.logger.warning(f"[drift-skip] {exc.message}")
            return 0
        if changed:
            events.stations_changed(changed)
            app.logger.info(f"[drift] stations={len(changed)}")
        return len(changed)


def start_signal_drift(app) -> None:
    """Start the background signal drift loop.

    - No-ops in TESTING mode or when SIGNAL_RESET_INTERVAL_SEC is 0
    - Only one loop per process
    """
    global _drift_started
    interval = int(app.config.get('SIGNAL_RESET_INTERVAL_SEC', 0))
    if app.config.get('TESTING') or interval <= 0 or _drift_started:
        return
    _drift_started = True

    def _worker(delay: int):
        app.logger.info(f"[drift-start] interval={delay}s")
        while True:
            time.sleep(delay)
            run_drift_tick(app)

    socketio.start_background_task(_worker, interval)
