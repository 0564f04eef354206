"""Round clock: the global gate for whether the capture game is live."""

from datetime import datetime
from typing import List, Optional, Tuple

from flask import current_app

from lantern import storage
from lantern.errors import Conflict
from lantern.models import FakePasswordContainer, LanternRound, SINGLETON_ID, utcnow
from .stations import bulk_reset_signal, split_stations
from .teams import list_teams


def get_round() -> LanternRound:
    return storage.get_object(LanternRound, 'Lantern round', id=SINGLETON_ID)


def is_round_active() -> bool:
    return bool(get_round().is_active)


def update_round(start_time: Optional[datetime] = None, end_time: Optional[datetime] = None,
                 is_active: Optional[bool] = None) -> Tuple[LanternRound, bool]:
    """Apply any subset of the round fields.

    Returns the updated round and whether it was active before the call.
    Turning the round off puts every station back on the default signal.
    """
    previously_active = get_round().is_active
    values = {}
    if start_time:
        values['start_time'] = start_time
    if end_time:
        values['end_time'] = end_time
    if isinstance(is_active, bool):
        values['is_active'] = is_active

    lantern_round = get_round() if not values else storage.update_object(
        LanternRound, 'Lantern round', values, guard={'id': SINGLETON_ID},
    )
    current_app.logger.info(
        f"[round-update] active={lantern_round.is_active} was_active={previously_active} "
        f"start={lantern_round.start_time} end={lantern_round.end_time}"
    )

    if is_active is False:
        bulk_reset_signal(current_app.config['SIGNAL_DEFAULT_VALUE'])

    return lantern_round, previously_active


def time_left(lantern_round: LanternRound, now: Optional[datetime] = None) -> int:
    """Seconds until the round ends (when active) or starts (when not)."""
    now = now or utcnow()
    target = lantern_round.end_time if lantern_round.is_active else lantern_round.start_time
    if not target:
        return 0
    return max(0, int((target - now).total_seconds()))


def _ensure_singleton(model, name: str) -> bool:
    if storage.does_exist(model, id=SINGLETON_ID):
        return False
    try:
        storage.create_object(model(id=SINGLETON_ID), name)
    except Conflict:
        # Another instance won the race; the row exists either way
        return False
    return True


def bootstrap() -> List[str]:
    """Create the round and fake password container if they are missing.

    Safe to call on every process start. Returns the names of what was created.
    """
    created = []
    if _ensure_singleton(LanternRound, 'Lantern round'):
        created.append('round')
    if _ensure_singleton(FakePasswordContainer, 'Fake password container'):
        created.append('fake_passwords')
    if created:
        current_app.logger.info(f"[bootstrap] created={created}")
    return created


def lantern_info(now: Optional[datetime] = None) -> dict:
    """Round state, and while it is live the stations and teams."""
    lantern_round = get_round()
    info = {'round': lantern_round.to_dict(), 'time_left': time_left(lantern_round, now)}
    if not lantern_round.is_active:
        return info
    active, inactive = split_stations()
    info['active_stations'] = [s.to_dict() for s in active]
    info['inactive_stations'] = [s.to_dict() for s in inactive]
    info['teams'] = [t.to_dict() for t in list_teams()]
    return info
