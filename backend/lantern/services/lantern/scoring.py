import math
from typing import List, Optional

from flask import current_app

from lantern.models import LanternStation
from .rounds import is_round_active
from .stations import SetOwner, get_station, list_stations, set_signal_value, update_station
from .teams import increment_points


def capture_station(station_id: int, team_id: int) -> LanternStation:
    return update_station(station_id, ownership=SetOwner(team_id=team_id))


def credit_team(team_id: int, delta: int):
    return increment_points(team_id, delta)


def next_signal_value(signal_value: int, boosting: bool) -> int:
    """Apply one hack's worth of signal change.

    The change shrinks the further the signal already is from the default,
    except when it pushes the signal back toward the default, which always
    moves it by the configured maximum. The result is clamped to the
    threshold band around the default.
    """
    cfg = current_app.config
    default = cfg['SIGNAL_DEFAULT_VALUE']
    threshold = cfg['SIGNAL_THRESHOLD']

    difference = abs(signal_value - default)
    change = (threshold - difference) * cfg['SIGNAL_CHANGE_PERCENTAGE']
    if boosting and signal_value < default:
        change = cfg['SIGNAL_MAX_CHANGE']
    elif not boosting and signal_value > default:
        change = cfg['SIGNAL_MAX_CHANGE']

    new_value = signal_value + change if boosting else signal_value - abs(change)
    return min(max(math.ceil(new_value), default - threshold), default + threshold)


def adjust_signal(station_id: int, boosting: bool) -> LanternStation:
    station = get_station(station_id)
    new_value = next_signal_value(station.signal_value, boosting)
    current_app.logger.info(
        f"[signal-adjust] station={station_id} boosting={boosting} {station.signal_value} -> {new_value}"
    )
    return set_signal_value(station_id, new_value)


def on_capture(station_id: int, team_id: Optional[int], boosting: bool = True) -> LanternStation:
    """Side effects of a successful hack: signal change, ownership, team points."""
    station = adjust_signal(station_id, boosting)
    if team_id is None:
        current_app.logger.info(f"[capture-skip] station={station_id} hacker has no team")
        return station
    station = capture_station(station_id, team_id)
    credit_team(team_id, current_app.config['CAPTURE_POINTS'])
    current_app.logger.info(f"[capture] station={station_id} team={team_id}")
    return station


def drift_signals() -> List[LanternStation]:
    """Step every station's signal one unit toward the default while the round is live.

    Returns the stations whose signal changed.
    """
    if not is_round_active():
        return []
    default = current_app.config['SIGNAL_DEFAULT_VALUE']
    changed = []
    for station in list_stations():
        if station.signal_value == default:
            continue
        step = -1 if station.signal_value > default else 1
        changed.append(set_signal_value(station.station_id, station.signal_value + step))
    return changed
