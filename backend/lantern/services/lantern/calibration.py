"""Calibration mission tracker.

Single-player missions that pay out a station's calibration reward. They
only run while the lantern round is offline. An owner has at most one
unresolved mission; a partial unique index on ``owner WHERE NOT completed``
backs the existence check done before each insert.
"""

import random
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from flask import current_app

from lantern import storage
from lantern.errors import Conflict, InvalidData, InvalidState, LanternError, NotFound, TooFrequent
from lantern.models import CalibrationMission, LanternStation, utcnow
from .ledger import credit_wallet
from .rounds import is_round_active
from .stations import get_station, list_stations

CODE_MIN = 10000000
CODE_MAX = 99999999
# Finished missions whose stations are off limits for the next one
RECENT_STATION_MEMORY = 2


def _mission_name(owner: str) -> str:
    return f'Calibration mission for {owner}'


def get_active_mission(owner: str, silent_on_does_not_exist: bool = False) -> Optional[CalibrationMission]:
    mission = storage.find_object(CalibrationMission, owner=owner, completed=False)
    if mission is None and not silent_on_does_not_exist:
        raise NotFound(_mission_name(owner))
    return mission


def list_inactive_missions(owner: str) -> List[CalibrationMission]:
    return storage.get_objects(
        CalibrationMission,
        order_by=CalibrationMission.time_completed.asc(),
        owner=owner,
        completed=True,
    )


def list_missions(include_inactive: bool = False) -> List[CalibrationMission]:
    filters = {} if include_inactive else {'completed': False}
    return storage.get_objects(CalibrationMission, order_by=CalibrationMission.id.asc(), **filters)


def _check_cooldown(inactive: List[CalibrationMission], now: datetime) -> None:
    if not inactive:
        return
    available_at = inactive[-1].time_created + timedelta(minutes=current_app.config['CALIBRATION_TIMEOUT_MIN'])
    if now < available_at:
        raise TooFrequent(
            'Calibration mission requested too soon',
            extra={'time_left': int((available_at - now).total_seconds())},
        )


def _recent_station_ids(inactive: List[CalibrationMission]) -> List[int]:
    return [mission.station_id for mission in inactive[-RECENT_STATION_MEMORY:]]


def valid_stations(owner: str, now: Optional[datetime] = None) -> List[LanternStation]:
    """Stations the owner may calibrate next."""
    inactive = list_inactive_missions(owner)
    _check_cooldown(inactive, now or utcnow())
    recent = set(_recent_station_ids(inactive))
    return [station for station in list_stations() if station.station_id not in recent]


def start_mission(owner: str, station_id: Optional[int] = None, now: Optional[datetime] = None,
                  rng: Optional[random.Random] = None) -> CalibrationMission:
    rng = rng or random.Random()
    now = now or utcnow()
    if is_round_active():
        raise InvalidState('Calibration is unavailable while the lantern round is active')
    # Fast path only; the partial unique index decides concurrent starts
    if get_active_mission(owner, silent_on_does_not_exist=True):
        raise Conflict(_mission_name(owner))

    inactive = list_inactive_missions(owner)
    _check_cooldown(inactive, now)
    recent = _recent_station_ids(inactive)
    if station_id is not None and station_id in recent:
        raise InvalidData('Pick a station other than your last calibrated ones', extra={'station_id': station_id})

    if station_id is None:
        candidates = [s.station_id for s in list_stations() if s.station_id not in recent]
        if not candidates:
            raise NotFound('Stations available for calibration')
        station_id = rng.choice(candidates)
    else:
        get_station(station_id)

    mission = CalibrationMission(
        owner=owner,
        station_id=station_id,
        code=rng.randint(CODE_MIN, CODE_MAX),
        time_created=now,
    )
    storage.create_object(mission, _mission_name(owner))
    current_app.logger.info(f"[mission-start] owner={owner} station={station_id}")
    return mission


def resolve_mission(owner: str, cancelled: bool = False) -> CalibrationMission:
    """Mark the active mission completed (and optionally cancelled) exactly once."""
    values = {'completed': True, 'time_completed': utcnow()}
    if cancelled:
        values['cancelled'] = True
    active = get_active_mission(owner)
    mission = storage.update_object(
        CalibrationMission, _mission_name(owner), values,
        guard={'owner': owner, 'completed': False},
        lookup={'id': active.id},
    )
    current_app.logger.info(f"[mission-resolve] owner={owner} station={mission.station_id} cancelled={cancelled}")
    return mission


def cancel_mission(owner: str) -> CalibrationMission:
    return resolve_mission(owner, cancelled=True)


def complete_mission(owner: str, code: int, ledger: Optional[Callable] = None):
    """Check the code, resolve the mission and pay the station's reward.

    Returns ``(mission, amount)``.
    """
    active = get_active_mission(owner)
    try:
        submitted = int(code)
    except (TypeError, ValueError):
        submitted = None
    if submitted != active.code:
        raise InvalidData('Incorrect calibration code')

    try:
        amount = get_station(active.station_id).calibration_reward
    except NotFound:
        amount = current_app.config['CALIBRATION_REWARD_AMOUNT']
        current_app.logger.warning(
            f"[mission-reward-default] owner={owner} station={active.station_id} station missing"
        )

    mission = resolve_mission(owner)
    try:
        (ledger or credit_wallet)(owner, amount, f'CALIBRATION OF STATION {mission.station_id}')
    except LanternError:
        # The mission stays completed; the unpaid reward must be settled by hand
        current_app.logger.exception(
            f"[mission-reward-unpaid] owner={owner} mission={mission.id} station={mission.station_id} amount={amount}"
        )
        raise
    return mission, amount


def remove_mission(owner: str) -> int:
    """Delete the owner's unresolved mission. Finished missions are kept."""
    return storage.remove_objects(CalibrationMission, owner=owner, completed=False)


def remove_station_missions(station_id: int) -> int:
    count = storage.remove_objects(CalibrationMission, station_id=station_id, completed=False)
    current_app.logger.info(f"[mission-remove] station={station_id} removed={count}")
    return count
