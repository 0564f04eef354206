"""Station registry: capturable stations and their ownership state."""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from flask import current_app

from lantern import storage
from lantern.models import LanternStation


@dataclass(frozen=True)
class ClearOwner:
    """Remove the owning team. Also lifts the under-attack flag."""


@dataclass(frozen=True)
class SetOwner:
    team_id: int


@dataclass(frozen=True)
class SetUnderAttack:
    value: bool


OwnershipChange = Union[ClearOwner, SetOwner, SetUnderAttack]

# Legacy clients clear ownership by sending owner = -1
CLEAR_OWNER_SENTINEL = -1


def ownership_from_payload(payload: dict) -> Optional[OwnershipChange]:
    """Map the loose update payload onto one ownership change.

    Precedence: clearing wins over setting an owner, which wins over the
    under-attack flag.
    """
    owner = payload.get('owner')
    if payload.get('reset_owner') or owner == CLEAR_OWNER_SENTINEL:
        return ClearOwner()
    if owner is not None:
        return SetOwner(team_id=int(owner))
    if isinstance(payload.get('is_under_attack'), bool):
        return SetUnderAttack(value=payload['is_under_attack'])
    return None


def _valid_reward(reward) -> Optional[int]:
    cfg = current_app.config
    if isinstance(reward, bool) or not isinstance(reward, int):
        return None
    if cfg['CALIBRATION_REWARD_MINIMUM'] <= reward <= cfg['CALIBRATION_REWARD_MAX']:
        return reward
    return None


def create_station(station_id: int, station_name: Optional[str] = None, is_active: bool = False,
                   calibration_reward: Optional[int] = None) -> LanternStation:
    cfg = current_app.config
    reward = _valid_reward(calibration_reward)
    station = LanternStation(
        station_id=station_id,
        station_name=station_name,
        is_active=bool(is_active),
        signal_value=cfg['SIGNAL_DEFAULT_VALUE'],
        calibration_reward=reward if reward is not None else cfg['CALIBRATION_REWARD_AMOUNT'],
    )
    storage.create_object(
        station,
        f'Station {station_id}',
        unique_criteria=[LanternStation.station_id == station_id],
    )
    current_app.logger.info(f"[station-create] station={station_id} name={station_name}")
    return station


def get_station(station_id: int) -> LanternStation:
    return storage.get_object(LanternStation, f'Station {station_id}', station_id=station_id)


def list_stations() -> List[LanternStation]:
    return storage.get_objects(LanternStation, order_by=LanternStation.station_id.asc())


def list_active_stations() -> List[LanternStation]:
    return storage.get_objects(LanternStation, order_by=LanternStation.station_id.asc(), is_active=True)


def split_stations() -> Tuple[List[LanternStation], List[LanternStation]]:
    """Return (active, inactive) stations, each sorted by station id."""
    stations = list_stations()
    return [s for s in stations if s.is_active], [s for s in stations if not s.is_active]


def update_station(station_id: int, ownership: Optional[OwnershipChange] = None,
                   is_active: Optional[bool] = None, station_name: Optional[str] = None,
                   calibration_reward: Optional[int] = None) -> LanternStation:
    values = {}
    if isinstance(is_active, bool):
        values['is_active'] = is_active
    if station_name:
        values['station_name'] = station_name
    reward = _valid_reward(calibration_reward)
    if reward is not None:
        values['calibration_reward'] = reward

    if isinstance(ownership, ClearOwner):
        values['owner'] = None
        values['is_under_attack'] = False
    elif isinstance(ownership, SetOwner):
        values['owner'] = ownership.team_id
        values['is_under_attack'] = False
    elif isinstance(ownership, SetUnderAttack):
        values['is_under_attack'] = ownership.value

    if not values:
        return get_station(station_id)

    station = storage.update_object(
        LanternStation, f'Station {station_id}', values, guard={'station_id': station_id},
    )
    current_app.logger.info(f"[station-update] station={station_id} changes={sorted(values)}")
    return station


def set_signal_value(station_id: int, signal_value: int) -> LanternStation:
    return storage.update_object(
        LanternStation, f'Station {station_id}', {'signal_value': signal_value},
        guard={'station_id': station_id},
    )


def bulk_reset_signal(signal_value: int) -> int:
    """Set every station's signal to ``signal_value``. Returns the row count."""
    count = storage.update_objects(LanternStation, {'signal_value': signal_value})
    current_app.logger.info(f"[station-reset] stations={count} signal={signal_value}")
    return count


def remove_station(station_id: int) -> None:
    storage.remove_objects(LanternStation, station_id=station_id)
    current_app.logger.info(f"[station-remove] station={station_id}")
