import pytest

from lantern.errors import Conflict, NotFound
from lantern.services.lantern import stations
from lantern.services.lantern.stations import ClearOwner, SetOwner, SetUnderAttack, ownership_from_payload


def test_create_station_starts_on_default_signal(flask_app):
    station = stations.create_station(7, station_name='Harbor', calibration_reward=12)
    assert station.signal_value == flask_app.config['SIGNAL_DEFAULT_VALUE']
    assert station.calibration_reward == 12
    assert station.owner is None
    assert station.is_active is False


def test_create_station_out_of_range_reward_falls_back_to_default(flask_app):
    station = stations.create_station(8, calibration_reward=500)
    assert station.calibration_reward == flask_app.config['CALIBRATION_REWARD_AMOUNT']


def test_create_duplicate_station_conflicts(station):
    with pytest.raises(Conflict):
        stations.create_station(station.station_id)


def test_get_missing_station(flask_app):
    with pytest.raises(NotFound) as info:
        stations.get_station(404)
    assert info.value.message == 'Station 404 does not exist'


def test_split_stations_sorted(flask_app):
    stations.create_station(3, is_active=True)
    stations.create_station(1)
    stations.create_station(2, is_active=True)
    active, inactive = stations.split_stations()
    assert [s.station_id for s in active] == [2, 3]
    assert [s.station_id for s in inactive] == [1]
    assert [s.station_id for s in stations.list_active_stations()] == [2, 3]


def test_ownership_payload_precedence():
    assert ownership_from_payload({'reset_owner': True, 'owner': 3}) == ClearOwner()
    assert ownership_from_payload({'owner': -1}) == ClearOwner()
    assert ownership_from_payload({'owner': 3, 'is_under_attack': True}) == SetOwner(team_id=3)
    assert ownership_from_payload({'is_under_attack': True}) == SetUnderAttack(value=True)
    assert ownership_from_payload({'station_name': 'x'}) is None


def test_set_owner_lifts_attack_flag(station):
    stations.update_station(station.station_id, ownership=SetUnderAttack(value=True))
    updated = stations.update_station(station.station_id, ownership=SetOwner(team_id=4))
    assert updated.owner == 4
    assert updated.is_under_attack is False


def test_clear_owner(station):
    stations.update_station(station.station_id, ownership=SetOwner(team_id=4))
    stations.update_station(station.station_id, ownership=SetUnderAttack(value=True))
    cleared = stations.update_station(station.station_id, ownership=ClearOwner())
    assert cleared.owner is None
    assert cleared.is_under_attack is False


def test_under_attack_keeps_owner(station):
    stations.update_station(station.station_id, ownership=SetOwner(team_id=4))
    updated = stations.update_station(station.station_id, ownership=SetUnderAttack(value=True))
    assert updated.owner == 4
    assert updated.is_under_attack is True


def test_update_fields_and_ignore_invalid_reward(station):
    updated = stations.update_station(
        station.station_id, is_active=True, station_name='South tower', calibration_reward=-3,
    )
    assert updated.is_active is True
    assert updated.station_name == 'South tower'
    assert updated.calibration_reward == station.calibration_reward


def test_update_without_changes_returns_station(station):
    assert stations.update_station(station.station_id).station_id == station.station_id


def test_update_missing_station(flask_app):
    with pytest.raises(NotFound):
        stations.update_station(99, is_active=True)


def test_bulk_reset_signal(flask_app):
    stations.create_station(1)
    stations.create_station(2)
    stations.set_signal_value(1, 130)
    assert stations.bulk_reset_signal(75) == 2
    assert {s.signal_value for s in stations.list_stations()} == {75}


def test_remove_station(station):
    stations.remove_station(station.station_id)
    assert stations.list_stations() == []
