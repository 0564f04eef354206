from datetime import datetime
from functools import wraps

from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from lantern.errors import InvalidData, LanternError, NotAllowed
from lantern.services.lantern import calibration, credentials, events, hacking, rounds, stations, teams


lantern = Blueprint('lantern', __name__)


@lantern.errorhandler(LanternError)
def handle_lantern_error(exc: LanternError):
    return jsonify(exc.to_dict()), exc.status_code


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if (current_user.access_level or 0) < current_app.config['ADMIN_ACCESS_LEVEL']:
            raise NotAllowed('Admin access required')
        return view(*args, **kwargs)
    return wrapped


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _int(value, field: str, required: bool = True):
    if value is None and not required:
        return None
    if isinstance(value, bool):
        raise InvalidData(f'{field} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidData(f'{field} must be an integer')


def _str(value, field: str, required: bool = True):
    if value is None and not required:
        return None
    if not isinstance(value, str) or not value:
        raise InvalidData(f'{field} must be a non-empty string')
    return value


def _datetime(value, field: str):
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise InvalidData(f'{field} must be an ISO 8601 timestamp')
    if parsed.tzinfo is not None:
        # Stored timestamps are naive UTC
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


# ---- Lantern info ----

@lantern.route('/info', methods=['GET'])
@login_required
def get_info():
    return jsonify(rounds.lantern_info())


# ---- Stations ----

@lantern.route('/stations', methods=['GET'])
@login_required
def get_stations():
    active, inactive = stations.split_stations()
    return jsonify({
        'active_stations': [s.to_dict() for s in active],
        'inactive_stations': [s.to_dict() for s in inactive],
    })


@lantern.route('/stations/<int:station_id>', methods=['GET'])
@login_required
def get_station(station_id):
    return jsonify(stations.get_station(station_id).to_dict())


@lantern.route('/stations', methods=['POST'])
@admin_required
def create_station():
    data = _payload()
    station = stations.create_station(
        _int(data.get('station_id'), 'station_id'),
        station_name=_str(data.get('station_name'), 'station_name', required=False),
        is_active=bool(data.get('is_active')),
        calibration_reward=data.get('calibration_reward'),
    )
    events.station_changed(station, events.CREATE)
    return jsonify(station.to_dict()), 201


@lantern.route('/stations/<int:station_id>', methods=['PATCH'])
@admin_required
def update_station(station_id):
    data = _payload()
    try:
        ownership = stations.ownership_from_payload(data)
    except (TypeError, ValueError):
        raise InvalidData('owner must be a team id')
    station = stations.update_station(
        station_id,
        ownership=ownership,
        is_active=data.get('is_active'),
        station_name=_str(data.get('station_name'), 'station_name', required=False),
        calibration_reward=data.get('calibration_reward'),
    )
    events.station_changed(station)
    return jsonify(station.to_dict())


@lantern.route('/stations/reset-signal', methods=['POST'])
@admin_required
def reset_signal():
    data = _payload()
    value = _int(data.get('signal_value'), 'signal_value', required=False)
    if value is None:
        value = current_app.config['SIGNAL_DEFAULT_VALUE']
    count = stations.bulk_reset_signal(value)
    events.stations_changed(stations.list_stations())
    return jsonify({'updated': count, 'signal_value': value})


@lantern.route('/stations/<int:station_id>', methods=['DELETE'])
@admin_required
def delete_station(station_id):
    snapshot = stations.get_station(station_id).to_dict()
    stations.remove_station(station_id)
    calibration.remove_station_missions(station_id)
    events.station_changed(snapshot, events.REMOVE)
    return jsonify({'message': f'Station {station_id} removed'})


# ---- Teams ----

@lantern.route('/teams', methods=['GET'])
@login_required
def get_teams():
    return jsonify([t.to_dict() for t in teams.list_teams()])


@lantern.route('/teams', methods=['POST'])
@admin_required
def create_team():
    data = _payload()
    team_name = _str(data.get('team_name'), 'team_name')
    short_name = _str(data.get('short_name'), 'short_name')
    team = teams.create_team(
        _int(data.get('team_id'), 'team_id'),
        team_name,
        short_name,
        is_active=bool(data.get('is_active')),
    )
    events.team_changed(team, events.CREATE)
    return jsonify(team.to_dict()), 201


@lantern.route('/teams/<int:team_id>', methods=['PATCH'])
@admin_required
def update_team(team_id):
    data = _payload()
    team = teams.update_team(
        team_id,
        is_active=data.get('is_active'),
        team_name=_str(data.get('team_name'), 'team_name', required=False),
        short_name=_str(data.get('short_name'), 'short_name', required=False),
        points=data.get('points'),
        reset_points=bool(data.get('reset_points')),
    )
    events.team_changed(team)
    return jsonify(team.to_dict())


@lantern.route('/teams/<int:team_id>', methods=['DELETE'])
@admin_required
def delete_team(team_id):
    snapshot = teams.get_team(team_id).to_dict()
    teams.remove_team(team_id)
    events.team_changed(snapshot, events.REMOVE)
    return jsonify({'message': f'Team {team_id} removed'})


# ---- Round ----

@lantern.route('/round', methods=['GET'])
@login_required
def get_round():
    lantern_round = rounds.get_round()
    return jsonify({'round': lantern_round.to_dict(), 'time_left': rounds.time_left(lantern_round)})


@lantern.route('/round', methods=['PATCH'])
@admin_required
def update_round():
    data = _payload()
    is_active = data.get('is_active')
    lantern_round, previously_active = rounds.update_round(
        start_time=_datetime(data.get('start_time'), 'start_time'),
        end_time=_datetime(data.get('end_time'), 'end_time'),
        is_active=is_active if isinstance(is_active, bool) else None,
    )
    left = rounds.time_left(lantern_round)
    events.round_changed(lantern_round, left)
    if is_active is False:
        events.stations_changed(stations.list_stations())
    return jsonify({
        'round': lantern_round.to_dict(),
        'time_left': left,
        'was_active': previously_active,
    })


# ---- Credentials ----

@lantern.route('/game-users', methods=['GET'])
@admin_required
def get_game_users():
    station_id = request.args.get('station_id')
    users = credentials.list_game_users(_int(station_id, 'station_id', required=False))
    return jsonify([u.to_dict() for u in users])


@lantern.route('/game-users', methods=['POST'])
@admin_required
def seed_game_users():
    data = request.get_json(silent=True)
    candidates = data.get('game_users') if isinstance(data, dict) else data
    if not isinstance(candidates, list):
        raise InvalidData('Expected a list of game users')
    created = credentials.seed_game_users(candidates)
    return jsonify({'created': [u.to_dict() for u in created]}), 201


@lantern.route('/fake-passwords', methods=['GET'])
@admin_required
def get_fake_passwords():
    return jsonify({'passwords': credentials.list_fake_passwords()})


@lantern.route('/fake-passwords', methods=['POST'])
@admin_required
def add_fake_passwords():
    passwords = _payload().get('passwords')
    if not isinstance(passwords, list) or not passwords:
        raise InvalidData('passwords must be a non-empty list')
    return jsonify({'passwords': credentials.add_fake_passwords(passwords)}), 201


# ---- Hacking ----

@lantern.route('/hack', methods=['POST'])
@login_required
def start_hack():
    station_id = _int(_payload().get('station_id'), 'station_id')
    hack = hacking.start_hack(current_user.username, station_id)
    return jsonify(hacking.hack_view(hack)), 201


@lantern.route('/hack', methods=['GET'])
@login_required
def get_hack():
    return jsonify(hacking.hack_view(hacking.get_hack(current_user.username)))


@lantern.route('/hack/guess', methods=['POST'])
@login_required
def guess_hack():
    data = _payload()
    password = _str(data.get('password'), 'password')
    result = hacking.guess_and_settle(
        current_user.username,
        password,
        user_name=_str(data.get('user_name'), 'user_name', required=False),
        team_id=current_user.team_id,
        boosting_signal=data.get('boosting_signal', True) is not False,
        coordinates=data.get('coordinates'),
    )
    if result.station is not None:
        events.station_changed(result.station)
        if current_user.team_id is not None:
            events.team_changed(teams.get_team(current_user.team_id))
    return jsonify({
        'success': result.success,
        'tries_left': result.tries_left,
        'matches': result.matches,
        'done': result.hack.done,
        'station': result.station.to_dict() if result.station is not None else None,
    })


# ---- Calibration ----

@lantern.route('/calibration', methods=['GET'])
@login_required
def get_active_mission():
    mission = calibration.get_active_mission(current_user.username)
    return jsonify(mission.to_dict())


@lantern.route('/calibration', methods=['POST'])
@login_required
def start_mission():
    station_id = _int(_payload().get('station_id'), 'station_id', required=False)
    mission = calibration.start_mission(current_user.username, station_id)
    events.mission_changed(mission, events.CREATE)
    return jsonify(mission.to_dict()), 201


@lantern.route('/calibration/complete', methods=['POST'])
@login_required
def complete_mission():
    code = _payload().get('code')
    if code is None:
        raise InvalidData('code is required')
    mission, amount = calibration.complete_mission(current_user.username, code)
    events.mission_changed(mission)
    return jsonify({'mission': mission.to_dict(), 'reward': amount})


@lantern.route('/calibration/cancel', methods=['POST'])
@login_required
def cancel_mission():
    mission = calibration.cancel_mission(current_user.username)
    events.mission_changed(mission)
    return jsonify(mission.to_dict())


@lantern.route('/calibration/history', methods=['GET'])
@login_required
def get_mission_history():
    return jsonify([m.to_dict() for m in calibration.list_inactive_missions(current_user.username)])


@lantern.route('/calibration/stations', methods=['GET'])
@login_required
def get_valid_stations():
    return jsonify([s.to_dict() for s in calibration.valid_stations(current_user.username)])


@lantern.route('/calibration/all', methods=['GET'])
@admin_required
def get_all_missions():
    include_inactive = request.args.get('include_inactive', '').lower() in ('1', 'true', 'yes')
    return jsonify([m.to_dict() for m in calibration.list_missions(include_inactive)])


@lantern.route('/calibration/stations/<int:station_id>', methods=['DELETE'])
@admin_required
def delete_station_missions(station_id):
    return jsonify({'removed': calibration.remove_station_missions(station_id)})
