from flask_socketio import join_room, leave_room, emit
from flask_login import current_user
from lantern import socketio
from lantern.errors import InvalidData, LanternError, NotAllowed
from lantern.services.lantern import calibration, events, hacking, rounds, teams


def _emit_error(exc: LanternError) -> None:
    emit('error', exc.to_dict())


def _require_user():
    if not current_user.is_authenticated:
        raise NotAllowed('Login required')
    return current_user


def handle_connect():
    # Authenticated sockets get their private room right away
    if current_user.is_authenticated:
        join_room(events.user_room(current_user.username))
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_lantern(data=None):
    try:
        user = _require_user()
    except LanternError as exc:
        _emit_error(exc)
        return
    room = events.user_room(user.username)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_lantern(data=None):
    if not current_user.is_authenticated:
        return
    room = events.user_room(current_user.username)
    leave_room(room)
    emit('left', {'room': room})


def handle_get_lantern_info(data=None):
    try:
        emit('lantern_info', rounds.lantern_info())
    except LanternError as exc:
        _emit_error(exc)


def handle_start_hack(data):
    try:
        user = _require_user()
        station_id = (data or {}).get('station_id')
        if not isinstance(station_id, int) or isinstance(station_id, bool):
            raise InvalidData('station_id is required')
        hack = hacking.start_hack(user.username, station_id)
        emit('hack_started', hacking.hack_view(hack))
    except LanternError as exc:
        _emit_error(exc)


def handle_guess_hack(data):
    data = data or {}
    try:
        user = _require_user()
        if not isinstance(data.get('password'), str) or not data['password']:
            raise InvalidData('password must be a non-empty string')
        if data.get('user_name') is not None and not isinstance(data['user_name'], str):
            raise InvalidData('user_name must be a string')
        result = hacking.guess_and_settle(
            user.username,
            data['password'],
            user_name=data.get('user_name'),
            team_id=user.team_id,
            boosting_signal=data.get('boosting_signal', True) is not False,
            coordinates=data.get('coordinates'),
        )
    except LanternError as exc:
        _emit_error(exc)
        return

    emit('hack_guess', {
        'success': result.success,
        'tries_left': result.tries_left,
        'matches': result.matches,
        'done': result.hack.done,
    })
    if result.station is not None:
        events.station_changed(result.station)
        if user.team_id is not None:
            events.team_changed(teams.get_team(user.team_id))


def handle_get_calibration_mission(data=None):
    try:
        user = _require_user()
        mission = calibration.get_active_mission(user.username, silent_on_does_not_exist=True)
    except LanternError as exc:
        _emit_error(exc)
        return
    emit('calibration_mission', {
        'mission': mission.to_dict() if mission else None,
        'change_type': events.UPDATE,
    })


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'join_lantern': handle_join_lantern,
    'leave_lantern': handle_leave_lantern,
    'get_lantern_info': handle_get_lantern_info,
    'start_hack': handle_start_hack,
    'guess_hack': handle_guess_hack,
    'get_calibration_mission': handle_get_calibration_mission,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace=events.NAMESPACE)

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
