"""Fan-out of lantern changes to connected Socket.IO clients."""

from lantern import socketio

NAMESPACE = '/ws'

CREATE = 'create'
UPDATE = 'update'
REMOVE = 'remove'


def user_room(username: str) -> str:
    return f"user:{username}"


def broadcast(event: str, key: str, entity: dict, change_type: str = UPDATE, room=None) -> None:
    """Emit ``{key: entity, 'change_type': change_type}`` to everyone, or only ``room``."""
    payload = {key: entity, 'change_type': change_type}
    if room:
        socketio.emit(event, payload, to=room, namespace=NAMESPACE)
    else:
        socketio.emit(event, payload, namespace=NAMESPACE)


def _snapshot(entity) -> dict:
    # Removed rows are passed as a dict taken before the delete
    return entity if isinstance(entity, dict) else entity.to_dict()


def station_changed(station, change_type: str = UPDATE) -> None:
    broadcast('lantern_station', 'station', _snapshot(station), change_type)


def stations_changed(stations) -> None:
    socketio.emit('lantern_stations', {'stations': [s.to_dict() for s in stations]}, namespace=NAMESPACE)


def team_changed(team, change_type: str = UPDATE) -> None:
    broadcast('lantern_team', 'team', _snapshot(team), change_type)


def round_changed(lantern_round, time_left: int) -> None:
    payload = {'round': lantern_round.to_dict(), 'time_left': time_left, 'change_type': UPDATE}
    socketio.emit('lantern_round', payload, namespace=NAMESPACE)


def mission_changed(mission, change_type: str = UPDATE) -> None:
    broadcast('calibration_mission', 'mission', mission.to_dict(), change_type, room=user_room(mission.owner))
