"""Team registry."""

from typing import List, Optional

from flask import current_app

from lantern import storage
from lantern.errors import InvalidData
from lantern.models import LanternTeam


def _name(value, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidData(f'{field} must be a non-empty string')
    return value.lower()


def create_team(team_id: int, team_name: str, short_name: str, is_active: bool = False) -> LanternTeam:
    team_name = _name(team_name, 'team_name')
    short_name = _name(short_name, 'short_name')
    team = LanternTeam(
        team_id=team_id,
        team_name=team_name,
        short_name=short_name,
        is_active=bool(is_active),
    )
    storage.create_object(
        team,
        f'Lantern team {team_name} {short_name}',
        unique_criteria=[
            LanternTeam.team_id == team_id,
            LanternTeam.team_name == team_name,
            LanternTeam.short_name == short_name,
        ],
    )
    current_app.logger.info(f"[team-create] team={team_id} name={team_name}")
    return team


def get_team(team_id: int) -> LanternTeam:
    return storage.get_object(LanternTeam, f'Team {team_id}', team_id=team_id)


def list_teams() -> List[LanternTeam]:
    return storage.get_objects(LanternTeam, order_by=LanternTeam.team_id.asc())


def update_team(team_id: int, is_active: Optional[bool] = None, team_name: Optional[str] = None,
                short_name: Optional[str] = None, points: Optional[int] = None,
                reset_points: bool = False) -> LanternTeam:
    values = {}
    if isinstance(is_active, bool):
        values['is_active'] = is_active
    if team_name is not None:
        values['team_name'] = _name(team_name, 'team_name')
    if short_name is not None:
        values['short_name'] = _name(short_name, 'short_name')
    if reset_points:
        values['points'] = 0
    elif isinstance(points, int) and not isinstance(points, bool) and points > -1:
        values['points'] = points

    if not values:
        return get_team(team_id)
    return storage.update_object(LanternTeam, f'Team {team_id}', values, guard={'team_id': team_id})


def increment_points(team_id: int, delta: int) -> LanternTeam:
    """Atomically add ``delta`` to the team's points."""
    team = storage.update_object(
        LanternTeam, f'Team {team_id}', {LanternTeam.points: LanternTeam.points + delta},
        guard={'team_id': team_id},
    )
    current_app.logger.info(f"[team-points] team={team_id} delta={delta} points={team.points}")
    return team


def remove_team(team_id: int) -> None:
    storage.remove_objects(LanternTeam, team_id=team_id)
    current_app.logger.info(f"[team-remove] team={team_id}")
