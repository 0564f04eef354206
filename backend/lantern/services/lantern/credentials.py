"""Credential pool: decoy game users and the fake password container."""

import json
from typing import Iterable, List, Optional

from flask import current_app

from lantern import storage
from lantern.errors import Conflict, InvalidData
from lantern.models import FakePasswordContainer, GameUser, SINGLETON_ID


def seed_game_users(candidates: Iterable[dict]) -> List[GameUser]:
    """Create each candidate unless its user name is taken.

    Best effort: duplicates are skipped quietly and earlier inserts stay
    even if a later one fails.
    """
    candidates = list(candidates)
    if any(not c.get('user_name') or not c.get('passwords') for c in candidates):
        raise InvalidData('Game users need user_name and passwords')

    created = []
    for candidate in candidates:
        user_name = candidate['user_name']
        game_user = GameUser(
            user_name=user_name,
            passwords=json.dumps([str(p).lower() for p in candidate['passwords']]),
            station_id=candidate.get('station_id'),
        )
        try:
            storage.create_object(
                game_user, f'Game user {user_name}',
                unique_criteria=[GameUser.user_name == user_name],
            )
        except Conflict:
            current_app.logger.debug(f"[game-user-skip] user={user_name} already exists")
            continue
        created.append(game_user)
    current_app.logger.info(f"[game-user-seed] created={len(created)}")
    return created


def list_game_users(station_id: Optional[int] = None) -> List[GameUser]:
    filters = {} if station_id is None else {'station_id': station_id}
    return storage.get_objects(GameUser, order_by=GameUser.user_name.asc(), **filters)


def add_fake_passwords(passwords: Iterable[str]) -> List[str]:
    """Add passwords to the container, ignoring duplicates. Returns the full set."""
    additions = [str(p).lower() for p in passwords if p]

    def _add(container):
        stored = container.password_list
        stored.extend(p for p in dict.fromkeys(additions) if p not in stored)
        container.passwords = json.dumps(stored)

    container = storage.modify_object(
        FakePasswordContainer, 'Fake password container', _add, id=SINGLETON_ID,
    )
    stored = container.password_list
    current_app.logger.info(f"[fake-password-add] added={len(additions)} total={len(stored)}")
    return stored


def list_fake_passwords() -> List[str]:
    container = storage.get_object(FakePasswordContainer, 'Fake password container', id=SINGLETON_ID)
    return container.password_list
