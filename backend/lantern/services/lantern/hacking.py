"""Hack session engine.

A player hacks a station by guessing which password belongs to the real
user among decoys. Each player has at most one session; its life is

    NONE -> ACTIVE (done=False) -> RESOLVED (done=True)

and starting a new session from any state replaces the old one. Guesses
and resolution are single conditional updates on ``{owner, done=False}``,
so two racing resolutions cannot both win.

Wrong guesses only spend a try. When the budget hits zero the caller has
to call ``resolve_hack(..., was_successful=False)`` itself.
"""

import json
import random
from dataclasses import dataclass
from typing import List, Optional

from flask import current_app

from lantern import storage
from lantern.errors import Conflict, InvalidData, InvalidState, NotFound
from lantern.models import LanternHack, LanternStation, utcnow
from . import scoring
from .credentials import list_fake_passwords, list_game_users
from .rounds import is_round_active
from .stations import get_station


class CredentialMixer:
    """Builds the ordered ``game_users`` list for a new session.

    Exactly one entry must carry ``is_correct=True``. Passwords are matched
    case-insensitively, so their case does not matter.
    """

    def assemble(self, station_id: int) -> List[dict]:
        raise NotImplementedError


class RandomCredentialMixer(CredentialMixer):
    """Real user plus ``decoy_amount`` decoys, drawn from the game user pool.

    Game users bound to the station are drawn first and the first one drawn
    becomes the real user. Each entry gets one random password of its user
    and a single revealed character as a hint. Entries are shuffled before
    they are stored.
    """

    def __init__(self, decoy_amount: Optional[int] = None, rng: Optional[random.Random] = None):
        self.decoy_amount = decoy_amount
        self.rng = rng or random.Random()

    def assemble(self, station_id: int) -> List[dict]:
        decoy_amount = self.decoy_amount
        if decoy_amount is None:
            decoy_amount = current_app.config['HACK_DECOY_AMOUNT']

        candidates = [gu for gu in list_game_users() if any(gu.password_list)]
        if not candidates:
            raise NotFound('Game users')

        bound = [gu for gu in candidates if gu.station_id == station_id]
        others = [gu for gu in candidates if gu.station_id != station_id]
        self.rng.shuffle(bound)
        self.rng.shuffle(others)
        chosen = (bound + others)[:decoy_amount + 1]

        entries = []
        for game_user in chosen:
            password = self.rng.choice([p for p in game_user.password_list if p])
            hint_index = self.rng.randrange(len(password))
            entries.append({
                'user_name': game_user.user_name,
                'password': password,
                'is_correct': False,
                'password_type': None,
                'password_hint': {'index': hint_index, 'character': password[hint_index]},
            })
        entries[0]['is_correct'] = True
        self.rng.shuffle(entries)
        return entries


@dataclass
class Resolution:
    hack: LanternHack
    station: Optional[LanternStation] = None


@dataclass
class GuessResult:
    success: bool
    tries_left: int
    hack: LanternHack
    matches: Optional[int] = None
    station: Optional[LanternStation] = None


def _hack_name(owner: str) -> str:
    return f'Lantern hack for {owner}'


def get_hack(owner: str, station_id: Optional[int] = None, done: Optional[bool] = None) -> LanternHack:
    filters = {'owner': owner}
    if station_id is not None:
        filters['station_id'] = station_id
    if done is not None:
        filters['done'] = done
    return storage.get_object(LanternHack, _hack_name(owner), **filters)


def start_hack(owner: str, station_id: int, mixer: Optional[CredentialMixer] = None) -> LanternHack:
    if not is_round_active():
        raise InvalidState('The lantern round is not active')
    get_station(station_id)

    game_users = (mixer or RandomCredentialMixer()).assemble(station_id)
    values = {
        'station_id': station_id,
        'tries_left': current_app.config['HACKING_TRIES_AMOUNT'],
        'game_users': json.dumps(game_users),
        'done': False,
        'was_successful': False,
        'coordinates': None,
        'time_created': utcnow(),
    }

    previous = storage.find_object(LanternHack, owner=owner)
    if previous is None:
        try:
            hack = storage.create_object(LanternHack(owner=owner, **values), _hack_name(owner))
        except Conflict:
            # A concurrent start inserted first; replace its session instead
            previous = get_hack(owner)
        else:
            current_app.logger.info(f"[hack-start] owner={owner} station={station_id} from=none")
            return hack

    if not previous.done:
        current_app.logger.info(
            f"[hack-discard] owner={owner} station={previous.station_id} tries_left={previous.tries_left}"
        )
    from_state = 'resolved' if previous.done else 'active'
    hack = storage.update_object(LanternHack, _hack_name(owner), values, guard={'owner': owner})
    current_app.logger.info(f"[hack-start] owner={owner} station={station_id} from={from_state}")
    return hack


def hack_view(hack: LanternHack, rng: Optional[random.Random] = None) -> dict:
    """Client-safe view of a session. Never reveals which entry is real."""
    rng = rng or random.Random()
    fake_passwords = list_fake_passwords()
    rng.shuffle(fake_passwords)
    amount = current_app.config['HACK_FAKE_PASSWORD_AMOUNT']
    passwords = list(dict.fromkeys(
        fake_passwords[:amount] + [gu['password'] for gu in hack.game_user_list]
    ))
    rng.shuffle(passwords)
    correct = hack.correct_user or {}
    return {
        'passwords': passwords,
        'tries_left': hack.tries_left,
        'user_name': correct.get('user_name'),
        'password_type': correct.get('password_type'),
        'password_hint': correct.get('password_hint'),
        'station_id': hack.station_id,
        'done': hack.done,
    }


def lower_tries(owner: str) -> LanternHack:
    """Spend one try. Never resolves the session, even at zero."""
    count = storage.update_objects(
        LanternHack,
        {LanternHack.tries_left: LanternHack.tries_left - 1},
        criteria=[LanternHack.tries_left > 0],
        owner=owner,
        done=False,
    )
    if not count:
        raise InvalidState(f'{_hack_name(owner)} has no tries left or is already resolved')
    return get_hack(owner)


def resolve_hack(owner: str, station_id: int, was_successful: bool, coordinates: Optional[dict] = None,
                 team_id: Optional[int] = None, boosting_signal: bool = True) -> Resolution:
    """Finish the session exactly once. A successful hack captures the station.

    Success also needs a try left, so a session whose budget was spent can
    only be resolved as failed.
    """
    values = {'done': True, 'was_successful': bool(was_successful)}
    if coordinates:
        values['coordinates'] = json.dumps(coordinates)

    criteria = [LanternHack.tries_left > 0] if was_successful else []
    count = storage.update_objects(
        LanternHack, values, criteria=criteria, owner=owner, station_id=station_id, done=False,
    )
    if not count:
        current_app.logger.info(f"[hack-resolve-moot] owner={owner} station={station_id}")
        raise InvalidState(f'{_hack_name(owner)} on station {station_id} is already resolved or out of tries')

    hack = get_hack(owner)
    current_app.logger.info(
        f"[hack-resolve] owner={owner} station={station_id} successful={bool(was_successful)}"
    )
    if not was_successful:
        return Resolution(hack=hack)
    station = scoring.on_capture(station_id, team_id, boosting=boosting_signal)
    return Resolution(hack=hack, station=station)


def _is_correct(correct: Optional[dict], password: str, user_name: Optional[str]) -> bool:
    if not correct or password.lower() != str(correct['password']).lower():
        return False
    return user_name is None or user_name.lower() == correct['user_name'].lower()


def guess(owner: str, password: str, user_name: Optional[str] = None, team_id: Optional[int] = None,
          boosting_signal: bool = True, coordinates: Optional[dict] = None) -> GuessResult:
    if not isinstance(password, str) or not password:
        raise InvalidData('password must be a non-empty string')
    if user_name is not None and not isinstance(user_name, str):
        raise InvalidData('user_name must be a string')
    hack = get_hack(owner)
    if hack.done:
        raise InvalidState(f'{_hack_name(owner)} is already resolved')

    attempt = password.lower()
    correct = hack.correct_user
    if hack.tries_left > 0 and _is_correct(correct, attempt, user_name):
        resolution = resolve_hack(
            owner, hack.station_id, True,
            coordinates=coordinates, team_id=team_id, boosting_signal=boosting_signal,
        )
        return GuessResult(
            success=True,
            tries_left=resolution.hack.tries_left,
            hack=resolution.hack,
            station=resolution.station,
        )

    hack = lower_tries(owner)
    real_password = str(correct['password']).lower() if correct else ''
    matches = sum(1 for char in attempt if char in real_password)
    current_app.logger.info(f"[hack-guess] owner={owner} station={hack.station_id} tries_left={hack.tries_left}")
    return GuessResult(success=False, tries_left=hack.tries_left, hack=hack, matches=matches)


def guess_and_settle(owner: str, password: str, **kwargs) -> GuessResult:
    """Guess, and resolve the session as failed once the budget runs out.

    This is the caller side of ``guess``; routes and socket handlers use it.
    """
    result = guess(owner, password, **kwargs)
    if result.success or result.tries_left > 0:
        return result
    try:
        resolution = resolve_hack(owner, result.hack.station_id, False, coordinates=kwargs.get('coordinates'))
    except InvalidState:
        # A concurrent request already settled it
        return result
    result.hack = resolution.hack
    return result
