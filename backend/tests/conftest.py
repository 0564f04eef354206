import os
import sys
import pytest

# Ensure the backend root (containing the `lantern` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from lantern import create_app, db, socketio
from lantern.models import User
from lantern.services.lantern.credentials import seed_game_users
from lantern.services.lantern.hacking import CredentialMixer
from lantern.services.lantern.rounds import bootstrap, update_round
from lantern.services.lantern.stations import create_station
from lantern.services.lantern.teams import create_team


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    # Lets a player start a new mission right after finishing one
    CALIBRATION_TIMEOUT_MIN = 0


class FixedMixer(CredentialMixer):
    """Deterministic credentials: 'alice' is real, 'bob' is a decoy."""

    ENTRIES = [
        {
            'user_name': 'bob',
            'password': 'hunter2',
            'is_correct': False,
            'password_type': None,
            'password_hint': {'index': 0, 'character': 'h'},
        },
        {
            'user_name': 'alice',
            'password': 'letmein',
            'is_correct': True,
            'password_type': None,
            'password_hint': {'index': 0, 'character': 'l'},
        },
    ]

    def assemble(self, station_id):
        return [dict(entry) for entry in self.ENTRIES]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import lantern.models  # noqa: F401
        db.create_all()
        bootstrap()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_user(flask_app):
    def _make(username, password='password', access_level=1, team_id=None):
        user = User(username=username, access_level=access_level, team_id=team_id)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def login(client):
    def _login(username, password='password'):
        res = client.post('/login', json={'username': username, 'password': password})
        assert res.status_code == 200
        return res.get_json()['user']
    return _login


@pytest.fixture()
def admin_client(client, make_user, login, flask_app):
    make_user('admin', access_level=flask_app.config['ADMIN_ACCESS_LEVEL'])
    login('admin')
    return client


@pytest.fixture()
def station(flask_app):
    return create_station(1, station_name='North tower')


@pytest.fixture()
def team(flask_app):
    return create_team(1, 'Red Foxes', 'RF', is_active=True)


@pytest.fixture()
def active_round(flask_app):
    lantern_round, _ = update_round(is_active=True)
    return lantern_round


@pytest.fixture()
def game_users(flask_app):
    return seed_game_users([
        {'user_name': 'alice', 'passwords': ['LetMeIn', 'qwerty'], 'station_id': 1},
        {'user_name': 'bob', 'passwords': ['hunter2'], 'station_id': None},
    ])


@pytest.fixture()
def fixed_mixer():
    return FixedMixer()


@pytest.fixture()
def sio_client(flask_app, client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=client,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
