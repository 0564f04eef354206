from lantern import db
from lantern.models import User
from lantern.services.lantern import calibration, rounds, stations


def _seed_single_game_user(admin_client):
    res = admin_client.post('/api/lantern/game-users', json=[
        {'user_name': 'alice', 'passwords': ['Secret'], 'station_id': 1},
    ])
    assert res.status_code == 201


def test_login_and_check(client, make_user, login):
    make_user('mira')
    res = client.post('/login', json={'username': 'mira', 'password': 'wrong'})
    assert res.status_code == 401
    user = login('mira')
    assert user['username'] == 'mira'
    assert client.get('/check_login').get_json()['success'] is True


def test_register_creates_user(client):
    res = client.post('/register', json={'username': 'newbie', 'password': 'pw'})
    assert res.status_code == 201
    assert User.query.filter_by(username='newbie').first().check_password('pw')
    res = client.post('/register', json={'username': 'newbie', 'password': 'pw'})
    assert res.status_code == 400


def test_lantern_routes_require_login(client):
    res = client.get('/api/lantern/info')
    assert res.status_code == 401
    assert res.get_json()['kind'] == 'not_allowed'


def test_admin_routes_reject_players(client, make_user, login):
    make_user('mira')
    login('mira')
    res = client.post('/api/lantern/stations', json={'station_id': 1})
    assert res.status_code == 403
    assert res.get_json()['kind'] == 'not_allowed'


def test_station_crud(admin_client):
    res = admin_client.post('/api/lantern/stations', json={'station_id': 1, 'station_name': 'Pier'})
    assert res.status_code == 201
    assert res.get_json()['signal_value'] == 100

    res = admin_client.post('/api/lantern/stations', json={'station_id': 1})
    assert res.status_code == 409
    assert res.get_json()['error'] == 'Station 1 already exists'

    res = admin_client.patch('/api/lantern/stations/1', json={'owner': 2, 'is_active': True})
    body = res.get_json()
    assert body['owner'] == 2
    assert body['is_active'] is True

    res = admin_client.patch('/api/lantern/stations/1', json={'reset_owner': True})
    assert res.get_json()['owner'] is None

    listing = admin_client.get('/api/lantern/stations').get_json()
    assert [s['station_id'] for s in listing['active_stations']] == [1]

    assert admin_client.delete('/api/lantern/stations/1').status_code == 200
    assert admin_client.get('/api/lantern/stations/1').status_code == 404


def test_station_create_requires_integer_id(admin_client):
    res = admin_client.post('/api/lantern/stations', json={'station_id': 'abc'})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'invalid_data'


def test_reset_signal(admin_client):
    stations.create_station(1)
    stations.set_signal_value(1, 140)
    res = admin_client.post('/api/lantern/stations/reset-signal', json={})
    assert res.get_json() == {'updated': 1, 'signal_value': 100}


def test_team_crud(admin_client):
    res = admin_client.post('/api/lantern/teams', json={'team_id': 1, 'team_name': 'Owls', 'short_name': 'OW'})
    assert res.status_code == 201
    assert res.get_json()['team_name'] == 'owls'

    res = admin_client.post('/api/lantern/teams', json={'team_id': 2, 'team_name': 'owls', 'short_name': 'x'})
    assert res.status_code == 409

    res = admin_client.patch('/api/lantern/teams/1', json={'points': 4})
    assert res.get_json()['points'] == 4

    assert admin_client.delete('/api/lantern/teams/1').status_code == 200
    assert admin_client.get('/api/lantern/teams').get_json() == []


def test_round_update(admin_client):
    res = admin_client.patch('/api/lantern/round', json={
        'is_active': True,
        'end_time': '2099-01-01T00:00:00Z',
    })
    body = res.get_json()
    assert body['round']['is_active'] is True
    assert body['round']['end_time'] == '2099-01-01T00:00:00'
    assert body['was_active'] is False
    assert body['time_left'] > 0

    res = admin_client.patch('/api/lantern/round', json={'start_time': 'yesterday'})
    assert res.status_code == 400


def test_info_shows_board_when_round_active(admin_client):
    stations.create_station(1)
    assert 'active_stations' not in admin_client.get('/api/lantern/info').get_json()
    rounds.update_round(is_active=True)
    info = admin_client.get('/api/lantern/info').get_json()
    assert [s['station_id'] for s in info['inactive_stations']] == [1]


def test_fake_passwords(admin_client):
    res = admin_client.post('/api/lantern/fake-passwords', json={'passwords': ['Dragon', 'dragon']})
    assert res.status_code == 201
    assert admin_client.get('/api/lantern/fake-passwords').get_json() == {'passwords': ['dragon']}
    assert admin_client.post('/api/lantern/fake-passwords', json={}).status_code == 400


def test_hack_flow_over_http(admin_client, team):
    stations.create_station(1)
    _seed_single_game_user(admin_client)
    admin = User.query.filter_by(username='admin').first()
    admin.team_id = team.team_id
    db.session.commit()

    res = admin_client.post('/api/lantern/hack', json={'station_id': 1})
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'invalid_state'

    rounds.update_round(is_active=True)
    res = admin_client.post('/api/lantern/hack', json={'station_id': 1})
    assert res.status_code == 201
    view = res.get_json()
    assert view['user_name'] == 'alice'
    assert 'secret' in view['passwords']

    res = admin_client.post('/api/lantern/hack/guess', json={'password': 'SECRET'})
    body = res.get_json()
    assert body['success'] is True
    assert body['station']['owner'] == team.team_id
    assert admin_client.get('/api/lantern/teams').get_json()[0]['points'] == 1


def test_hack_exhaustion_over_http(admin_client):
    stations.create_station(1)
    _seed_single_game_user(admin_client)
    rounds.update_round(is_active=True)
    admin_client.post('/api/lantern/hack', json={'station_id': 1})

    bodies = [
        admin_client.post('/api/lantern/hack/guess', json={'password': 'nope'}).get_json()
        for _ in range(3)
    ]
    assert [b['tries_left'] for b in bodies] == [2, 1, 0]
    assert [b['done'] for b in bodies] == [False, False, True]

    res = admin_client.post('/api/lantern/hack/guess', json={'password': 'secret'})
    assert res.status_code == 409
    assert admin_client.get('/api/lantern/hack').get_json()['done'] is True


def test_calibration_flow_over_http(client, make_user, login):
    make_user('mira')
    login('mira')
    stations.create_station(1, calibration_reward=7)

    assert client.get('/api/lantern/calibration').status_code == 404
    res = client.post('/api/lantern/calibration', json={'station_id': 1})
    assert res.status_code == 201
    code = res.get_json()['code']
    assert client.post('/api/lantern/calibration', json={}).status_code == 409

    res = client.post('/api/lantern/calibration/complete', json={'code': code + 1})
    assert res.status_code == 400
    res = client.post('/api/lantern/calibration/complete', json={'code': code})
    assert res.get_json()['reward'] == 7
    assert client.get('/check_login').get_json()['user']['wallet'] == 7

    history = client.get('/api/lantern/calibration/history').get_json()
    assert [m['station_id'] for m in history] == [1]


def test_calibration_cooldown_over_http(flask_app, client, make_user, login):
    flask_app.config['CALIBRATION_TIMEOUT_MIN'] = 20
    make_user('mira')
    login('mira')
    stations.create_station(1)
    stations.create_station(2)
    client.post('/api/lantern/calibration', json={'station_id': 1})
    client.post('/api/lantern/calibration/cancel')

    res = client.post('/api/lantern/calibration', json={'station_id': 2})
    assert res.status_code == 429
    assert res.get_json()['time_left'] > 0


def test_admin_mission_listing(admin_client):
    stations.create_station(1)
    calibration.start_mission('otto', station_id=1)
    missions = admin_client.get('/api/lantern/calibration/all').get_json()
    assert [m['owner'] for m in missions] == ['otto']
    res = admin_client.delete('/api/lantern/calibration/stations/1')
    assert res.get_json() == {'removed': 1}


def test_set_user_team(admin_client, make_user):
    make_user('mira')
    res = admin_client.put('/users/mira/team', json={'team_id': 3})
    assert res.get_json()['user']['team_id'] == 3
    assert admin_client.put('/users/mira/team', json={'team_id': 'x'}).status_code == 400


def test_team_names_must_be_strings(admin_client):
    res = admin_client.post('/api/lantern/teams', json={'team_id': 5, 'team_name': 5, 'short_name': 'x'})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'invalid_data'
    assert admin_client.get('/api/lantern/teams').get_json() == []

    admin_client.post('/api/lantern/teams', json={'team_id': 5, 'team_name': 'Owls', 'short_name': 'OW'})
    res = admin_client.patch('/api/lantern/teams/5', json={'team_name': 5})
    assert res.status_code == 400
    assert admin_client.get('/api/lantern/teams').get_json()[0]['team_name'] == 'owls'


def test_guess_rejects_non_string_password(admin_client):
    stations.create_station(1)
    _seed_single_game_user(admin_client)
    rounds.update_round(is_active=True)
    admin_client.post('/api/lantern/hack', json={'station_id': 1})

    for payload in ({'password': 1234}, {'password': ''}, {'password': 'secret', 'user_name': 7}):
        res = admin_client.post('/api/lantern/hack/guess', json=payload)
        assert res.status_code == 400
        assert res.get_json()['kind'] == 'invalid_data'
    assert admin_client.get('/api/lantern/hack').get_json()['tries_left'] == 3
