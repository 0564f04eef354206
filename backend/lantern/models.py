from lantern import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import json


def utcnow():
    """Naive UTC timestamp, as stored by the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _isoformat(value):
    return value.isoformat() if value else None


def _loads(raw, default):
    try:
        return json.loads(raw) if raw else default
    except ValueError:
        return default


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    access_level = db.Column(db.Integer, default=1, nullable=False)
    # Lantern team the user plays for
    team_id = db.Column(db.Integer, nullable=True)
    wallet = db.Column(db.Integer, default=0, nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'access_level': self.access_level,
            'team_id': self.team_id,
            'wallet': self.wallet,
        }


class LanternStation(db.Model):
    __tablename__ = 'lantern_station'
    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    station_name = db.Column(db.String(128), nullable=True)
    signal_value = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    owner = db.Column(db.Integer, nullable=True)  # team id
    is_under_attack = db.Column(db.Boolean, default=False, nullable=False)
    calibration_reward = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return {
            'station_id': self.station_id,
            'station_name': self.station_name,
            'signal_value': self.signal_value,
            'is_active': self.is_active,
            'owner': self.owner,
            'is_under_attack': self.is_under_attack,
            'calibration_reward': self.calibration_reward,
        }


class LanternTeam(db.Model):
    __tablename__ = 'lantern_team'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    team_name = db.Column(db.String(64), unique=True, nullable=False)
    short_name = db.Column(db.String(16), unique=True, nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=False, nullable=False)

    def to_dict(self):
        return {
            'team_id': self.team_id,
            'team_name': self.team_name,
            'short_name': self.short_name,
            'points': self.points,
            'is_active': self.is_active,
        }


# Singletons share a pinned primary key so every server instance converges on one row
SINGLETON_ID = 1


class LanternRound(db.Model):
    __tablename__ = 'lantern_round'
    __table_args__ = (
        db.CheckConstraint(f'id = {SINGLETON_ID}', name='ck_lantern_round_singleton'),
    )
    id = db.Column(db.Integer, primary_key=True, default=SINGLETON_ID)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    start_time = db.Column(db.DateTime, default=utcnow, nullable=False)
    end_time = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'is_active': self.is_active,
            'start_time': _isoformat(self.start_time),
            'end_time': _isoformat(self.end_time),
        }


class FakePasswordContainer(db.Model):
    __tablename__ = 'fake_password_container'
    __table_args__ = (
        db.CheckConstraint(f'id = {SINGLETON_ID}', name='ck_fake_password_singleton'),
    )
    id = db.Column(db.Integer, primary_key=True, default=SINGLETON_ID)
    passwords = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list

    @property
    def password_list(self):
        return _loads(self.passwords, [])

    def to_dict(self):
        return {'passwords': self.password_list}


class GameUser(db.Model):
    __tablename__ = 'game_user'
    id = db.Column(db.Integer, primary_key=True)
    user_name = db.Column(db.String(64), unique=True, nullable=False, index=True)
    passwords = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list
    station_id = db.Column(db.Integer, nullable=True, index=True)

    @property
    def password_list(self):
        return _loads(self.passwords, [])

    def to_dict(self):
        return {
            'user_name': self.user_name,
            'passwords': self.password_list,
            'station_id': self.station_id,
        }


class LanternHack(db.Model):
    __tablename__ = 'lantern_hack'
    id = db.Column(db.Integer, primary_key=True)
    # One session per player; starting a new one replaces the old
    owner = db.Column(db.String(64), unique=True, nullable=False, index=True)
    station_id = db.Column(db.Integer, nullable=False)
    tries_left = db.Column(db.Integer, nullable=False)
    game_users = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list
    done = db.Column(db.Boolean, default=False, nullable=False)
    was_successful = db.Column(db.Boolean, default=False, nullable=False)
    coordinates = db.Column(db.Text, nullable=True)  # JSON-encoded {latitude, longitude, accuracy}
    time_created = db.Column(db.DateTime, default=utcnow, nullable=False)

    @property
    def game_user_list(self):
        return _loads(self.game_users, [])

    @property
    def correct_user(self):
        return next((gu for gu in self.game_user_list if gu.get('is_correct')), None)

    def to_dict(self):
        return {
            'owner': self.owner,
            'station_id': self.station_id,
            'tries_left': self.tries_left,
            'game_users': self.game_user_list,
            'done': self.done,
            'was_successful': self.was_successful,
            'coordinates': _loads(self.coordinates, None),
            'time_created': _isoformat(self.time_created),
        }


class CalibrationMission(db.Model):
    __tablename__ = 'calibration_mission'
    __table_args__ = (
        # At most one unresolved mission per owner
        db.Index(
            'uq_calibration_mission_active_owner', 'owner',
            unique=True,
            sqlite_where=db.text('completed = 0'),
            postgresql_where=db.text('completed = false'),
        ),
    )
    id = db.Column(db.Integer, primary_key=True)
    owner = db.Column(db.String(64), nullable=False, index=True)
    station_id = db.Column(db.Integer, nullable=False)
    code = db.Column(db.Integer, nullable=False)
    time_created = db.Column(db.DateTime, default=utcnow, nullable=False)
    time_completed = db.Column(db.DateTime, nullable=True)
    cancelled = db.Column(db.Boolean, default=False, nullable=False)
    completed = db.Column(db.Boolean, default=False, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'owner': self.owner,
            'station_id': self.station_id,
            'code': self.code,
            'time_created': _isoformat(self.time_created),
            'time_completed': _isoformat(self.time_completed),
            'cancelled': self.cancelled,
            'completed': self.completed,
        }
