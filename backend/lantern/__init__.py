from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import json
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from lantern.main import main
    flask_app.register_blueprint(main)

    from lantern.api.lantern import lantern
    flask_app.register_blueprint(lantern, url_prefix='/api/lantern')

    from lantern.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from lantern.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return User.query.filter_by(id=int(user_id)).first()

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required', 'kind': 'not_allowed'}), 401

    # Round and fake password singletons must exist before anyone plays
    if not flask_app.config.get('TESTING'):
        from lantern.errors import StorageFailure
        from lantern.services.lantern.rounds import bootstrap
        from lantern.services.lantern.scheduler import start_signal_drift
        with flask_app.app_context():
            try:
                bootstrap()
            except StorageFailure as exc:
                # Database may not be migrated yet (e.g. during `flask db upgrade`)
                flask_app.logger.warning(f"[bootstrap-skip] {exc}")
        start_signal_drift(flask_app)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from lantern.services.lantern.rounds import bootstrap
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            bootstrap()

            admin = User(username='admin', access_level=flask_app.config['ADMIN_ACCESS_LEVEL'])
            admin.set_password('password')
            db.session.add(admin)
            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('lantern-bootstrap')
    def lantern_bootstrap_command():
        """Creates the lantern round and fake password container if missing."""
        from lantern.services.lantern.rounds import bootstrap
        with flask_app.app_context():
            created = bootstrap()
            print(f"Bootstrap done, created: {', '.join(created) or 'nothing'}")

    @click.command('seed-game-users')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def seed_game_users_command(path):
        """Seeds decoy game users from a JSON list of {user_name, passwords, station_id}."""
        from lantern.services.lantern.credentials import seed_game_users
        with open(path) as fh:
            candidates = json.load(fh)
        with flask_app.app_context():
            created = seed_game_users(candidates)
            print(f'Created {len(created)} of {len(candidates)} game users')

    @click.command('add-fake-passwords')
    @click.argument('passwords', nargs=-1, required=True)
    def add_fake_passwords_command(passwords):
        """Adds decoy passwords to the fake password container."""
        from lantern.services.lantern.credentials import add_fake_passwords
        with flask_app.app_context():
            stored = add_fake_passwords(list(passwords))
            print(f'{len(stored)} fake passwords stored')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(lantern_bootstrap_command)
    flask_app.cli.add_command(seed_game_users_command)
    flask_app.cli.add_command(add_fake_passwords_command)

    return flask_app
