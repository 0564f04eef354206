from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from lantern import db
from lantern.models import User

main = Blueprint('main', __name__)


def _is_admin(user) -> bool:
    return (user.access_level or 0) >= current_app.config['ADMIN_ACCESS_LEVEL']


@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(username=data.get('username')).first()
    if user and user.check_password(data.get('password') or ''):
        login_user(user)
        current_app.logger.info(f"[login] user={user.username}")
        return jsonify({"success": True, "user": user.to_dict()})
    return jsonify({"success": False, "message": "Invalid credentials"}), 401


@main.route('/register', methods=['POST', 'OPTIONS'])
def register():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password')
    if not all([username, password]):
        return jsonify({"success": False, "message": "Username and password are required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"success": False, "message": "Username already exists"}), 400

    new_user = User(username=username)
    new_user.set_password(password)
    db.session.add(new_user)
    db.session.commit()
    login_user(new_user)
    return jsonify({"success": True, "user": new_user.to_dict()}), 201


@main.route('/check_login', methods=['GET', 'OPTIONS'])
def check_login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200

    @login_required
    def protected_check():
        return jsonify({"success": True, "user": current_user.to_dict()})

    return protected_check()


@main.route('/logout', methods=['POST', 'OPTIONS'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@main.route('/users/<string:username>/team', methods=['PUT'])
@login_required
def set_user_team(username):
    """Admins put players on a lantern team, or take them off with null."""
    if not _is_admin(current_user):
        return jsonify({"success": False, "message": "Admin access required"}), 403
    user = User.query.filter_by(username=username).first_or_404()
    team_id = (request.get_json(silent=True) or {}).get('team_id')
    if team_id is not None and (isinstance(team_id, bool) or not isinstance(team_id, int)):
        return jsonify({"success": False, "message": "team_id must be an integer or null"}), 400
    user.team_id = team_id
    db.session.commit()
    current_app.logger.info(f"[user-team] user={username} team={team_id}")
    return jsonify({"success": True, "user": user.to_dict()})
