"""create user and lantern tables

Revision ID: 5c2a9e7d1b40
Revises:
Create Date: 2026-10-19 10:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e7d1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.Column('access_level', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('team_id', sa.Integer(), nullable=True),
            sa.Column('wallet', sa.Integer(), nullable=False, server_default='0'),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'lantern_station' not in existing_tables:
        op.create_table(
            'lantern_station',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('station_id', sa.Integer(), nullable=False),
            sa.Column('station_name', sa.String(length=128), nullable=True),
            sa.Column('signal_value', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('owner', sa.Integer(), nullable=True),
            sa.Column('is_under_attack', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('calibration_reward', sa.Integer(), nullable=False),
        )
        op.create_index('ix_lantern_station_station_id', 'lantern_station', ['station_id'], unique=True)

    if 'lantern_team' not in existing_tables:
        op.create_table(
            'lantern_team',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('team_id', sa.Integer(), nullable=False),
            sa.Column('team_name', sa.String(length=64), nullable=False, unique=True),
            sa.Column('short_name', sa.String(length=16), nullable=False, unique=True),
            sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        )
        op.create_index('ix_lantern_team_team_id', 'lantern_team', ['team_id'], unique=True)

    if 'lantern_round' not in existing_tables:
        op.create_table(
            'lantern_round',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('start_time', sa.DateTime(), nullable=False),
            sa.Column('end_time', sa.DateTime(), nullable=False),
            sa.CheckConstraint('id = 1', name='ck_lantern_round_singleton'),
        )

    if 'fake_password_container' not in existing_tables:
        op.create_table(
            'fake_password_container',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('passwords', sa.Text(), nullable=False, server_default='[]'),
            sa.CheckConstraint('id = 1', name='ck_fake_password_singleton'),
        )

    if 'game_user' not in existing_tables:
        op.create_table(
            'game_user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_name', sa.String(length=64), nullable=False),
            sa.Column('passwords', sa.Text(), nullable=False, server_default='[]'),
            sa.Column('station_id', sa.Integer(), nullable=True),
        )
        op.create_index('ix_game_user_user_name', 'game_user', ['user_name'], unique=True)
        op.create_index('ix_game_user_station_id', 'game_user', ['station_id'])

    if 'lantern_hack' not in existing_tables:
        op.create_table(
            'lantern_hack',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('owner', sa.String(length=64), nullable=False),
            sa.Column('station_id', sa.Integer(), nullable=False),
            sa.Column('tries_left', sa.Integer(), nullable=False),
            sa.Column('game_users', sa.Text(), nullable=False, server_default='[]'),
            sa.Column('done', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('was_successful', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('coordinates', sa.Text(), nullable=True),
            sa.Column('time_created', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_lantern_hack_owner', 'lantern_hack', ['owner'], unique=True)

    if 'calibration_mission' not in existing_tables:
        op.create_table(
            'calibration_mission',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('owner', sa.String(length=64), nullable=False),
            sa.Column('station_id', sa.Integer(), nullable=False),
            sa.Column('code', sa.Integer(), nullable=False),
            sa.Column('time_created', sa.DateTime(), nullable=False),
            sa.Column('time_completed', sa.DateTime(), nullable=True),
            sa.Column('cancelled', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        )
        op.create_index('ix_calibration_mission_owner', 'calibration_mission', ['owner'])
        # One unresolved mission per owner
        op.create_index(
            'uq_calibration_mission_active_owner', 'calibration_mission', ['owner'],
            unique=True,
            sqlite_where=sa.text('completed = 0'),
            postgresql_where=sa.text('completed = false'),
        )


def downgrade():
    op.drop_index('uq_calibration_mission_active_owner', table_name='calibration_mission')
    op.drop_index('ix_calibration_mission_owner', table_name='calibration_mission')
    op.drop_table('calibration_mission')
    op.drop_index('ix_lantern_hack_owner', table_name='lantern_hack')
    op.drop_table('lantern_hack')
    op.drop_index('ix_game_user_station_id', table_name='game_user')
    op.drop_index('ix_game_user_user_name', table_name='game_user')
    op.drop_table('game_user')
    op.drop_table('fake_password_container')
    op.drop_table('lantern_round')
    op.drop_index('ix_lantern_team_team_id', table_name='lantern_team')
    op.drop_table('lantern_team')
    op.drop_index('ix_lantern_station_station_id', table_name='lantern_station')
    op.drop_table('lantern_station')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
