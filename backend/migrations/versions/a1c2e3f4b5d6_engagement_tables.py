"""engagement tables: streaks, daily activity, points ledger, badges

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-09-28 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c2e3f4b5d6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'streaks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=False),
        sa.Column('current_streak', sa.Integer(), nullable=False),
        sa.Column('longest_streak', sa.Integer(), nullable=False),
        sa.Column('last_activity_date', sa.Date(), nullable=True),
        sa.Column('last_video_date', sa.Date(), nullable=True),
        sa.Column('last_chat_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'creator_id', name='uq_streaks_user_creator')
    )
    with op.batch_alter_table('streaks', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_streaks_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_streaks_creator_id'), ['creator_id'], unique=False)

    op.create_table(
        'daily_activity',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=False),
        sa.Column('activity_date', sa.Date(), nullable=False),
        sa.Column('watched_video', sa.Boolean(), nullable=False),
        sa.Column('chatted', sa.Boolean(), nullable=False),
        sa.Column('completed_goal', sa.Boolean(), nullable=False),
        sa.Column('videos_watched', sa.Integer(), nullable=False),
        sa.Column('messages_sent', sa.Integer(), nullable=False),
        sa.Column('watch_seconds', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'creator_id', 'activity_date', name='uq_daily_activity_user_creator_date')
    )
    with op.batch_alter_table('daily_activity', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_daily_activity_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_daily_activity_creator_id'), ['creator_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_daily_activity_activity_date'), ['activity_date'], unique=False)

    op.create_table(
        'points_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=True),
        sa.Column('scope', sa.String(length=64), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('streak_points', sa.Integer(), nullable=False),
        sa.Column('goal_points', sa.Integer(), nullable=False),
        sa.Column('video_points', sa.Integer(), nullable=False),
        sa.Column('chat_points', sa.Integer(), nullable=False),
        sa.Column('frozen', sa.Boolean(), nullable=False),
        sa.Column('frozen_reason', sa.String(length=240), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'scope', name='uq_points_accounts_user_scope')
    )
    with op.batch_alter_table('points_accounts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_points_accounts_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_points_accounts_creator_id'), ['creator_id'], unique=False)
        batch_op.create_index('idx_points_accounts_scope_total', ['scope', 'total_points'], unique=False)

    op.create_table(
        'points_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('activity_date', sa.Date(), nullable=False),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.Column('idempotency_key', sa.String(length=160), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('points > 0', name='ck_points_transactions_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('points_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_points_transactions_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_points_transactions_creator_id'), ['creator_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_points_transactions_transaction_type'), ['transaction_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_points_transactions_idempotency_key'), ['idempotency_key'], unique=True)
        batch_op.create_index(
            'idx_points_transactions_user_creator_type_date',
            ['user_id', 'creator_id', 'transaction_type', 'activity_date'],
            unique=False,
        )

    op.create_table(
        'user_badges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=False),
        sa.Column('badge_type', sa.String(length=32), nullable=False),
        sa.Column('earned_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'creator_id', 'badge_type', name='uq_user_badges_user_creator_type')
    )
    with op.batch_alter_table('user_badges', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_badges_user_id'), ['user_id'], unique=False)

    op.create_table(
        'user_profiles',
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('display_name', sa.String(length=120), nullable=True),
        sa.Column('avatar_url', sa.String(length=512), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('user_id')
    )
    with op.batch_alter_table('user_profiles', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_profiles_email'), ['email'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('target_type', sa.String(length=64), nullable=True),
        sa.Column('target_key', sa.String(length=200), nullable=True),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=True),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=160), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('notifications', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_notifications_user_id'), ['user_id'], unique=False)


def downgrade():
    with op.batch_alter_table('notifications', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_notifications_user_id'))
    op.drop_table('notifications')

    op.drop_table('audit_logs')

    with op.batch_alter_table('user_profiles', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_user_profiles_email'))
    op.drop_table('user_profiles')

    with op.batch_alter_table('user_badges', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_user_badges_user_id'))
    op.drop_table('user_badges')

    with op.batch_alter_table('points_transactions', schema=None) as batch_op:
        batch_op.drop_index('idx_points_transactions_user_creator_type_date')
        batch_op.drop_index(batch_op.f('ix_points_transactions_idempotency_key'))
        batch_op.drop_index(batch_op.f('ix_points_transactions_transaction_type'))
        batch_op.drop_index(batch_op.f('ix_points_transactions_creator_id'))
        batch_op.drop_index(batch_op.f('ix_points_transactions_user_id'))
    op.drop_table('points_transactions')

    with op.batch_alter_table('points_accounts', schema=None) as batch_op:
        batch_op.drop_index('idx_points_accounts_scope_total')
        batch_op.drop_index(batch_op.f('ix_points_accounts_creator_id'))
        batch_op.drop_index(batch_op.f('ix_points_accounts_user_id'))
    op.drop_table('points_accounts')

    with op.batch_alter_table('daily_activity', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_daily_activity_activity_date'))
        batch_op.drop_index(batch_op.f('ix_daily_activity_creator_id'))
        batch_op.drop_index(batch_op.f('ix_daily_activity_user_id'))
    op.drop_table('daily_activity')

    with op.batch_alter_table('streaks', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_streaks_creator_id'))
        batch_op.drop_index(batch_op.f('ix_streaks_user_id'))
    op.drop_table('streaks')
