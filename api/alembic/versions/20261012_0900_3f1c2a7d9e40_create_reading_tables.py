"""create_reading_tables

Revision ID: 3f1c2a7d9e40
Revises:
Create Date: 2026-10-12 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a7d9e40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('avatar', sa.String(length=500), nullable=True),
        sa.Column('total_reading_duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_reading_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_streak_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_streak_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reading_date', sa.Date(), nullable=True),
        sa.Column('books_read_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('books_finished_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'catalog_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('item_type', sa.String(length=20), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_catalog_items_item_type'), 'catalog_items', ['item_type'], unique=False)

    op.create_table(
        'reading_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('book_type', sa.String(length=20), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('aggregated_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_heartbeat_at', sa.DateTime(), nullable=True),
        sa.Column('start_position', sa.String(length=500), nullable=True),
        sa.Column('end_position', sa.String(length=500), nullable=True),
        sa.Column('start_chapter', sa.Integer(), nullable=True),
        sa.Column('end_chapter', sa.Integer(), nullable=True),
        sa.Column('pages_read', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('device_type', sa.String(length=20), nullable=True),
        sa.Column('device_id', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_paused', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('paused_at', sa.DateTime(), nullable=True),
        sa.Column('total_paused_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('finished_book', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stats_applied', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_reading_sessions_user_id'), 'reading_sessions', ['user_id'], unique=False)
    op.create_index(op.f('ix_reading_sessions_is_active'), 'reading_sessions', ['is_active'], unique=False)
    op.create_index(op.f('ix_reading_sessions_stats_applied'), 'reading_sessions', ['stats_applied'], unique=False)
    op.create_index('idx_reading_sessions_user_time', 'reading_sessions', ['user_id', 'start_time'], unique=False)
    op.create_index('idx_reading_sessions_book', 'reading_sessions', ['book_id', 'book_type'], unique=False)
    # At most one active session per user
    op.create_index(
        'uq_reading_sessions_one_active',
        'reading_sessions',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'daily_reading_stats',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('total_duration_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('books_read', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('books_finished', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pages_read', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('highlights_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category_durations', sa.JSON(), nullable=False),
        sa.Column('book_durations', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'date', name='uq_daily_stats_user_date'),
    )
    op.create_index(op.f('ix_daily_reading_stats_user_id'), 'daily_reading_stats', ['user_id'], unique=False)

    op.create_table(
        'reading_milestones',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('milestone_type', sa.String(length=30), nullable=False),
        sa.Column('milestone_value', sa.Integer(), nullable=False),
        sa.Column('book_id', sa.Integer(), nullable=True),
        sa.Column('book_type', sa.String(length=20), nullable=True),
        sa.Column('book_title', sa.String(length=500), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('achieved_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'milestone_type', 'milestone_value', name='uq_milestone_user_type_value'),
    )
    op.create_index(op.f('ix_reading_milestones_user_id'), 'reading_milestones', ['user_id'], unique=False)
    op.create_index(op.f('ix_reading_milestones_achieved_at'), 'reading_milestones', ['achieved_at'], unique=False)

    op.create_table(
        'weekly_leaderboard',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('total_duration_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.Column('rank_change', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reading_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('books_read', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('likes_received', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'week_start', name='uq_weekly_lb_user_week'),
    )
    op.create_index(op.f('ix_weekly_leaderboard_user_id'), 'weekly_leaderboard', ['user_id'], unique=False)
    op.create_index('idx_weekly_lb_week', 'weekly_leaderboard', ['week_start', 'rank'], unique=False)

    op.create_table(
        'leaderboard_settlements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('participants', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('settled_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('week_start'),
    )

    op.create_table(
        'leaderboard_likes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('target_user_id', sa.Integer(), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['target_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'target_user_id', 'week_start', name='uq_leaderboard_like'),
    )
    op.create_index(op.f('ix_leaderboard_likes_target_user_id'), 'leaderboard_likes', ['target_user_id'], unique=False)

    op.create_table(
        'user_follows',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('follower_id', sa.Integer(), nullable=False),
        sa.Column('following_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['follower_id'], ['users.id']),
        sa.ForeignKeyConstraint(['following_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('follower_id', 'following_id', name='uq_user_follow'),
    )
    op.create_index(op.f('ix_user_follows_follower_id'), 'user_follows', ['follower_id'], unique=False)


def downgrade() -> None:
    op.drop_table('user_follows')
    op.drop_table('leaderboard_likes')
    op.drop_table('leaderboard_settlements')
    op.drop_table('weekly_leaderboard')
    op.drop_table('reading_milestones')
    op.drop_table('daily_reading_stats')
    op.drop_index('uq_reading_sessions_one_active', table_name='reading_sessions')
    op.drop_table('reading_sessions')
    op.drop_table('catalog_items')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
