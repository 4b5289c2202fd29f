"""Workout session snapshot, progress and idempotency tables

Revision ID: 20261018_workout_sessions
Revises:
Create Date: 2026-10-18 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261018_workout_sessions'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'workout_sessions',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('routine_id', sa.String(), sa.ForeignKey('routines.id', ondelete='SET NULL'), nullable=True),
        sa.Column('routine_day_id', sa.String(), sa.ForeignKey('routine_days.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='ACTIVE'),
        sa.Column('pointer_group_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pointer_exercise_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pointer_set_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pointer_round_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('override_rest_between_exercises_seconds', sa.Integer(), nullable=True),
        sa.Column('override_rest_after_round_seconds', sa.Integer(), nullable=True),
        sa.Column('override_rest_after_set_seconds', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    # One ACTIVE session per user, enforced by the database
    op.create_index(
        'uq_workout_sessions_user_active',
        'workout_sessions',
        ['user_id'],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE'"),
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )
    op.create_index('ix_workout_sessions_user_status', 'workout_sessions', ['user_id', 'status'])

    op.create_table(
        'workout_groups',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('workout_session_id', sa.String(), sa.ForeignKey('workout_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_group_id', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('rounds_total', sa.Integer(), nullable=False),
        sa.Column('round_current', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('rest_between_exercises_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rest_after_round_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rest_after_set_seconds', sa.Integer(), nullable=True),
    )
    op.create_index('ix_workout_groups_workout_session_id', 'workout_groups', ['workout_session_id'])

    op.create_table(
        'workout_exercise_items',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('workout_group_id', sa.String(), sa.ForeignKey('workout_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_group_exercise_id', sa.String(), nullable=True),
        sa.Column('order_in_group', sa.String(), nullable=False),
        sa.Column('target_sets_total', sa.Integer(), nullable=False),
        sa.Column('rep_range', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_workout_exercise_items_workout_group_id', 'workout_exercise_items', ['workout_group_id'])

    op.create_table(
        'workout_sets',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('workout_exercise_item_id', sa.String(), sa.ForeignKey('workout_exercise_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('set_number', sa.Integer(), nullable=False),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('reps', sa.Integer(), nullable=True),
        sa.Column('rpe', sa.Float(), nullable=True),
        sa.Column('is_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('workout_exercise_item_id', 'set_number', name='uq_workout_set_number'),
    )

    op.create_table(
        'workout_session_events',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('workout_session_id', sa.String(), sa.ForeignKey('workout_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('applied_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('workout_session_id', 'event_id', name='uq_workout_session_event'),
    )


def downgrade() -> None:
    op.drop_table('workout_session_events')
    op.drop_table('workout_sets')
    op.drop_index('ix_workout_exercise_items_workout_group_id', table_name='workout_exercise_items')
    op.drop_table('workout_exercise_items')
    op.drop_index('ix_workout_groups_workout_session_id', table_name='workout_groups')
    op.drop_table('workout_groups')
    op.drop_index('ix_workout_sessions_user_status', table_name='workout_sessions')
    op.drop_index('uq_workout_sessions_user_active', table_name='workout_sessions')
    op.drop_table('workout_sessions')
