"""Recurring engine schema: task and recurring_completion tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None  # This is the first migration
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'task',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('uid', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('note', sa.String(length=5000), nullable=True),
        sa.Column('priority', sa.String(length=20), nullable=False, server_default='medium'),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='not_started'),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        # No foreign key: a missing template must surface as an ambiguous parent
        sa.Column('recurring_parent_id', sa.Integer(), nullable=True),
        sa.Column('recurrence_type', sa.String(length=30), nullable=False, server_default='none'),
        sa.Column('recurrence_interval', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('recurrence_weekdays', sa.JSON(), nullable=True),
        sa.Column('recurrence_weekday', sa.Integer(), nullable=True),
        sa.Column('recurrence_month_day', sa.Integer(), nullable=True),
        sa.Column('recurrence_week_of_month', sa.Integer(), nullable=True),
        sa.Column('recurrence_end_date', sa.Date(), nullable=True),
        sa.Column('completion_based', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('series_state', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('recurrence_refresh_pending', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    # Create indexes for improved performance
    op.create_index('ix_task_uid', 'task', ['uid'], unique=True)
    op.create_index('ix_task_project_id', 'task', ['project_id'])
    op.create_index('ix_task_due_date', 'task', ['due_date'])
    op.create_index('ix_task_status', 'task', ['status'])
    op.create_index('ix_task_recurring_parent_id', 'task', ['recurring_parent_id'])

    op.create_table(
        'recurring_completion',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('instance_id', sa.Integer(), nullable=True),
        sa.Column('original_due_date', sa.Date(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.Column('skipped', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_recurring_completion_task_id', 'recurring_completion', ['task_id'])


def downgrade():
    op.drop_index('ix_recurring_completion_task_id', table_name='recurring_completion')
    op.drop_table('recurring_completion')

    op.drop_index('ix_task_recurring_parent_id', table_name='task')
    op.drop_index('ix_task_status', table_name='task')
    op.drop_index('ix_task_due_date', table_name='task')
    op.drop_index('ix_task_project_id', table_name='task')
    op.drop_index('ix_task_uid', table_name='task')
    op.drop_table('task')
