"""Initial schema - all tables

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

This migration creates all initial tables for FleetDesk:
- employees: User accounts with roles
- user_sessions: Authentication sessions
- projects: Allocation targets with optional budget and rate
- time_entries: Clock in/out records with breaks and project allocations
- approval_requests: Time adjustment requests awaiting an admin
- driving_journal_entries: Vehicle trips
- journal_changes: Append-only event log per trip
- notifications: In-app notifications
- audit_log: Change tracking
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Employees table
    op.create_table(
        'employees',
        sa.Column('employee_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='employee'),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('modified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('employee_id'),
    )
    op.create_index('ix_employees_email', 'employees', ['email'], unique=True)

    # User sessions table
    op.create_table(
        'user_sessions',
        sa.Column('session_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('session_token', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_activity_at', sa.DateTime(), nullable=True),
        sa.Column('logged_out_at', sa.DateTime(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.employee_id'], name='fk_user_sessions_employee'),
        sa.PrimaryKeyConstraint('session_id'),
    )
    op.create_index('ix_user_sessions_employee_id', 'user_sessions', ['employee_id'])
    op.create_index('ix_user_sessions_session_token', 'user_sessions', ['session_token'], unique=True)
    op.create_index('ix_user_sessions_employee_active', 'user_sessions', ['employee_id', 'is_active'])

    # Projects table
    op.create_table(
        'projects',
        sa.Column('project_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('project_code', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='planerat'),
        sa.Column('customer', sa.String(length=200), nullable=True),
        sa.Column('budget_hours', sa.Float(), nullable=True),
        sa.Column('hourly_rate', sa.Float(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('project_manager_email', sa.String(length=255), nullable=True),
        sa.Column('is_billable', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_invoiced', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('invoice_number', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('modified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('project_id'),
    )
    op.create_index('ix_projects_project_code', 'projects', ['project_code'], unique=True)

    # Time entries table
    op.create_table(
        'time_entries',
        sa.Column('entry_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('employee_email', sa.String(length=255), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('clock_in_time', sa.DateTime(), nullable=False),
        sa.Column('clock_out_time', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('breaks', sa.JSON(), nullable=False),
        sa.Column('break_started_at', sa.DateTime(), nullable=True),
        sa.Column('total_break_minutes', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_hours', sa.Float(), nullable=True),
        sa.Column('project_allocations', sa.JSON(), nullable=False),
        sa.Column('clock_in_location', sa.JSON(), nullable=True),
        sa.Column('clock_out_location', sa.JSON(), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('edit_reason', sa.String(length=500), nullable=True),
        sa.Column('edited_by', sa.String(length=255), nullable=True),
        sa.Column('edited_at', sa.DateTime(), nullable=True),
        sa.Column('anomaly_flag', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('anomaly_reason', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('modified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('entry_id'),
    )
    op.create_index('ix_time_entries_employee_email', 'time_entries', ['employee_email'])
    op.create_index('ix_time_entries_status', 'time_entries', ['status'])
    op.create_index('ix_time_entries_employee_date', 'time_entries', ['employee_email', 'date'])
    op.create_index('ix_time_entries_employee_status', 'time_entries', ['employee_email', 'status'])

    # Approval requests table
    op.create_table(
        'approval_requests',
        sa.Column('request_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('requester_email', sa.String(length=255), nullable=False),
        sa.Column('related_entity_id', sa.Integer(), nullable=False),
        sa.Column('related_entity_type', sa.String(length=50), nullable=False),
        sa.Column('original_data', sa.JSON(), nullable=False),
        sa.Column('requested_data', sa.JSON(), nullable=False),
        sa.Column('reason', sa.String(length=1000), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('reviewed_by', sa.String(length=255), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('review_comment', sa.String(length=1000), nullable=True),
        sa.Column('applied_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('modified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('request_id'),
    )
    op.create_index('ix_approval_requests_requester_email', 'approval_requests', ['requester_email'])
    op.create_index('ix_approval_requests_status', 'approval_requests', ['status'])
    op.create_index(
        'ix_approval_requests_related', 'approval_requests', ['related_entity_type', 'related_entity_id']
    )

    # Driving journal entries table
    op.create_table(
        'driving_journal_entries',
        sa.Column('trip_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('vehicle_id', sa.String(length=50), nullable=False),
        sa.Column('registration_number', sa.String(length=20), nullable=True),
        sa.Column('driver_email', sa.String(length=255), nullable=True),
        sa.Column('driver_name', sa.String(length=200), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('start_location', sa.JSON(), nullable=True),
        sa.Column('end_location', sa.JSON(), nullable=True),
        sa.Column('distance_km', sa.Float(), nullable=False, server_default='0'),
        sa.Column('duration_minutes', sa.Float(), nullable=True),
        sa.Column('trip_type', sa.String(length=10), nullable=False, server_default='väntar'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending_review'),
        sa.Column('purpose', sa.String(length=500), nullable=True),
        sa.Column('project_code', sa.String(length=50), nullable=True),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('customer', sa.String(length=200), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_manual', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('suggested_classification', sa.JSON(), nullable=True),
        sa.Column('anomaly_flag', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('anomaly_reason', sa.String(length=500), nullable=True),
        sa.Column('reviewed_by', sa.String(length=255), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('review_comment', sa.String(length=1000), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('modified_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ['project_id'], ['projects.project_id'],
            name='fk_journal_project', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('trip_id'),
    )
    op.create_index('ix_driving_journal_entries_vehicle_id', 'driving_journal_entries', ['vehicle_id'])
    op.create_index('ix_driving_journal_entries_trip_type', 'driving_journal_entries', ['trip_type'])
    op.create_index('ix_driving_journal_entries_status', 'driving_journal_entries', ['status'])
    op.create_index('ix_driving_journal_entries_is_deleted', 'driving_journal_entries', ['is_deleted'])
    op.create_index('ix_journal_driver_start', 'driving_journal_entries', ['driver_email', 'start_time'])
    op.create_index('ix_journal_vehicle_start', 'driving_journal_entries', ['vehicle_id', 'start_time'])

    # Journal change log table
    op.create_table(
        'journal_changes',
        sa.Column('change_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('changed_by', sa.String(length=255), nullable=False),
        sa.Column('change_type', sa.String(length=30), nullable=False),
        sa.Column('comment', sa.String(length=1000), nullable=True),
        sa.ForeignKeyConstraint(
            ['trip_id'], ['driving_journal_entries.trip_id'],
            name='fk_journal_changes_trip', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('change_id'),
        sa.UniqueConstraint('trip_id', 'sequence', name='uq_journal_changes_trip_sequence'),
    )
    op.create_index('ix_journal_changes_trip_id', 'journal_changes', ['trip_id'])

    # Notifications table
    op.create_table(
        'notifications',
        sa.Column('notification_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('recipient_email', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.String(length=2000), nullable=False),
        sa.Column('priority', sa.String(length=10), nullable=False, server_default='normal'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('related_entity_id', sa.Integer(), nullable=True),
        sa.Column('related_entity_type', sa.String(length=50), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('modified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('notification_id'),
    )
    op.create_index('ix_notifications_recipient_read', 'notifications', ['recipient_email', 'is_read'])

    # Audit log table
    op.create_table(
        'audit_log',
        sa.Column('audit_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('changed_fields', sa.String(length=500), nullable=True),
        sa.Column('old_values', sa.Text(), nullable=True),
        sa.Column('new_values', sa.Text(), nullable=True),
        sa.Column('performed_by', sa.String(length=255), nullable=False),
        sa.Column('performed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('context', sa.String(length=200), nullable=True),
        sa.PrimaryKeyConstraint('audit_id'),
    )
    op.create_index('ix_audit_log_table_name', 'audit_log', ['table_name'])
    op.create_index('ix_audit_log_record_id', 'audit_log', ['record_id'])
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_performed_by', 'audit_log', ['performed_by'])
    op.create_index('ix_audit_log_performed_at', 'audit_log', ['performed_at'])


def downgrade() -> None:
    # Drop in reverse order of creation (respecting foreign keys)
    op.drop_table('audit_log')
    op.drop_table('notifications')
    op.drop_table('journal_changes')
    op.drop_table('driving_journal_entries')
    op.drop_table('approval_requests')
    op.drop_table('time_entries')
    op.drop_table('projects')
    op.drop_table('user_sessions')
    op.drop_table('employees')
