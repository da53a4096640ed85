"""initial payleave schema (roster mirror, punches, leave ledger, salary structures)

Revision ID: 4f1a9c2e7b10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1a9c2e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _component_table(name: str):
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('calculation_percentage', sa.Numeric(8, 3), nullable=True),
        sa.Column('based_on', sa.String(length=10), nullable=False, server_default='Basic'),
        sa.Column('max_calculated_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )


def upgrade() -> None:
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=80), nullable=False),
        sa.Column('last_name', sa.String(length=80), nullable=True),
        sa.Column('department', sa.String(length=120), nullable=True),
        sa.Column('location', sa.String(length=120), nullable=True),
        sa.Column('gender', sa.String(length=16), nullable=True),
        sa.Column('doj', sa.Date(), nullable=True),
        sa.Column('dol', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_emp_department', 'employees', ['department'])
    op.create_index('ix_emp_status', 'employees', ['status'])

    op.create_table(
        'attendance_punches',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('employee_code', sa.String(length=32), nullable=False),
        sa.Column('ts', sa.DateTime(), nullable=False),
        sa.Column('direction', sa.String(length=8), nullable=True),
        sa.Column('method', sa.String(length=16), nullable=True),
        sa.Column('device_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('employee_code', 'ts', 'direction', name='uq_punch_employee_ts_dir'),
    )
    op.create_index('ix_attendance_punches_employee_code', 'attendance_punches', ['employee_code'])
    op.create_index('ix_attendance_punches_ts', 'attendance_punches', ['ts'])
    op.create_index('ix_punch_employee_ts', 'attendance_punches', ['employee_code', 'ts'])

    op.create_table(
        'weekly_off_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('off_type', sa.String(length=20), nullable=False, server_default='Fix Day'),
        sa.Column('days', sa.JSON(), nullable=False),
        sa.Column('monthly_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sandwich_rule', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('effective_from', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'leave_types',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=20), nullable=False, unique=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('gender_applicability', sa.String(length=10), nullable=False, server_default='All'),
        sa.Column('frequency', sa.String(length=20), nullable=False, server_default='Yearly'),
        sa.Column('carry_forward', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('encashable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_comp_off', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'leave_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('leave_type_code', sa.String(length=20),
                  sa.ForeignKey('leave_types.code', ondelete='CASCADE'), nullable=False),
        sa.Column('eligibility_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('allocation_type', sa.String(length=30), nullable=False, server_default='Fixed'),
        sa.Column('min_working_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('auto_add_frequency', sa.String(length=20), nullable=False, server_default='Yearly'),
        sa.Column('auto_remove_frequency', sa.String(length=20), nullable=False, server_default='Yearly'),
        sa.Column('eligibility_scope', sa.String(length=30), nullable=False, server_default='Global'),
        sa.Column('scope_value', sa.Text(), nullable=False, server_default='All'),
        sa.Column('allocated_count', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='active'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_leave_rules_leave_type_code', 'leave_rules', ['leave_type_code'])

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_code', sa.String(length=32), nullable=False),
        sa.Column('employee_name', sa.String(length=200), nullable=True),
        sa.Column('leave_type', sa.String(length=20), nullable=False),
        sa.Column('opening', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('used', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('remaining', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('employee_code', 'leave_type', name='uq_leave_balance_emp_type'),
        sa.CheckConstraint('remaining >= 0', name='ck_leave_balance_non_negative'),
    )
    op.create_index('ix_leave_balances_employee_code', 'leave_balances', ['employee_code'])

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_code', sa.String(length=32), nullable=False),
        sa.Column('employee_name', sa.String(length=200), nullable=True),
        sa.Column('leave_type', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Pending'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_leave_requests_employee_code', 'leave_requests', ['employee_code'])

    op.create_table(
        'leave_applications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_code', sa.String(length=32), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('leave_type', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False, server_default='request'),
        sa.Column('leave_request_id', sa.Integer(),
                  sa.ForeignKey('leave_requests.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('employee_code', 'date', name='uq_leave_application_emp_date'),
    )
    op.create_index('ix_leave_application_date', 'leave_applications', ['date'])

    op.create_table(
        'leave_approval_actions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('leave_request_id', sa.Integer(),
                  sa.ForeignKey('leave_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('acted_by', sa.String(length=64), nullable=True),
        sa.Column('acted_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_leave_approval_actions_leave_request_id', 'leave_approval_actions', ['leave_request_id'])

    _component_table('earning_components')
    _component_table('deduction_components')
    _component_table('employer_additional_components')

    op.create_table(
        'salary_structures',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('monthly_gross', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('basic_salary', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('ctc', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('earnings_breakdown', sa.JSON(), nullable=False),
        sa.Column('deductions_breakdown', sa.JSON(), nullable=False),
        sa.Column('employer_additional_breakdown', sa.JSON(), nullable=False),
        sa.Column('total_earnings', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_deductions', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_employer_additional', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('net_salary', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('is_overridden', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('derived_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('salary_structures')
    op.drop_table('employer_additional_components')
    op.drop_table('deduction_components')
    op.drop_table('earning_components')
    op.drop_index('ix_leave_approval_actions_leave_request_id', table_name='leave_approval_actions')
    op.drop_table('leave_approval_actions')
    op.drop_index('ix_leave_application_date', table_name='leave_applications')
    op.drop_table('leave_applications')
    op.drop_index('ix_leave_requests_employee_code', table_name='leave_requests')
    op.drop_table('leave_requests')
    op.drop_index('ix_leave_balances_employee_code', table_name='leave_balances')
    op.drop_table('leave_balances')
    op.drop_index('ix_leave_rules_leave_type_code', table_name='leave_rules')
    op.drop_table('leave_rules')
    op.drop_table('leave_types')
    op.drop_table('weekly_off_settings')
    op.drop_index('ix_punch_employee_ts', table_name='attendance_punches')
    op.drop_index('ix_attendance_punches_ts', table_name='attendance_punches')
    op.drop_index('ix_attendance_punches_employee_code', table_name='attendance_punches')
    op.drop_table('attendance_punches')
    op.drop_index('ix_emp_status', table_name='employees')
    op.drop_index('ix_emp_department', table_name='employees')
    op.drop_table('employees')
