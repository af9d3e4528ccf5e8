"""create cooperative and fee tables

Revision ID: 3c9a1f0d7b21
Revises:
Create Date: 2026-10-18 09:12:40

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3c9a1f0d7b21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


org_status = sa.Enum('active', 'inactive', name='org_status')
# units.status 는 zones 에서 만든 org_status 타입을 재사용
unit_status = postgresql.ENUM('active', 'inactive', name='org_status', create_type=False)
user_role = sa.Enum('member', 'unit_leader', 'zone_leader', 'admin', name='user_role')
member_status = sa.Enum('active', 'inactive', 'suspended', name='member_status')
fee_type = sa.Enum('one_time', 'recurring', name='fee_type')
fee_frequency = sa.Enum('monthly', 'quarterly', 'annual', name='fee_frequency')
fee_applicable_to = sa.Enum('all', 'role', 'unit', 'zone', 'assigned_units', name='fee_applicable_to')
fee_rule_status = sa.Enum('draft', 'scheduled', 'active', 'inactive', name='fee_rule_status')
fee_application_status = sa.Enum('pending', 'paid', 'overdue', 'cancelled', name='fee_application_status')
payment_method = sa.Enum('cash', 'mobile_money', 'bank_transfer', 'other', name='payment_method')
fee_audit_action = sa.Enum(
    'create_rule', 'update_rule', 'delete_rule', 'schedule_rule',
    'activate_rule', 'deactivate_rule', 'record_payment', 'cancel_application',
    'assign_units', 'unassign_unit',
    name='fee_audit_action',
)


def upgrade() -> None:
    op.create_table(
        'zones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('status', org_status, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('zone_id', sa.Integer(), nullable=True),
        sa.Column('status', unit_status, nullable=False),
        sa.ForeignKeyConstraint(['zone_id'], ['zones.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )
    op.create_index('ix_units_zone_id', 'units', ['zone_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('status', member_status, nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone'),
    )
    op.create_index('ix_users_role_status', 'users', ['role', 'status'])
    op.create_index('ix_users_unit_id_status', 'users', ['unit_id', 'status'])

    op.create_table(
        'fee_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', fee_type, nullable=False),
        sa.Column('frequency', fee_frequency, nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('applicable_to', fee_applicable_to, nullable=False),
        sa.Column('target_value', sa.String(length=50), nullable=True),
        sa.Column('effective_date', sa.Date(), nullable=False),
        sa.Column('status', fee_rule_status, nullable=False),
        sa.Column('last_generated_on', sa.Date(), nullable=True),
        sa.Column('last_period', sa.String(length=7), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_fee_rules_status_effective_date', 'fee_rules', ['status', 'effective_date'])
    op.create_index('ix_fee_rules_is_deleted', 'fee_rules', ['is_deleted'])

    op.create_table(
        'fee_rule_unit_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('fee_rule_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('custom_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['fee_rule_id'], ['fee_rules.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('fee_rule_id', 'unit_id', name='uq_fee_rule_unit_assignments_rule_unit'),
    )
    op.create_index(
        'ix_fee_rule_unit_assignments_unit_id_is_active', 'fee_rule_unit_assignments', ['unit_id', 'is_active']
    )

    op.create_table(
        'fee_applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('fee_rule_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('period', sa.String(length=7), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', fee_application_status, nullable=False),
        sa.Column('paid_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', payment_method, nullable=True),
        sa.Column('payment_reference', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['fee_rule_id'], ['fee_rules.id']),
        sa.ForeignKeyConstraint(['member_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        # 동시 실행 중복 청구 방지용 멱등 키
        sa.UniqueConstraint('fee_rule_id', 'member_id', 'period', name='uq_fee_applications_rule_member_period'),
    )
    op.create_index('ix_fee_applications_member_id_status', 'fee_applications', ['member_id', 'status'])
    op.create_index('ix_fee_applications_fee_rule_id_status', 'fee_applications', ['fee_rule_id', 'status'])
    op.create_index('ix_fee_applications_due_date', 'fee_applications', ['due_date'])

    op.create_table(
        'fee_audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', fee_audit_action, nullable=False),
        sa.Column('fee_rule_id', sa.Integer(), nullable=True),
        sa.Column('fee_application_id', sa.Integer(), nullable=True),
        sa.Column('before_status', sa.String(length=20), nullable=True),
        sa.Column('after_status', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id']),
        sa.ForeignKeyConstraint(['fee_rule_id'], ['fee_rules.id']),
        sa.ForeignKeyConstraint(['fee_application_id'], ['fee_applications.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_fee_audit_logs_fee_rule_id', 'fee_audit_logs', ['fee_rule_id'])


def downgrade() -> None:
    op.drop_index('ix_fee_audit_logs_fee_rule_id', table_name='fee_audit_logs')
    op.drop_table('fee_audit_logs')

    op.drop_index('ix_fee_applications_due_date', table_name='fee_applications')
    op.drop_index('ix_fee_applications_fee_rule_id_status', table_name='fee_applications')
    op.drop_index('ix_fee_applications_member_id_status', table_name='fee_applications')
    op.drop_table('fee_applications')

    op.drop_index('ix_fee_rule_unit_assignments_unit_id_is_active', table_name='fee_rule_unit_assignments')
    op.drop_table('fee_rule_unit_assignments')

    op.drop_index('ix_fee_rules_is_deleted', table_name='fee_rules')
    op.drop_index('ix_fee_rules_status_effective_date', table_name='fee_rules')
    op.drop_table('fee_rules')

    op.drop_index('ix_users_unit_id_status', table_name='users')
    op.drop_index('ix_users_role_status', table_name='users')
    op.drop_table('users')

    op.drop_index('ix_units_zone_id', table_name='units')
    op.drop_table('units')
    op.drop_table('zones')

    bind = op.get_bind()
    for enum_type in (
        fee_audit_action, payment_method, fee_application_status, fee_rule_status,
        fee_applicable_to, fee_frequency, fee_type, member_status, user_role, org_status,
    ):
        enum_type.drop(bind, checkfirst=True)
