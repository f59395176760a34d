"""Initial ledger schema: tenancy, payments, corrections, month locks, audit

LEDGER MIGRATION:
1. Creates tenant root tables (tenants, branches, members)
2. Creates payments with the correction chain and version token
3. Creates idempotency_keys for safe create retries
4. Creates product_sales and revenue_month_locks read by reports
5. Creates append-only audit_events

Revision ID: gl001_initial_ledger
Revises:
Create Date: 2026-02-01
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'gl001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # STEP 1: Tenant root tables
    # ==========================================================================
    op.create_table('tenants',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('branches',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_branches_tenant_name')
    )
    op.create_index('ix_branches_tenant_id', 'branches', ['tenant_id'])

    op.create_table('members',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('branch_id', sa.String(length=36), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=False),
        sa.Column('last_name', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_members_tenant_id', 'members', ['tenant_id'])
    op.create_index('ix_members_branch_id', 'members', ['branch_id'])
    op.create_index('ix_members_tenant_branch', 'members', ['tenant_id', 'branch_id'])

    # ==========================================================================
    # STEP 2: Payments ledger
    # ==========================================================================
    op.create_table('payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('branch_id', sa.String(length=36), nullable=False),
        sa.Column('member_id', sa.String(length=36), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('paid_on', sa.DateTime(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('is_correction', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('corrected_payment_id', sa.String(length=36), nullable=True),
        sa.Column('is_corrected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('correction_reason', sa.String(length=500), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.ForeignKeyConstraint(['corrected_payment_id'], ['payments.id']),
        sa.CheckConstraint('amount_cents > 0 AND amount_cents <= 99999999', name='ck_payments_amount_range'),
        sa.CheckConstraint('version >= 0', name='ck_payments_version_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payments_tenant_id', 'payments', ['tenant_id'])
    op.create_index('ix_payments_branch_id', 'payments', ['branch_id'])
    op.create_index('ix_payments_member_id', 'payments', ['member_id'])
    op.create_index('ix_payments_paid_on', 'payments', ['paid_on'])
    op.create_index('ix_payments_payment_method', 'payments', ['payment_method'])
    op.create_index('ix_payments_is_correction', 'payments', ['is_correction'])
    op.create_index('ix_payments_is_corrected', 'payments', ['is_corrected'])
    op.create_index('ix_payments_corrected_payment_id', 'payments', ['corrected_payment_id'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])
    op.create_index('ix_payments_tenant_branch_paid_on', 'payments', ['tenant_id', 'branch_id', 'paid_on'])
    op.create_index('ix_payments_tenant_member', 'payments', ['tenant_id', 'member_id'])

    # ==========================================================================
    # STEP 3: Idempotency keys
    # ==========================================================================
    op.create_table('idempotency_keys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_idempotency_keys_key', 'idempotency_keys', ['key'], unique=True)
    op.create_index('ix_idempotency_keys_tenant_id', 'idempotency_keys', ['tenant_id'])
    op.create_index('ix_idempotency_keys_expires_at', 'idempotency_keys', ['expires_at'])

    # ==========================================================================
    # STEP 4: Report inputs
    # ==========================================================================
    op.create_table('product_sales',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('branch_id', sa.String(length=36), nullable=False),
        sa.Column('sold_at', sa.DateTime(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_product_sales_tenant_id', 'product_sales', ['tenant_id'])
    op.create_index('ix_product_sales_branch_id', 'product_sales', ['branch_id'])
    op.create_index('ix_product_sales_tenant_branch_sold_at', 'product_sales', ['tenant_id', 'branch_id', 'sold_at'])

    op.create_table('revenue_month_locks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('branch_id', sa.String(length=36), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('locked_at', sa.DateTime(), nullable=False),
        sa.Column('locked_by', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'branch_id', 'month', name='uq_revenue_month_locks_scope'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_revenue_month_locks_tenant_id', 'revenue_month_locks', ['tenant_id'])
    op.create_index('ix_revenue_month_locks_branch_id', 'revenue_month_locks', ['branch_id'])

    # ==========================================================================
    # STEP 5: Audit trail
    # ==========================================================================
    op.create_table('audit_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('branch_id', sa.String(length=36), nullable=True),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=False),
        sa.Column('actor_id', sa.String(length=36), nullable=True),
        sa.Column('correlation_id', sa.String(length=64), nullable=True),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_events_event_type', 'audit_events', ['event_type'])
    op.create_index('ix_audit_events_tenant_id', 'audit_events', ['tenant_id'])
    op.create_index('ix_audit_events_entity_id', 'audit_events', ['entity_id'])
    op.create_index('ix_audit_events_tenant_occurred', 'audit_events', ['tenant_id', 'occurred_at'])


def downgrade():
    op.drop_table('audit_events')
    op.drop_table('revenue_month_locks')
    op.drop_table('product_sales')
    op.drop_table('idempotency_keys')
    op.drop_table('payments')
    op.drop_table('members')
    op.drop_table('branches')
    op.drop_table('tenants')
