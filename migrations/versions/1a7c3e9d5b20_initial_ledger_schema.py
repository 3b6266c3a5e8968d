"""Initial ledger schema: users, plans, user_plans, transactions, recharges, withdrawals"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9d5b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('mobile', sa.String(length=20), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('balance', sa.Numeric(precision=18, scale=2), server_default=sa.text('0.00'), nullable=False),
        sa.Column('total_invested', sa.Numeric(precision=18, scale=2), server_default=sa.text('0.00'), nullable=False),
        sa.Column('total_withdrawn', sa.Numeric(precision=18, scale=2), server_default=sa.text('0.00'), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('balance >= 0', name='ck_users_balance_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mobile'),
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_role'), ['role'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_created_at'), ['created_at'], unique=False)

    op.create_table(
        'plans',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('price', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('daily_income', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('total_return', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'user_plans',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('plan_id', sa.String(length=36), nullable=True),
        sa.Column('plan_name', sa.String(length=100), nullable=False),
        sa.Column('plan_price', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('daily_income', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('total_return', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('user_plans', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_plans_user_id'), ['user_id'], unique=False)
        batch_op.create_index('idx_user_plan_user_created', ['user_id', 'created_at'], unique=False)
        batch_op.create_index('idx_user_plan_status_end', ['status', 'end_date'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('balance_before', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('reference_id', sa.String(length=36), nullable=True),
        sa.Column('settlement_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_transactions_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id', 'settlement_date', name='uq_transactions_daily_income'),
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_transactions_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_reference_id'), ['reference_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_created_at'), ['created_at'], unique=False)
        batch_op.create_index('idx_transaction_user_type_created', ['user_id', 'type', 'created_at'], unique=False)

    op.create_table(
        'recharges',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('utr', sa.String(length=64), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('recharges', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_recharges_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_recharges_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_recharges_created_at'), ['created_at'], unique=False)

    op.create_table(
        'withdrawals',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('net_amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('method', sa.String(length=10), nullable=False),
        sa.Column('bank_name', sa.String(length=120), nullable=True),
        sa.Column('account_holder_name', sa.String(length=120), nullable=True),
        sa.Column('ifsc_code', sa.String(length=20), nullable=True),
        sa.Column('account_number', sa.String(length=34), nullable=True),
        sa.Column('upi_id', sa.String(length=120), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('withdrawals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_withdrawals_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_withdrawals_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_withdrawals_created_at'), ['created_at'], unique=False)
        batch_op.create_index('idx_withdrawal_user_status_created', ['user_id', 'status', 'created_at'], unique=False)


def downgrade():
    op.drop_table('withdrawals')
    op.drop_table('recharges')
    op.drop_table('transactions')
    op.drop_table('user_plans')
    op.drop_table('plans')
    op.drop_table('users')
