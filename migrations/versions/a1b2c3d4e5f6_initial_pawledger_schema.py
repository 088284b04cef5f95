"""Initial PawLedger schema: tenants, clients, pets, appointments, loyalty ledger.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create core tables."""
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('business_type', sa.String(20), server_default='veterinary'),
        sa.Column('subscription_plan', sa.String(50), server_default='zoovia_plan'),
        sa.Column('subscription_status', sa.String(20), server_default='active'),
        sa.Column('subscription_modules', sa.JSON(), nullable=True),
        sa.Column('loyalty_program', sa.JSON(), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), server_default=''),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('identification_number', sa.String(50), nullable=True),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('loyalty_total_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('loyalty_total_redeemed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('loyalty_total_expired', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('loyalty_tier', sa.String(20), nullable=False, server_default='bronze'),
        sa.Column('loyalty_enrolled_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_clients_tenant', 'clients', ['tenant_id'])

    op.create_table(
        'pets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('species', sa.String(20), server_default='dog'),
        sa.Column('breed', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('pet_id', sa.Integer(), nullable=False),
        sa.Column('client_name', sa.String(255), nullable=True),
        sa.Column('pet_name', sa.String(100), nullable=True),
        sa.Column('pet_species', sa.String(20), nullable=True),
        sa.Column('created_by', sa.String(100), nullable=False),
        sa.Column('date', sa.String(10), nullable=False),
        sa.Column('scheduled_time', sa.String(5), nullable=True),
        sa.Column('arrival_time', sa.String(5), nullable=True),
        sa.Column('start_time', sa.String(5), nullable=True),
        sa.Column('end_time', sa.String(5), nullable=True),
        sa.Column('reason', sa.String(500), server_default=''),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_walk_in', sa.Boolean(), server_default=sa.false()),
        sa.Column('priority', sa.String(10), server_default='normal'),
        sa.Column('service_type', sa.String(20), server_default='visit'),
        sa.Column('status', sa.String(20), nullable=False, server_default='scheduled'),
        sa.Column('loyalty_awarded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('loyalty_award_error', sa.String(500), nullable=True),
        sa.Column('loyalty_award_failures', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['pet_id'], ['pets.id']),
    )
    op.create_index('ix_appointments_tenant_date', 'appointments', ['tenant_id', 'date'])
    op.create_index('ix_appointments_tenant_status', 'appointments', ['tenant_id', 'status', 'loyalty_awarded'])

    op.create_table(
        'loyalty_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(30), nullable=True),
        sa.Column('reference_id', sa.String(100), nullable=True),
        sa.Column('description', sa.String(500), server_default=''),
        sa.Column('created_by', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
    )
    op.create_index(
        'ix_loyalty_tx_tenant_client_created', 'loyalty_transactions',
        ['tenant_id', 'client_id', 'created_at']
    )
    op.create_index('ix_loyalty_tx_reference', 'loyalty_transactions', ['reference_type', 'reference_id'])


def downgrade():
    """Drop core tables."""
    op.drop_index('ix_loyalty_tx_reference', table_name='loyalty_transactions')
    op.drop_index('ix_loyalty_tx_tenant_client_created', table_name='loyalty_transactions')
    op.drop_table('loyalty_transactions')
    op.drop_index('ix_appointments_tenant_status', table_name='appointments')
    op.drop_index('ix_appointments_tenant_date', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('pets')
    op.drop_index('ix_clients_tenant', table_name='clients')
    op.drop_table('clients')
    op.drop_table('tenants')
