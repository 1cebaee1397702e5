"""Initial schema: sites, catalogs, vouchers, details, events

Revision ID: 001
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('suffix', sa.String(length=8), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table(
        'sites',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('cost_center', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id')
    )
    for table in ('materials', 'unions', 'material_banks'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
    op.create_table(
        'rental_rates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('union_id', sa.Integer(), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('daily_rate', sa.Numeric(10, 2), nullable=True),
        sa.ForeignKeyConstraint(['union_id'], ['unions.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_rental_rates_union_id', 'rental_rates', ['union_id'])
    op.create_table(
        'bank_site_distances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bank_id', sa.Integer(), nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('distance_km', sa.Numeric(10, 2), nullable=False),
        sa.ForeignKeyConstraint(['bank_id'], ['material_banks.id']),
        sa.ForeignKeyConstraint(['site_id'], ['sites.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bank_id', 'site_id', name='uq_bank_site')
    )

    op.create_table(
        'vouchers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('folio', sa.String(), nullable=False),
        sa.Column('voucher_type', sa.String(), nullable=False),
        sa.Column('state', sa.String(), nullable=False, server_default='draft'),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('operator_name', sa.String(), nullable=False),
        sa.Column('vehicle_plate', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('verification_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['site_id'], ['sites.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_vouchers_folio', 'vouchers', ['folio'], unique=True)
    op.create_index('ix_vouchers_site_id', 'vouchers', ['site_id'])

    op.create_table(
        'material_details',
        sa.Column('voucher_id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('bank_id', sa.Integer(), nullable=False),
        sa.Column('capacity_m3', sa.Numeric(10, 2), nullable=False),
        sa.Column('distance_km', sa.Numeric(10, 2), nullable=False),
        sa.Column('requested_volume_m3', sa.Numeric(10, 2), nullable=False),
        sa.Column('weight_tons', sa.Numeric(10, 2), nullable=True),
        sa.ForeignKeyConstraint(['voucher_id'], ['vouchers.id']),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['bank_id'], ['material_banks.id']),
        sa.PrimaryKeyConstraint('voucher_id')
    )
    op.create_table(
        'rental_details',
        sa.Column('voucher_id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('union_id', sa.Integer(), nullable=False),
        sa.Column('rental_rate_id', sa.Integer(), nullable=True),
        sa.Column('capacity_m3', sa.Numeric(10, 2), nullable=False),
        sa.Column('trips', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('total_hours', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('daily_rate', sa.Numeric(10, 2), nullable=True),
        sa.ForeignKeyConstraint(['voucher_id'], ['vouchers.id']),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['union_id'], ['unions.id']),
        sa.ForeignKeyConstraint(['rental_rate_id'], ['rental_rates.id']),
        sa.PrimaryKeyConstraint('voucher_id')
    )

    op.create_table(
        'voucher_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('voucher_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['voucher_id'], ['vouchers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_voucher_events_voucher_id', 'voucher_events', ['voucher_id'])


def downgrade() -> None:
    op.drop_index('ix_voucher_events_voucher_id', table_name='voucher_events')
    op.drop_table('voucher_events')
    op.drop_table('rental_details')
    op.drop_table('material_details')
    op.drop_index('ix_vouchers_site_id', table_name='vouchers')
    op.drop_index('ix_vouchers_folio', table_name='vouchers')
    op.drop_table('vouchers')
    op.drop_table('bank_site_distances')
    op.drop_index('ix_rental_rates_union_id', table_name='rental_rates')
    op.drop_table('rental_rates')
    for table in ('material_banks', 'unions', 'materials'):
        op.drop_table(table)
    op.drop_table('sites')
    op.drop_table('companies')
