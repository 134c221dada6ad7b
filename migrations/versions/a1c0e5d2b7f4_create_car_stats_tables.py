"""Create vehicle, record, travel and car summary tables

Revision ID: a1c0e5d2b7f4
Revises:
Create Date: 2026-10-18 10:12:41.552107

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c0e5d2b7f4'
down_revision = None
branch_labels = None
depends_on = None


def _amount(name, nullable=False):
    if nullable:
        return sa.Column(name, sa.Numeric(precision=19, scale=4), nullable=True)
    return sa.Column(name, sa.Numeric(precision=19, scale=4), nullable=False, server_default='0')


def _counter(name):
    return sa.Column(name, sa.Integer(), nullable=False, server_default='0')


def upgrade():
    op.create_table('vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=True),
        sa.Column('make', sa.String(length=50), nullable=True),
        sa.Column('model', sa.String(length=50), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('registration', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('expense_kinds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('is_maintenance', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('revenue_kinds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Transactional records
    op.create_table('expense_bases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('record_type', sa.Integer(), nullable=False),
        sa.Column('home_currency', sa.String(length=3), nullable=False),
        sa.Column('when_done', sa.DateTime(), nullable=False),
        _amount('odometer', nullable=True),
        _amount('total_price', nullable=True),
        _amount('total_price_hc', nullable=True),
        _amount('fees_hc', nullable=True),
        _amount('tax_hc', nullable=True),
        sa.Column('status', sa.Integer(), nullable=False),
        sa.Column('removed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_expense_bases_vehicle_currency_when', 'expense_bases',
                    ['vehicle_id', 'home_currency', 'when_done'], unique=False)
    op.create_table('refuels',
        sa.Column('id', sa.Integer(), nullable=False),
        _amount('volume', nullable=True),
        _amount('price_per_volume', nullable=True),
        sa.Column('is_full_tank', sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(['id'], ['expense_bases.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind_id', sa.Integer(), nullable=False),
        _amount('labor_cost', nullable=True),
        _amount('parts_cost', nullable=True),
        sa.Column('is_maintenance', sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(['id'], ['expense_bases.id'], ),
        sa.ForeignKeyConstraint(['kind_id'], ['expense_kinds.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('revenues',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind_id', sa.Integer(), nullable=False),
        _amount('amount', nullable=True),
        sa.ForeignKeyConstraint(['id'], ['expense_bases.id'], ),
        sa.ForeignKeyConstraint(['kind_id'], ['revenue_kinds.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('travels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Integer(), nullable=False),
        _amount('first_odometer', nullable=True),
        _amount('last_odometer', nullable=True),
        _amount('distance_km', nullable=True),
        sa.Column('first_dttm', sa.DateTime(), nullable=True),
        sa.Column('last_dttm', sa.DateTime(), nullable=True),
        sa.Column('purpose', sa.String(length=64), nullable=True),
        sa.Column('destination', sa.String(length=128), nullable=True),
        sa.Column('removed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_travels_vehicle', 'travels', ['vehicle_id'], unique=False)

    # Summaries
    op.create_table('car_total_summaries',
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('home_currency', sa.String(length=3), nullable=False),
        _amount('latest_known_mileage'),
        sa.Column('latest_refuel_id', sa.Integer(), nullable=True),
        sa.Column('latest_expense_id', sa.Integer(), nullable=True),
        sa.Column('latest_revenue_id', sa.Integer(), nullable=True),
        sa.Column('latest_travel_id', sa.Integer(), nullable=True),
        _counter('total_refuels_count'),
        _counter('total_expenses_count'),
        _counter('total_revenues_count'),
        _counter('total_checkpoints_count'),
        _counter('total_maintenance_count'),
        _counter('total_travels_count'),
        _amount('refuels_taxes'),
        _amount('total_refuels_cost'),
        _amount('total_refuels_volume'),
        _amount('expenses_fees'),
        _amount('expenses_taxes'),
        _amount('total_expenses_cost'),
        _amount('total_maintenance_cost'),
        _amount('total_revenues_amount'),
        _amount('total_travels_distance'),
        sa.Column('first_refuel_id', sa.Integer(), nullable=True),
        _amount('first_refuel_odometer', nullable=True),
        _amount('first_refuel_volume', nullable=True),
        _amount('consumption_volume'),
        _amount('consumption_distance'),
        sa.Column('first_record_at', sa.DateTime(), nullable=True),
        sa.Column('last_record_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
        sa.PrimaryKeyConstraint('vehicle_id', 'home_currency')
    )
    op.create_table('car_monthly_summaries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('home_currency', sa.String(length=3), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        _amount('start_mileage', nullable=True),
        _amount('end_mileage', nullable=True),
        _counter('refuels_count'),
        _counter('expenses_count'),
        _counter('revenues_count'),
        _counter('checkpoints_count'),
        _counter('maintenance_count'),
        _counter('travels_count'),
        _amount('refuels_taxes'),
        _amount('refuels_cost'),
        _amount('refuels_volume'),
        _amount('expenses_fees'),
        _amount('expenses_taxes'),
        _amount('expenses_cost'),
        _amount('maintenance_cost'),
        _amount('revenues_amount'),
        _amount('travels_distance'),
        _amount('consumption_volume'),
        sa.Column('is_first_refuel_month', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('first_record_at', sa.DateTime(), nullable=True),
        sa.Column('last_record_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vehicle_id', 'home_currency', 'year', 'month', name='unique_vehicle_currency_month')
    )
    op.create_index('idx_car_monthly_summaries_vehicle_currency', 'car_monthly_summaries',
                    ['vehicle_id', 'home_currency'], unique=False)

    # Per-kind breakdowns
    for name, kind_table in (('expenses', 'expense_kinds'), ('revenues', 'revenue_kinds')):
        op.create_table(f'car_total_{name}',
            sa.Column('vehicle_id', sa.Integer(), nullable=False),
            sa.Column('home_currency', sa.String(length=3), nullable=False),
            sa.Column('kind_id', sa.Integer(), nullable=False),
            _counter('records_count'),
            _amount('amount'),
            sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
            sa.ForeignKeyConstraint(['kind_id'], [f'{kind_table}.id'], ),
            sa.PrimaryKeyConstraint('vehicle_id', 'home_currency', 'kind_id')
        )
        op.create_table(f'car_monthly_{name}',
            sa.Column('monthly_summary_id', sa.Integer(), nullable=False),
            sa.Column('kind_id', sa.Integer(), nullable=False),
            _counter('records_count'),
            _amount('amount'),
            sa.ForeignKeyConstraint(['monthly_summary_id'], ['car_monthly_summaries.id'], ),
            sa.ForeignKeyConstraint(['kind_id'], [f'{kind_table}.id'], ),
            sa.PrimaryKeyConstraint('monthly_summary_id', 'kind_id')
        )


def downgrade():
    for name in ('revenues', 'expenses'):
        op.drop_table(f'car_monthly_{name}')
        op.drop_table(f'car_total_{name}')
    op.drop_index('idx_car_monthly_summaries_vehicle_currency', table_name='car_monthly_summaries')
    op.drop_table('car_monthly_summaries')
    op.drop_table('car_total_summaries')
    op.drop_index('idx_travels_vehicle', table_name='travels')
    op.drop_table('travels')
    op.drop_table('revenues')
    op.drop_table('expenses')
    op.drop_table('refuels')
    op.drop_index('idx_expense_bases_vehicle_currency_when', table_name='expense_bases')
    op.drop_table('expense_bases')
    op.drop_table('revenue_kinds')
    op.drop_table('expense_kinds')
    op.drop_table('vehicles')
