# alembic/versions/001_initial.py

"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('pool_config',
        sa.Column('pool_id', sa.String(length=64), nullable=False),
        sa.Column('target_ph', sa.Float(), nullable=False),
        sa.Column('tolerance', sa.Float(), nullable=False),
        sa.Column('volume_liters', sa.Float(), nullable=False),
        sa.Column('alkalinity_ppm', sa.Float(), nullable=True),
        sa.Column('acid_type', sa.String(length=16), nullable=False),
        sa.Column('disinfectant_type', sa.String(length=32), nullable=False),
        sa.Column('dosing_mode', sa.String(length=16), nullable=False),
        sa.Column('min_ph', sa.Float(), nullable=True),
        sa.Column('max_ph', sa.Float(), nullable=True),
        sa.Column('max_ph_change', sa.Float(), nullable=True),
        sa.Column('min_wait_hours', sa.Float(), nullable=True),
        sa.Column('max_daily_doses', sa.Integer(), nullable=True),
        sa.Column('pump_flow_rate', sa.Float(), nullable=True),
        sa.Column('max_dose_volume', sa.Float(), nullable=True),
        sa.Column('min_dose_volume', sa.Float(), nullable=True),
        sa.Column('correction_factor', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('pool_id')
    )
    op.create_index(op.f('ix_pool_config_dosing_mode'), 'pool_config', ['dosing_mode'], unique=False)

    op.create_table('sensor_reading',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pool_id', sa.String(length=64), nullable=False),
        sa.Column('ph', sa.Float(), nullable=False),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sensor_reading_pool_captured', 'sensor_reading', ['pool_id', 'captured_at'], unique=False)

    op.create_table('dosing_state',
        sa.Column('pool_id', sa.String(length=64), nullable=False),
        sa.Column('last_dosing_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_dosing_date', sa.Date(), nullable=True),
        sa.Column('dosing_count_today', sa.Integer(), nullable=False),
        sa.Column('last_product', sa.String(length=16), nullable=True),
        sa.Column('last_duration_seconds', sa.Integer(), nullable=True),
        sa.Column('last_ph', sa.Float(), nullable=True),
        sa.Column('last_deviation', sa.Float(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('pool_id')
    )

    op.create_table('dosing_command',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pool_id', sa.String(length=64), nullable=False),
        sa.Column('product', sa.String(length=16), nullable=False),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_dosing_command_pool_status', 'dosing_command', ['pool_id', 'status'], unique=False)

    op.create_table('cycle_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pool_id', sa.String(length=64), nullable=False),
        sa.Column('log_type', sa.String(length=16), nullable=False),
        sa.Column('outcome', sa.String(length=32), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('ph', sa.Float(), nullable=True),
        sa.Column('target_ph', sa.Float(), nullable=True),
        sa.Column('deviation', sa.Float(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cycle_log_pool_created', 'cycle_log', ['pool_id', 'created_at'], unique=False)

    op.create_table('pool_status',
        sa.Column('pool_id', sa.String(length=64), nullable=False),
        sa.Column('last_check', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_outcome', sa.String(length=32), nullable=False),
        sa.Column('last_level', sa.String(length=16), nullable=False),
        sa.Column('last_message', sa.Text(), nullable=False),
        sa.Column('current_ph', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('pool_id')
    )


def downgrade():
    op.drop_table('pool_status')
    op.drop_index('ix_cycle_log_pool_created', table_name='cycle_log')
    op.drop_table('cycle_log')
    op.drop_index('ix_dosing_command_pool_status', table_name='dosing_command')
    op.drop_table('dosing_command')
    op.drop_table('dosing_state')
    op.drop_index('ix_sensor_reading_pool_captured', table_name='sensor_reading')
    op.drop_table('sensor_reading')
    op.drop_index(op.f('ix_pool_config_dosing_mode'), table_name='pool_config')
    op.drop_table('pool_config')
