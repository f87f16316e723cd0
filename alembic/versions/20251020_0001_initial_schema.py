"""initial schema: accounts, services, appointments, availability configs, blackout dates

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-10-20 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IdType = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        'accounts',
        sa.Column('id', IdType, autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('review_mode', sa.String(length=16), server_default='never', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_accounts'),
    )

    op.create_table(
        'services',
        sa.Column('id', IdType, autoincrement=True, nullable=False),
        sa.Column('account_id', IdType, nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration_min', sa.Integer(), server_default='30', nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE',
                                name='fk_services_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_services'),
    )
    op.create_index('ix_services_account_id', 'services', ['account_id'])

    op.create_table(
        'appointments',
        sa.Column('id', IdType, autoincrement=True, nullable=False),
        sa.Column('account_id', IdType, nullable=True),
        sa.Column('service_id', IdType, nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_min', sa.Integer(), server_default='30', nullable=False),
        sa.Column('status', sa.String(length=32), server_default='confirmed', nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=True),
        sa.Column('customer_phone', sa.String(length=20), nullable=True),
        sa.Column('customer_email', sa.String(length=254), nullable=True),
        sa.Column('appointment_type', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('duration_min > 0', name='ck_appointments_positive_duration'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE',
                                name='fk_appointments_account_id_accounts'),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ondelete='SET NULL',
                                name='fk_appointments_service_id_services'),
        sa.PrimaryKeyConstraint('id', name='pk_appointments'),
    )
    op.create_index('ix_appointments_account_id_starts_at', 'appointments', ['account_id', 'starts_at'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])

    op.create_table(
        'availability_configs',
        sa.Column('id', IdType, autoincrement=True, nullable=False),
        sa.Column('account_id', IdType, nullable=False),
        sa.Column('weekly_schedule', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE',
                                name='fk_availability_configs_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_availability_configs'),
    )
    op.create_index('ix_availability_configs_account_id_active', 'availability_configs',
                    ['account_id', 'is_active'])

    op.create_table(
        'blackout_dates',
        sa.Column('id', IdType, autoincrement=True, nullable=False),
        sa.Column('account_id', IdType, nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE',
                                name='fk_blackout_dates_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_blackout_dates'),
        sa.UniqueConstraint('account_id', 'date', name='uq_blackout_dates_account_id_date'),
    )


def downgrade() -> None:
    op.drop_table('blackout_dates')
    op.drop_index('ix_availability_configs_account_id_active', table_name='availability_configs')
    op.drop_table('availability_configs')
    op.drop_index('ix_appointments_status', table_name='appointments')
    op.drop_index('ix_appointments_account_id_starts_at', table_name='appointments')
    op.drop_table('appointments')
    op.drop_index('ix_services_account_id', table_name='services')
    op.drop_table('services')
    op.drop_table('accounts')
