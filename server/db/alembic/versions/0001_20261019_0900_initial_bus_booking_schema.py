"""Initial bus booking schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def _trip_columns() -> list[sa.Column]:
    return [
        sa.Column('bus_id', sa.Uuid(), nullable=False),
        sa.Column('trip_date', sa.String(length=10), nullable=False),
        sa.Column('departure_time', sa.String(length=5), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Buses and route fares
    op.create_table('buses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('route_from', sa.String(length=255), nullable=False),
        sa.Column('route_to', sa.String(length=255), nullable=False),
        sa.Column('operator_id', sa.String(length=128), nullable=False),
        sa.Column('seat_layout', sa.JSON(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('fee_type', sa.String(length=20), nullable=False),
        sa.Column('fee_value', sa.Numeric(precision=12, scale=2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='ck_bus_price_non_negative'),
        sa.CheckConstraint('fee_value >= 0', name='ck_bus_fee_value_non_negative'),
        sa.CheckConstraint("fee_type IN ('fixed', 'percentage')", name='ck_bus_fee_type_valid'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_buses_name'), 'buses', ['name'], unique=False)
    op.create_index(op.f('ix_buses_operator_id'), 'buses', ['operator_id'], unique=False)

    op.create_table('bus_fares',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('bus_id', sa.Uuid(), nullable=False),
        sa.Column('boarding_point', sa.String(length=255), nullable=False),
        sa.Column('dropping_point', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.CheckConstraint('price >= 0', name='ck_bus_fare_price_non_negative'),
        sa.ForeignKeyConstraint(['bus_id'], ['buses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bus_id', 'boarding_point', 'dropping_point', name='uq_bus_fare_route')
    )
    op.create_index(op.f('ix_bus_fares_bus_id'), 'bus_fares', ['bus_id'], unique=False)

    # Seat locks: one row per trip seat
    op.create_table('seat_locks',
        sa.Column('id', sa.Uuid(), nullable=False),
        *_trip_columns(),
        sa.Column('seat_number', sa.String(length=16), nullable=False),
        sa.Column('owner_key', sa.String(length=320), nullable=False),
        sa.Column('locked_by', sa.String(length=128), nullable=True),
        sa.Column('gender', sa.String(length=1), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('length(owner_key) > 0', name='ck_seat_lock_owner_key_not_empty'),
        sa.CheckConstraint('length(seat_number) > 0', name='ck_seat_lock_seat_number_not_empty'),
        sa.CheckConstraint("gender IS NULL OR gender IN ('M', 'F')", name='ck_seat_lock_gender_valid'),
        sa.ForeignKeyConstraint(['bus_id'], ['buses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bus_id', 'trip_date', 'departure_time', 'seat_number', name='uq_seat_lock_trip_seat')
    )
    op.create_index('ix_seat_locks_trip', 'seat_locks', ['bus_id', 'trip_date', 'departure_time'], unique=False)
    op.create_index(op.f('ix_seat_locks_expires_at'), 'seat_locks', ['expires_at'], unique=False)
    op.create_index(op.f('ix_seat_locks_owner_key'), 'seat_locks', ['owner_key'], unique=False)
    op.create_index(op.f('ix_seat_locks_locked_by'), 'seat_locks', ['locked_by'], unique=False)

    # Bookings and their occupied seats
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=True),
        sa.Column('booked_by', sa.String(length=128), nullable=True),
        *_trip_columns(),
        sa.Column('seats', sa.JSON(), nullable=False),
        sa.Column('seat_allocations', sa.JSON(), nullable=False),
        sa.Column('passengers', sa.JSON(), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=False),
        sa.Column('contact_mobile', sa.String(length=64), nullable=False),
        sa.Column('contact_nic', sa.String(length=64), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('boarding_point', sa.String(length=255), nullable=True),
        sa.Column('dropping_point', sa.String(length=255), nullable=True),
        sa.Column('price_per_seat', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('base_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('convenience_fee', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('is_manual', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('length(code) > 0', name='ck_booking_code_not_empty'),
        sa.CheckConstraint(
            "payment_status IN ('Pending', 'Paid', 'Manual', 'PaidToOperator')",
            name='ck_booking_payment_status_valid'
        ),
        sa.ForeignKeyConstraint(['bus_id'], ['buses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_code'), 'bookings', ['code'], unique=True)
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    op.create_index(op.f('ix_bookings_payment_status'), 'bookings', ['payment_status'], unique=False)
    op.create_index('ix_bookings_trip', 'bookings', ['bus_id', 'trip_date', 'departure_time'], unique=False)

    op.create_table('booked_seats',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        *_trip_columns(),
        sa.Column('seat_number', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bus_id', 'trip_date', 'departure_time', 'seat_number', name='uq_booked_seat_trip_seat')
    )
    op.create_index(op.f('ix_booked_seats_booking_id'), 'booked_seats', ['booking_id'], unique=False)

    # Audit trail
    op.create_table('audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_id', sa.String(length=128), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('length(event_type) > 0', name='ck_audit_log_event_type_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_actor_id'), 'audit_logs', ['actor_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_event_type'), 'audit_logs', ['event_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_created_at'), 'audit_logs', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('audit_logs')
    op.drop_table('booked_seats')
    op.drop_table('bookings')
    op.drop_table('seat_locks')
    op.drop_table('bus_fares')
    op.drop_table('buses')
