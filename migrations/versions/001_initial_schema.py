"""Initial schema: users, trips and call attempts

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    # Create users table, keyed by Telegram user id
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("chat_id", sa.BigInteger(), nullable=True),
        sa.Column("language", sa.Text(), server_default="en", nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("last_active_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create trips table
    op.create_table(
        "trips",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("mode", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("destination_name", sa.Text(), nullable=True),
        sa.Column("destination_lat", sa.Float(), nullable=True),
        sa.Column("destination_lng", sa.Float(), nullable=True),
        sa.Column("origin_lat", sa.Float(), nullable=True),
        sa.Column("origin_lng", sa.Float(), nullable=True),
        sa.Column("origin_station", sa.Text(), nullable=True),
        sa.Column("pnr", sa.Text(), nullable=True),
        sa.Column("train_number", sa.Text(), nullable=True),
        sa.Column("train_name", sa.Text(), nullable=True),
        sa.Column("journey_date", sa.Text(), nullable=True),
        sa.Column("departure_time", sa.Text(), nullable=True),
        sa.Column("arrival_time", sa.Text(), nullable=True),
        sa.Column("current_lat", sa.Float(), nullable=True),
        sa.Column("current_lng", sa.Float(), nullable=True),
        sa.Column("position_updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("current_station", sa.Text(), nullable=True),
        sa.Column("next_station", sa.Text(), nullable=True),
        sa.Column("stations_remaining", sa.Integer(), nullable=True),
        sa.Column("distance_remaining_km", sa.Float(), nullable=True),
        sa.Column("delay_minutes", sa.Integer(), nullable=True),
        sa.Column("progress_updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("alert_marked_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("confirmed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("outcome", sa.Text(), nullable=True),
        sa.Column("last_zone_notified", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trips_status_mode", "trips", ["status", "mode"], unique=False)
    op.create_index("ix_trips_alert_marked_at", "trips", ["alert_marked_at"], unique=False)
    op.create_index("ix_trips_user_id", "trips", ["user_id"], unique=False)

    # Create call_attempts table
    op.create_table(
        "call_attempts",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("trip_id", sa.BigInteger(), nullable=False),
        sa.Column("attempt_no", sa.Integer(), nullable=False),
        sa.Column("external_call_id", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("prompt_tier", sa.Text(), nullable=False),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("ended_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_call_id"),
    )
    op.create_index("ix_call_attempts_trip_id", "call_attempts", ["trip_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_call_attempts_trip_id", table_name="call_attempts")
    op.drop_table("call_attempts")
    op.drop_index("ix_trips_user_id", table_name="trips")
    op.drop_index("ix_trips_alert_marked_at", table_name="trips")
    op.drop_index("ix_trips_status_mode", table_name="trips")
    op.drop_table("trips")
    op.drop_table("users")
