"""Membership schema: memberships, payments, audit log, seats with per-slot occupancy, facility settings.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "memberships",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False, server_default=""),
        sa.Column("address", sa.String(500), nullable=False, server_default=""),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("slot", sa.String(32), nullable=False),
        sa.Column("fee_status", sa.String(20), nullable=False, server_default="due"),
        sa.Column("registration_date", sa.Date(), nullable=False),
        sa.Column("next_due_date", sa.Date(), nullable=True),
        sa.Column("last_payment_date", sa.Date(), nullable=True),
        sa.Column("reminder_sent_for", sa.Date(), nullable=True),
        sa.Column("due_notice_sent_for", sa.Date(), nullable=True),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("fee_status IN ('paid', 'due', 'expired')", name="check_membership_fee_status"),
        sa.CheckConstraint("seat_number > 0", name="check_membership_seat_positive"),
    )
    op.create_index("ix_memberships_email", "memberships", ["email"])
    op.create_index("ix_memberships_active_due", "memberships", ["left_at", "next_due_date"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "membership_id", sa.String(32),
            sa.ForeignKey("memberships.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("paid_on", sa.Date(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("cycle_kind", sa.String(10), nullable=False),
        sa.Column("next_due_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        sa.CheckConstraint("cycle_kind IN ('full', 'partial')", name="check_payment_cycle_kind"),
    )
    op.create_index("ix_payments_membership_id", "payments", ["membership_id"])

    op.create_table(
        "membership_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("membership_id", sa.String(32), nullable=False),
        sa.Column("action", sa.String(500), nullable=False),
        sa.Column("actor", sa.String(64), nullable=False, server_default="system"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_membership_logs_membership_id", "membership_logs", ["membership_id"])

    op.create_table(
        "seats",
        sa.Column("number", sa.Integer(), primary_key=True, autoincrement=False),
        *_timestamps(),
        sa.CheckConstraint("number > 0", name="check_seat_number_positive"),
    )

    # One occupant per (seat, slot): the database-level guard against double-booking
    op.create_table(
        "seat_occupancies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "seat_number", sa.Integer(),
            sa.ForeignKey("seats.number", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("slot", sa.String(32), nullable=False),
        sa.Column("membership_id", sa.String(32), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="due"),
        *_timestamps(),
        sa.UniqueConstraint("seat_number", "slot", name="uq_seat_slot_occupancy"),
        sa.CheckConstraint("status IN ('paid', 'due', 'expired')", name="check_occupancy_status"),
    )
    op.create_index("ix_seat_occupancies_seat_number", "seat_occupancies", ["seat_number"])
    op.create_index("ix_seat_occupancies_membership_id", "seat_occupancies", ["membership_id"])

    op.create_table(
        "facility_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slot_pricing", sa.JSON(), nullable=False),
        sa.Column("slot_timings", sa.JSON(), nullable=False),
        sa.Column("templates", sa.JSON(), nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("facility_settings")
    op.drop_table("seat_occupancies")
    op.drop_table("seats")
    op.drop_table("membership_logs")
    op.drop_table("payments")
    op.drop_table("memberships")
