"""
Membership model: one paying occupant of a seat in a time slot.

Key design decisions:
- registration_date anchors the 30-day billing cycle; reset only on reactivation
- fee_status is tracked state advanced by the reconciliation scheduler
- reminder_sent_for / due_notice_sent_for hold the due date a notice went out
  for, so repeated scheduler ticks never send the same notice twice
- left_at archives a membership instead of deleting it
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from studyhall.db.base import Base, TimestampMixin


class Membership(Base, TimestampMixin):
    __tablename__ = "memberships"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(32), nullable=False, default="")
    address = Column(String(500), nullable=False, default="")
    seat_number = Column(Integer, nullable=False)
    slot = Column(String(32), nullable=False)
    fee_status = Column(String(20), nullable=False, default="due")  # paid, due, expired
    registration_date = Column(Date, nullable=False)
    next_due_date = Column(Date, nullable=True)
    last_payment_date = Column(Date, nullable=True)
    reminder_sent_for = Column(Date, nullable=True)
    due_notice_sent_for = Column(Date, nullable=True)
    left_at = Column(DateTime(timezone=True), nullable=True)

    payments = relationship(
        "Payment", back_populates="membership", cascade="all, delete-orphan", lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("fee_status IN ('paid', 'due', 'expired')", name="check_membership_fee_status"),
        CheckConstraint("seat_number > 0", name="check_membership_seat_positive"),
        # Scheduler scans active memberships by due date
        Index("ix_memberships_active_due", "left_at", "next_due_date"),
    )

    def __repr__(self) -> str:
        return f"<Membership(id={self.id}, seat={self.seat_number}, slot={self.slot}, status={self.fee_status})>"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    membership_id = Column(String(32), ForeignKey("memberships.id", ondelete="CASCADE"), nullable=False, index=True)
    paid_on = Column(Date, nullable=False)
    amount = Column(Integer, nullable=False)
    cycle_kind = Column(String(10), nullable=False)  # full, partial
    next_due_date = Column(Date, nullable=False)

    membership = relationship("Membership", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        CheckConstraint("cycle_kind IN ('full', 'partial')", name="check_payment_cycle_kind"),
    )


class MembershipLog(Base):
    """Audit trail. No foreign key: entries outlive deleted memberships."""

    __tablename__ = "membership_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    membership_id = Column(String(32), nullable=False, index=True)
    action = Column(String(500), nullable=False)
    actor = Column(String(64), nullable=False, default="system")
    timestamp = Column(DateTime(timezone=True), nullable=False)
