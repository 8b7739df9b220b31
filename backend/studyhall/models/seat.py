"""
Seat inventory and per-slot occupancy.

Key design decisions:
- Seats are provisioned once at bootstrap and never deleted by the engine
- Occupancy is a separate row per (seat_number, slot); the unique constraint
  is the final safety net against double-booking a seat in one slot
- occupancy.membership_id has no foreign key: the seat is claimed before the
  membership row is written during registration
"""

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from studyhall.db.base import Base, TimestampMixin


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    number = Column(Integer, primary_key=True, autoincrement=False)

    occupancies = relationship(
        "SeatOccupancy", back_populates="seat", cascade="all, delete-orphan", lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("number > 0", name="check_seat_number_positive"),
    )

    def __repr__(self) -> str:
        return f"<Seat(number={self.number}, occupied_slots={len(self.occupancies)})>"


class SeatOccupancy(Base, TimestampMixin):
    __tablename__ = "seat_occupancies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    seat_number = Column(Integer, ForeignKey("seats.number", ondelete="CASCADE"), nullable=False, index=True)
    slot = Column(String(32), nullable=False)
    membership_id = Column(String(32), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="due")  # paid, due, expired

    seat = relationship("Seat", back_populates="occupancies")

    __table_args__ = (
        UniqueConstraint("seat_number", "slot", name="uq_seat_slot_occupancy"),
        CheckConstraint("status IN ('paid', 'due', 'expired')", name="check_occupancy_status"),
    )
