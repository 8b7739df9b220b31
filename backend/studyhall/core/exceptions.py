"""Exceptions raised by the membership engine."""

from typing import Optional


class StudyHallError(Exception):
    """Base exception for study hall errors."""
    pass


class CycleValidationError(StudyHallError, ValueError):
    """Raised when billing cycle inputs are malformed (bad dates, negative prices)."""
    pass


class MembershipNotFoundError(StudyHallError):
    """Raised when a membership id doesn't exist."""

    def __init__(self, membership_id: str):
        super().__init__(f"Membership {membership_id} not found")
        self.membership_id = membership_id


class SeatNotFoundError(StudyHallError):
    """Raised when a seat number was never provisioned."""

    def __init__(self, seat_number: int):
        super().__init__(f"Seat {seat_number} not found")
        self.seat_number = seat_number


class SeatUnavailableError(StudyHallError):
    """Raised by the registration path when a seat reservation conflicts."""

    def __init__(self, seat_number: int, slot: str, occupant_id: Optional[str] = None):
        super().__init__(f"Seat {seat_number} is no longer available for the {slot} slot")
        self.seat_number = seat_number
        self.slot = slot
        self.occupant_id = occupant_id


class StoreUnavailableError(StudyHallError):
    """Raised when persistence cannot be reached or a write fails."""
    pass


class NotificationError(StudyHallError):
    """Raised by notifier implementations when delivery fails."""
    pass


class InvalidSlotError(StudyHallError, ValueError):
    """Raised when a slot has no entry in the facility price table."""

    def __init__(self, slot: str):
        super().__init__(f"Unknown slot {slot!r}")
        self.slot = slot


class MembershipStateError(StudyHallError):
    """Raised when an action does not apply to the membership's lifecycle state."""
    pass
