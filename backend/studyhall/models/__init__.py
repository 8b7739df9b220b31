from studyhall.models.membership import Membership, Payment, MembershipLog
from studyhall.models.seat import Seat, SeatOccupancy
from studyhall.models.settings import FacilitySettings

__all__ = ["Membership", "Payment", "MembershipLog", "Seat", "SeatOccupancy", "FacilitySettings"]
