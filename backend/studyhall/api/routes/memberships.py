"""
Membership endpoints: registration, payments and admin lifecycle actions.
"""

from fastapi import APIRouter, Depends, status

from studyhall.api.deps import get_membership_service
from studyhall.schemas.cycle import FeePeriod, FeeSummary
from studyhall.schemas.membership import Membership, MembershipCreate, PaymentCreate, PaymentReceipt, SeatChange
from studyhall.services.membership_service import MembershipService

router = APIRouter(prefix="/memberships", tags=["Memberships"])


@router.post("/", response_model=Membership, status_code=status.HTTP_201_CREATED)
async def register_membership(
    data: MembershipCreate,
    service: MembershipService = Depends(get_membership_service),
):
    """
    Register a member on a seat and slot.

    The seat claim is arbitrated by SeatCoordinator: a concurrent registration
    for the same seat and slot gets 409 and must pick another seat.
    """
    return await service.register(data)


@router.get("/{membership_id}", response_model=Membership)
async def get_membership(membership_id: str, service: MembershipService = Depends(get_membership_service)):
    return await service.get(membership_id)


@router.delete("/{membership_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_membership(membership_id: str, service: MembershipService = Depends(get_membership_service)):
    await service.delete(membership_id)


@router.post("/{membership_id}/payments", response_model=PaymentReceipt, status_code=status.HTTP_201_CREATED)
async def record_payment(
    membership_id: str,
    data: PaymentCreate,
    service: MembershipService = Depends(get_membership_service),
):
    return await service.record_payment(membership_id, data.paid_on)


@router.get("/{membership_id}/fee-summary", response_model=FeeSummary)
async def fee_summary(membership_id: str, service: MembershipService = Depends(get_membership_service)):
    return await service.fee_summary(membership_id)


@router.get("/{membership_id}/fee-history", response_model=list[FeePeriod])
async def fee_history(membership_id: str, service: MembershipService = Depends(get_membership_service)):
    return await service.fee_history(membership_id)


@router.put("/{membership_id}/seat", response_model=Membership)
async def change_seat(
    membership_id: str,
    data: SeatChange,
    service: MembershipService = Depends(get_membership_service),
):
    return await service.change_seat(membership_id, data.seat_number)


@router.post("/{membership_id}/leave", response_model=Membership)
async def mark_left(membership_id: str, service: MembershipService = Depends(get_membership_service)):
    return await service.mark_left(membership_id)


@router.post("/{membership_id}/reactivate", response_model=Membership)
async def reactivate(
    membership_id: str,
    data: SeatChange,
    service: MembershipService = Depends(get_membership_service),
):
    return await service.reactivate(membership_id, data.seat_number)
