"""Booking endpoints: request, approval workflow, cancellation, termination and listings"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from rental_gateway.api.dependencies import get_actor, get_lifecycle
from rental_gateway.api.v1.schemas import (
    ApproveRequest,
    BookingCreateRequest,
    BookingListResponse,
    BookingResponse,
    CancelRequest,
    ExtendRequest,
    RejectRequest,
    TerminateRequest,
)
from rental_gateway.domain.models import Actor
from rental_gateway.services.bookings import BookingLifecycle

router = APIRouter()


@router.post("/bookings", response_model=BookingResponse, status_code=201)
def create_booking(
    request_body: BookingCreateRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """
    Request a tenancy on a property.

    The security deposit is escrowed from the caller's wallet before the
    booking is stored; the booking waits in PENDING_APPROVAL for the owner.
    """
    return lifecycle.create(
        actor,
        property_id=request_body.property_id,
        start_date=request_body.start_date,
        end_date=request_body.end_date,
        monthly_rent=request_body.monthly_rent,
        security_deposit=request_body.security_deposit,
        idempotency_key=request_body.idempotency_key,
    )


# Static paths are registered before /bookings/{booking_id}


@router.get("/bookings/tenant", response_model=BookingListResponse)
def list_tenant_bookings(
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return BookingListResponse(bookings=lifecycle.list_for_tenant(actor))


@router.get("/bookings/owner", response_model=BookingListResponse)
def list_owner_bookings(
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return BookingListResponse(bookings=lifecycle.list_for_owner(actor))


@router.get("/bookings/pending-approvals", response_model=BookingListResponse)
def list_pending_approvals(
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return BookingListResponse(bookings=lifecycle.list_pending_approvals(actor))


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return lifecycle.get(booking_id, actor)


@router.post("/bookings/{booking_id}/approve", response_model=BookingResponse)
def approve_booking(
    booking_id: uuid.UUID,
    request_body: Optional[ApproveRequest] = None,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """Activate the booking; creates the first monthly obligation"""
    request_body = request_body or ApproveRequest()
    return lifecycle.approve(
        booking_id,
        actor,
        monthly_rent=request_body.monthly_rent,
        security_deposit=request_body.security_deposit,
    )


@router.post("/bookings/{booking_id}/reject", response_model=BookingResponse)
def reject_booking(
    booking_id: uuid.UUID,
    request_body: Optional[RejectRequest] = None,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    request_body = request_body or RejectRequest()
    return lifecycle.reject(booking_id, actor, reason=request_body.reason)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: uuid.UUID,
    request_body: Optional[CancelRequest] = None,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    request_body = request_body or CancelRequest()
    return lifecycle.cancel(
        booking_id,
        actor,
        reason=request_body.reason,
        refund_deposit=request_body.refund_deposit,
    )


@router.post("/bookings/{booking_id}/terminate", response_model=BookingResponse)
def terminate_booking(
    booking_id: uuid.UUID,
    request_body: Optional[TerminateRequest] = None,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    request_body = request_body or TerminateRequest()
    return lifecycle.terminate(
        booking_id,
        actor,
        reason=request_body.reason,
        termination_date=request_body.termination_date,
        refund_deposit=request_body.refund_deposit,
    )


@router.post("/bookings/{booking_id}/extend", response_model=BookingResponse)
def extend_booking(
    booking_id: uuid.UUID,
    request_body: ExtendRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return lifecycle.extend(
        booking_id,
        actor,
        new_end_date=request_body.new_end_date,
        reason=request_body.reason,
        monthly_rent=request_body.monthly_rent,
    )
