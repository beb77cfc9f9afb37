"""Monthly obligation endpoints: listing, wallet payment and gateway checkout"""

import uuid

from fastapi import APIRouter, Depends

from rental_gateway.api.dependencies import get_actor, get_scheduler
from rental_gateway.api.v1.schemas import (
    ConfirmPaymentRequest,
    ObligationListResponse,
    ObligationResponse,
    PaymentOrderResponse,
)
from rental_gateway.domain.models import Actor
from rental_gateway.services.obligations import ObligationScheduler

router = APIRouter()


@router.get("/bookings/{booking_id}/obligations", response_model=ObligationListResponse)
def list_booking_obligations(
    booking_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    scheduler: ObligationScheduler = Depends(get_scheduler),
):
    return ObligationListResponse(obligations=scheduler.list_for_booking(booking_id, actor))


@router.get("/obligations/pending", response_model=ObligationListResponse)
def list_pending_obligations(
    actor: Actor = Depends(get_actor),
    scheduler: ObligationScheduler = Depends(get_scheduler),
):
    return ObligationListResponse(obligations=scheduler.list_pending(actor))


@router.post("/obligations/{obligation_id}/pay", response_model=ObligationResponse)
def pay_obligation(
    obligation_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    scheduler: ObligationScheduler = Depends(get_scheduler),
):
    """
    Pay a pending obligation from the tenant's wallet.

    Returns the paid obligation; the next month's obligation is created in
    the same transaction.
    """
    return scheduler.pay(obligation_id, actor)


@router.post("/obligations/{obligation_id}/order", response_model=PaymentOrderResponse)
async def create_obligation_order(
    obligation_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    scheduler: ObligationScheduler = Depends(get_scheduler),
):
    order = await scheduler.create_order(obligation_id, actor)
    return PaymentOrderResponse(
        order_id=order.order_id,
        amount_minor=order.amount_minor,
        currency=order.currency,
        receipt=order.receipt,
        key_id=order.key_id,
    )


@router.post("/obligations/{obligation_id}/confirm", response_model=ObligationResponse)
def confirm_obligation_payment(
    obligation_id: uuid.UUID,
    request_body: ConfirmPaymentRequest,
    actor: Actor = Depends(get_actor),
    scheduler: ObligationScheduler = Depends(get_scheduler),
):
    """Settle an obligation from a signed checkout callback"""
    return scheduler.confirm_gateway_payment(
        obligation_id,
        actor,
        order_id=request_body.order_id,
        payment_id=request_body.payment_id,
        signature=request_body.signature,
    )
