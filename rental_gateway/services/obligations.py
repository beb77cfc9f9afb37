"""Monthly obligation scheduler: generation, advancement and settlement of rent periods"""

import logging
import time
import uuid
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rental_gateway.domain.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from rental_gateway.domain.lifecycle import ensure_can_participate
from rental_gateway.domain.models import Actor, EventType, ObligationStatus, PaymentOrder
from rental_gateway.domain.schedule import first_due_date, is_within_term, next_due_date
from rental_gateway.infrastructure.database.models import Booking, MonthlyObligation
from rental_gateway.infrastructure.database.repositories import BookingRepository, ObligationRepository
from rental_gateway.infrastructure.observability.metrics import obligation_paid_counter
from rental_gateway.services.gateway import PaymentGateway
from rental_gateway.services.notifications import NotificationDispatcher
from rental_gateway.services.wallet import WalletLedger

logger = logging.getLogger(__name__)


class ObligationScheduler:
    """Creates and settles the monthly rent obligations of active bookings"""

    def __init__(
        self,
        db: Session,
        wallet: WalletLedger,
        dispatcher: NotificationDispatcher,
        gateway: Optional[PaymentGateway] = None,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.wallet = wallet
        self.dispatcher = dispatcher
        self.gateway = gateway
        self.today = today
        self.repo = ObligationRepository(db)
        self.bookings = BookingRepository(db)

    # Generation (no commit: runs inside the caller's unit of work)

    def first_obligation(self, booking: Booking) -> MonthlyObligation:
        """First period is due on the first of the activation month"""
        return self.repo.create_once(booking.id, first_due_date(self.today()), booking.monthly_rent)

    def advance(self, obligation: MonthlyObligation) -> Optional[MonthlyObligation]:
        """
        Create the successor of a paid obligation, one calendar month later.

        Idempotent: an existing obligation for that due date is returned as-is.
        No successor is created past an explicit booking end date.
        """
        if obligation.status != ObligationStatus.PAID:
            raise InvalidStateError("Only paid obligations can be advanced", current_state=obligation.status.value)

        booking = obligation.booking
        due = next_due_date(obligation.due_date)
        if not is_within_term(due, booking.end_date):
            return None
        return self.repo.create_once(booking.id, due, booking.monthly_rent)

    # Settlement

    def pay(self, obligation_id: uuid.UUID, actor: Actor) -> MonthlyObligation:
        """Settle an obligation from the tenant's wallet and schedule the next period"""
        obligation = self._get_payable(obligation_id, actor)
        booking = obligation.booking
        key = f"rent:{obligation.id}"

        self.wallet.debit_or_raise(
            booking.tenant_id,
            obligation.amount_due,
            f"Monthly rent for {obligation.due_date.isoformat()}",
            key,
        )

        obligation = self.repo.get(obligation.id, for_update=True)
        if obligation.status == ObligationStatus.PAID and obligation.payment_reference == f"wallet:{key}":
            # A concurrent pay settled it with the same debit we just replayed
            self.db.rollback()
            return obligation
        if obligation.status != ObligationStatus.PENDING:
            # Settled by a concurrent gateway confirmation after our first read
            status = obligation.status.value
            amount = obligation.amount_due
            self.db.rollback()
            self.wallet.credit(booking.tenant_id, amount, "Reversal of duplicate rent payment", f"{key}:reversal")
            raise InvalidStateError("Obligation is not pending", current_state=status)

        try:
            self._mark_paid(obligation, reference=f"wallet:{key}")
            self.db.commit()
        except Exception:
            # The debit stays recorded under its key; a retried pay replays it instead of charging again
            self.db.rollback()
            logger.exception("Rent payment debited but obligation update failed", extra={"obligation_id": str(obligation_id)})
            raise

        obligation_paid_counter.labels(channel="wallet").inc()
        self._notify_paid(obligation)
        return obligation

    async def create_order(self, obligation_id: uuid.UUID, actor: Actor) -> PaymentOrder:
        """
        Open a processor order for the amount due.

        The order id is stored on the obligation; only a callback for that
        order can settle it.
        """
        obligation = self._get_payable(obligation_id, actor)
        receipt = f"rent_{obligation.id.hex[:16]}_{int(time.time() * 1000)}"
        order = await self._gateway().create_order(obligation.amount_due, receipt)

        obligation = self.repo.get(obligation.id, for_update=True)
        if obligation.status != ObligationStatus.PENDING:
            status = obligation.status.value
            self.db.rollback()
            raise InvalidStateError("Obligation is not pending", current_state=status)

        try:
            obligation.gateway_order_id = order.order_id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Gateway order opened for obligation",
            extra={"obligation_id": str(obligation.id), "order_id": order.order_id},
        )
        return order

    def confirm_gateway_payment(
        self,
        obligation_id: uuid.UUID,
        actor: Actor,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> MonthlyObligation:
        """
        Mark an obligation paid after a verified processor callback.

        The callback must name the order opened for this obligation, and a
        processor payment settles at most one obligation.
        """
        obligation = self._get_visible(obligation_id, actor, tenant_only=True)

        self._gateway().verify_signature(order_id, payment_id, signature)

        obligation = self.repo.get(obligation.id, for_update=True)
        if obligation.status == ObligationStatus.PAID:
            if obligation.payment_reference == payment_id and obligation.gateway_order_id == order_id:
                return obligation
            raise InvalidStateError("Obligation is already paid", current_state=obligation.status.value)

        if obligation.gateway_order_id != order_id:
            raise ValidationError(
                "Payment order does not belong to this obligation",
                {"obligation_id": str(obligation.id), "order_id": order_id},
            )

        settled = self.repo.find_by_payment_reference(payment_id)
        if settled is not None:
            raise ValidationError(
                "Payment was already applied to another obligation",
                {"payment_id": payment_id, "obligation_id": str(settled.id)},
            )

        try:
            self._mark_paid(obligation, reference=payment_id)
            self.db.commit()
        except IntegrityError as e:
            # A concurrent confirmation recorded the same payment first
            self.db.rollback()
            raise ValidationError(
                "Payment was already applied to another obligation",
                {"payment_id": payment_id},
            ) from e
        except Exception:
            self.db.rollback()
            raise

        obligation_paid_counter.labels(channel="gateway").inc()
        self._notify_paid(obligation)
        return obligation

    # Queries

    def list_for_booking(self, booking_id: uuid.UUID, actor: Actor) -> List[MonthlyObligation]:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        ensure_can_participate(actor, booking.tenant_id, booking.owner_id)
        return self.repo.list_for_booking(booking.id)

    def list_pending(self, actor: Actor) -> List[MonthlyObligation]:
        return self.repo.list_pending_for_tenant(actor.user_id)

    # Helpers

    def _mark_paid(self, obligation: MonthlyObligation, reference: str) -> None:
        obligation.status = ObligationStatus.PAID
        obligation.paid_date = self.today()
        obligation.payment_reference = reference
        self.db.flush()
        self.advance(obligation)

    def _get_visible(self, obligation_id: uuid.UUID, actor: Actor, tenant_only: bool) -> MonthlyObligation:
        obligation = self.repo.get(obligation_id)
        if obligation is None:
            raise NotFoundError("Obligation", obligation_id)
        if tenant_only and not (actor.is_admin or obligation.booking.tenant_id == actor.user_id):
            raise AuthorizationError("You are not authorized to pay this rent", {"actor_id": str(actor.user_id)})
        return obligation

    def _get_payable(self, obligation_id: uuid.UUID, actor: Actor) -> MonthlyObligation:
        obligation = self._get_visible(obligation_id, actor, tenant_only=True)
        if obligation.status != ObligationStatus.PENDING:
            raise InvalidStateError("Obligation is not pending", current_state=obligation.status.value)
        return obligation

    def _gateway(self) -> PaymentGateway:
        if self.gateway is None:
            self.gateway = PaymentGateway()
        return self.gateway

    def _notify_paid(self, obligation: MonthlyObligation) -> None:
        booking = obligation.booking
        self.dispatcher.notify(
            booking.owner_id,
            EventType.PAYMENT_RECEIVED,
            "Payment Received",
            f"Rent payment of {obligation.amount_due} received for '{booking.property.title}'",
            "/bookings/owner",
        )
