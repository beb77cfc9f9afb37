"""Booking lifecycle manager: creation, approval workflow and termination of rent bookings

Every public operation takes the caller's identity explicitly, checks
authorization and state before any mutation, and runs as one unit of work on
the booking store. Wallet movements commit on the ledger's own session, so
when a later booking write fails the wallet effect is undone with a
compensating entry instead of a shared transaction.
"""

import logging
import time
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from rental_gateway.config import settings
from rental_gateway.domain.conflicts import effective_end, find_conflicts
from rental_gateway.domain.exceptions import ConflictError, InsufficientFundsError, NotFoundError, ValidationError
from rental_gateway.domain.lifecycle import (
    OPEN_STATES,
    ensure_can_manage,
    ensure_can_participate,
    ensure_status,
    ensure_transition,
    is_rentable,
)
from rental_gateway.domain.models import (
    Actor,
    BookingStatus,
    DateInterval,
    EventType,
    PropertyStatus,
    to_money,
)
from rental_gateway.infrastructure.database.models import Booking, Property
from rental_gateway.infrastructure.database.repositories import BookingRepository, PropertyRepository
from rental_gateway.infrastructure.observability.logging import log_booking_event
from rental_gateway.infrastructure.observability.metrics import (
    booking_conflict_counter,
    compensation_counter,
    record_transition,
)
from rental_gateway.services.notifications import NotificationDispatcher
from rental_gateway.services.obligations import ObligationScheduler
from rental_gateway.services.wallet import WalletLedger

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BookingLifecycle:
    """Orchestrates the rent booking state machine"""

    def __init__(
        self,
        db: Session,
        wallet: WalletLedger,
        scheduler: ObligationScheduler,
        dispatcher: NotificationDispatcher,
        today: Callable[[], date] = date.today,
        open_ended_years: Optional[int] = None,
        refund_deposit_on_reject: Optional[bool] = None,
    ):
        self.db = db
        self.wallet = wallet
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.today = today
        self.open_ended_years = settings.open_ended_booking_years if open_ended_years is None else open_ended_years
        self.refund_deposit_on_reject = (
            settings.refund_deposit_on_reject if refund_deposit_on_reject is None else refund_deposit_on_reject
        )
        self.bookings = BookingRepository(db)
        self.properties = PropertyRepository(db)

    # Creation

    def create(
        self,
        actor: Actor,
        property_id: uuid.UUID,
        start_date: date,
        end_date: Optional[date],
        monthly_rent: Decimal,
        security_deposit: Decimal,
        idempotency_key: Optional[str] = None,
    ) -> Booking:
        """
        Request a tenancy: escrow the deposit and persist a PENDING_APPROVAL booking.

        Flow:
        1. Validate amounts and interval
        2. Lock the property and check it is rentable
        3. Reject overlaps with open bookings on the property
        4. Debit the deposit from the tenant's wallet
        5. Persist the booking and repeat the overlap check against it
        6. On any failure refund the deposit and re-raise
        """
        deposit = to_money(security_deposit)
        rent = to_money(monthly_rent)
        if deposit <= 0:
            raise ValidationError("Security deposit must be provided and greater than zero", {"deposit": str(deposit)})
        if rent <= 0:
            raise ValidationError("Monthly rent must be greater than zero", {"monthly_rent": str(rent)})
        if end_date is not None and end_date <= start_date:
            raise ValidationError(
                "End date must be after start date",
                {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )

        if idempotency_key:
            existing = self.bookings.find_by_deposit_key(idempotency_key)
            if existing is not None:
                if existing.tenant_id != actor.user_id or existing.property_id != property_id:
                    raise ValidationError("Idempotency key was already used for a different booking")
                return existing
            if self.wallet.has_entry(f"{idempotency_key}:compensation"):
                # The earlier attempt was refunded; replaying its debit would skip the escrow
                raise ValidationError(
                    "Idempotency key belongs to a failed booking attempt",
                    {"idempotency_key": idempotency_key},
                )

        prop = self._get_property(property_id, for_update=True)
        if not is_rentable(prop.status):
            raise ValidationError("Property is not available for rent", {"property_status": prop.status.value})
        if prop.owner_id == actor.user_id:
            raise ValidationError("Owners cannot book their own property")

        interval = DateInterval(start=start_date, end=end_date)
        self._ensure_available(prop.id, interval)

        key = idempotency_key or f"deposit:{prop.id}:{actor.user_id}:{time.time_ns()}"
        self.wallet.debit_or_raise(actor.user_id, deposit, f"Security deposit for {prop.title}", key)

        try:
            booking = self.bookings.create(
                property_id=prop.id,
                tenant_id=actor.user_id,
                owner_id=prop.owner_id,
                start_date=start_date,
                end_date=end_date,
                monthly_rent=rent,
                security_deposit=deposit,
                status=BookingStatus.PENDING_APPROVAL,
                deposit_key=key,
            )
            # Checked again with our row written: a request that raced past the
            # first check has either committed by now or waits on our write
            self._ensure_available(prop.id, interval, exclude_id=booking.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._compensate(
                actor.user_id,
                deposit,
                "Security deposit refund (booking failed)",
                f"{key}:compensation",
                property_id=prop.id,
            )
            raise

        record_transition(BookingStatus.PENDING_APPROVAL.value)
        log_booking_event("created", booking.id, actor.user_id, booking.status.value, deposit=deposit)
        self.dispatcher.notify(
            booking.owner_id,
            EventType.BOOKING_CREATED,
            "New Booking Request",
            f"New booking request for property '{prop.title}'",
            "/bookings/owner",
        )
        return booking

    # Approval workflow

    def approve(
        self,
        booking_id: uuid.UUID,
        actor: Actor,
        monthly_rent: Optional[Decimal] = None,
        security_deposit: Optional[Decimal] = None,
    ) -> Booking:
        """
        Activate a pending booking.

        Booking status, property status and the first obligation commit
        together. A deposit override re-sizes the escrow before that commit.
        """
        booking = self._get_booking(booking_id, for_update=True)
        ensure_can_manage(actor, booking.owner_id)
        ensure_transition(booking.status, BookingStatus.ACTIVE)

        rent = self._positive_override(monthly_rent, "monthly_rent")
        deposit = self._positive_override(security_deposit, "security_deposit")

        adjustment = None
        if deposit is not None and deposit != to_money(booking.security_deposit):
            adjustment = self._adjust_escrow(booking, deposit)

        try:
            prop = self._get_property(booking.property_id, for_update=True)
            booking.status = BookingStatus.ACTIVE
            booking.approved_at = _now()
            if rent is not None:
                booking.monthly_rent = rent
            if deposit is not None:
                booking.security_deposit = deposit
            self.properties.set_status(prop, PropertyStatus.RENTED)
            self.scheduler.first_obligation(booking)
            self.db.commit()
        except Exception:
            self.db.rollback()
            if adjustment is not None:
                self._undo_adjustment(booking.tenant_id, *adjustment)
            raise

        record_transition(BookingStatus.ACTIVE.value)
        log_booking_event("approved", booking.id, actor.user_id, booking.status.value)
        self.dispatcher.notify(
            booking.tenant_id,
            EventType.BOOKING_APPROVED,
            "Booking Approved!",
            f"Your booking request for '{prop.title}' has been approved! You can now proceed with payment.",
            "/bookings",
        )
        return booking

    def reject(self, booking_id: uuid.UUID, actor: Actor, reason: Optional[str] = None) -> Booking:
        booking = self._get_booking(booking_id, for_update=True)
        ensure_can_manage(actor, booking.owner_id)
        ensure_transition(booking.status, BookingStatus.REJECTED)

        refund = None
        if self.refund_deposit_on_reject:
            refund = self._refund_deposit(booking, "Security deposit refund for rejected booking")

        try:
            booking.status = BookingStatus.REJECTED
            booking.reason = reason
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._reverse_refund(refund)
            raise

        record_transition(BookingStatus.REJECTED.value)
        log_booking_event("rejected", booking.id, actor.user_id, booking.status.value, reason=reason)
        body = f"Your booking request for '{booking.property.title}' has been rejected."
        if reason and reason.strip():
            body += f" Reason: {reason}"
        self.dispatcher.notify(
            booking.tenant_id,
            EventType.BOOKING_REJECTED,
            "Booking Request Rejected",
            body,
            f"/properties/{booking.property_id}",
        )
        return booking

    # Lifecycle management

    def cancel(
        self,
        booking_id: uuid.UUID,
        actor: Actor,
        reason: Optional[str] = None,
        refund_deposit: bool = True,
    ) -> Booking:
        """Cancel a pending or active booking; a repeat call fails on the terminal state"""
        booking = self._get_booking(booking_id, for_update=True)
        ensure_can_participate(actor, booking.tenant_id, booking.owner_id)
        ensure_transition(booking.status, BookingStatus.CANCELLED)

        refund = None
        if refund_deposit:
            refund = self._refund_deposit(booking, "Security deposit refund for cancelled booking")

        try:
            self._release_property(booking)
            booking.status = BookingStatus.CANCELLED
            booking.reason = reason
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._reverse_refund(refund)
            raise

        record_transition(BookingStatus.CANCELLED.value)
        log_booking_event("cancelled", booking.id, actor.user_id, booking.status.value, refunded=refund_deposit)
        self._notify_parties(
            booking,
            actor,
            EventType.BOOKING_CANCELLED,
            "Booking Cancelled",
            f"The booking for '{booking.property.title}' has been cancelled.",
        )
        return booking

    def terminate(
        self,
        booking_id: uuid.UUID,
        actor: Actor,
        reason: Optional[str] = None,
        termination_date: Optional[date] = None,
        refund_deposit: bool = False,
    ) -> Booking:
        """End an active tenancy early; the booking's end date becomes the termination date"""
        booking = self._get_booking(booking_id, for_update=True)
        ensure_can_participate(actor, booking.tenant_id, booking.owner_id)
        ensure_transition(booking.status, BookingStatus.TERMINATED)

        termination_date = termination_date or self.today()
        if termination_date <= booking.start_date:
            raise ValidationError(
                "Termination date must be after the start date",
                {"termination_date": termination_date.isoformat(), "start_date": booking.start_date.isoformat()},
            )
        if booking.end_date is not None and termination_date > booking.end_date:
            raise ValidationError(
                "Termination date is after the booking's end date",
                {"termination_date": termination_date.isoformat(), "end_date": booking.end_date.isoformat()},
            )

        refund = None
        if refund_deposit:
            refund = self._refund_deposit(booking, "Security deposit refund for terminated booking")

        try:
            self._release_property(booking)
            booking.status = BookingStatus.TERMINATED
            booking.end_date = termination_date
            booking.reason = reason
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._reverse_refund(refund)
            raise

        record_transition(BookingStatus.TERMINATED.value)
        log_booking_event("terminated", booking.id, actor.user_id, booking.status.value, refunded=refund_deposit)
        self._notify_parties(
            booking,
            actor,
            EventType.BOOKING_TERMINATED,
            "Booking Terminated",
            f"The tenancy for '{booking.property.title}' ends on {termination_date.isoformat()}.",
        )
        return booking

    def extend(
        self,
        booking_id: uuid.UUID,
        actor: Actor,
        new_end_date: date,
        reason: Optional[str] = None,
        monthly_rent: Optional[Decimal] = None,
    ) -> Booking:
        booking = self._get_booking(booking_id, for_update=True)
        ensure_can_manage(actor, booking.owner_id)
        ensure_status(booking.status, BookingStatus.ACTIVE)

        if booking.end_date is None:
            raise ValidationError("Open-ended bookings have no end date to extend")
        if new_end_date <= booking.end_date:
            raise ValidationError(
                "New end date must be after the current end date",
                {"end_date": booking.end_date.isoformat(), "new_end_date": new_end_date.isoformat()},
            )
        rent = self._positive_override(monthly_rent, "monthly_rent")

        self._get_property(booking.property_id, for_update=True)
        self._ensure_available(
            booking.property_id,
            DateInterval(start=booking.start_date, end=new_end_date),
            exclude_id=booking.id,
        )

        try:
            booking.end_date = new_end_date
            if rent is not None:
                booking.monthly_rent = rent
            booking.reason = reason
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        log_booking_event("extended", booking.id, actor.user_id, booking.status.value, new_end_date=new_end_date)
        self.dispatcher.notify(
            booking.tenant_id,
            EventType.BOOKING_EXTENDED,
            "Booking Extended",
            f"Your tenancy for '{booking.property.title}' now ends on {new_end_date.isoformat()}.",
            "/bookings",
        )
        return booking

    # Queries

    def get(self, booking_id: uuid.UUID, actor: Actor) -> Booking:
        booking = self._get_booking(booking_id)
        ensure_can_participate(actor, booking.tenant_id, booking.owner_id)
        return booking

    def list_for_tenant(self, actor: Actor) -> List[Booking]:
        return self.bookings.list_for_tenant(actor.user_id)

    def list_for_owner(self, actor: Actor) -> List[Booking]:
        return self.bookings.list_for_owner(None if actor.is_admin else actor.user_id)

    def list_pending_approvals(self, actor: Actor) -> List[Booking]:
        return self.bookings.list_pending(None if actor.is_admin else actor.user_id)

    # Helpers

    def _get_booking(self, booking_id: uuid.UUID, for_update: bool = False) -> Booking:
        booking = self.bookings.get(booking_id, for_update=for_update)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _get_property(self, property_id: uuid.UUID, for_update: bool = False) -> Property:
        prop = self.properties.get(property_id, for_update=for_update)
        if prop is None:
            raise NotFoundError("Property", property_id)
        return prop

    def _ensure_available(
        self,
        property_id: uuid.UUID,
        interval: DateInterval,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        open_bookings = self.bookings.find_by_property_and_status(property_id, OPEN_STATES, exclude_id=exclude_id)
        conflicts = find_conflicts(interval, open_bookings, self.open_ended_years)
        if conflicts:
            booking_conflict_counter.inc()
            raise ConflictError(
                "Property is not available for the requested dates",
                {
                    "start_date": interval.start.isoformat(),
                    "end_date": effective_end(interval.start, interval.end, self.open_ended_years).isoformat(),
                    "conflicting_booking_ids": [str(b.id) for b in conflicts],
                },
            )

    def _positive_override(self, value: Optional[Decimal], field: str) -> Optional[Decimal]:
        if value is None:
            return None
        value = to_money(value)
        if value <= 0:
            raise ValidationError(f"{field} must be greater than zero", {field: str(value)})
        return value

    def _release_property(self, booking: Booking) -> None:
        """Return a property this booking had rented to the market"""
        if booking.status != BookingStatus.ACTIVE:
            return
        prop = self._get_property(booking.property_id, for_update=True)
        if prop.status == PropertyStatus.RENTED:
            self.properties.set_status(prop, PropertyStatus.FOR_RENT)

    def _refund_deposit(self, booking: Booking, description: str) -> Tuple[uuid.UUID, Decimal, str]:
        """Credit the escrowed deposit back; returns what a failed commit must reclaim"""
        key = self._refund_key(booking)
        amount = to_money(booking.security_deposit)
        self.wallet.credit(booking.tenant_id, amount, description, key)
        return booking.tenant_id, amount, key

    def _refund_key(self, booking: Booking) -> str:
        """
        ``refund:{booking_id}`` for the first refund.

        Reject, cancel and terminate share it, so a booking is refunded at most
        once. A refund reclaimed after a failed commit is spent; the retry gets
        the next numbered key.
        """
        key = f"refund:{booking.id}"
        attempt = 0
        while self.wallet.has_entry(f"{key}:compensation"):
            attempt += 1
            key = f"refund:{booking.id}:{attempt}"
        return key

    def _reverse_refund(self, refund: Optional[Tuple[uuid.UUID, Decimal, str]]) -> None:
        if refund is None:
            return
        tenant_id, amount, key = refund
        self._reclaim(tenant_id, amount, "Security deposit refund reversal (booking update failed)", f"{key}:compensation")

    def _adjust_escrow(self, booking: Booking, new_deposit: Decimal) -> tuple:
        """Debit or credit the difference between the escrowed and the approved deposit"""
        delta = new_deposit - to_money(booking.security_deposit)
        key = f"deposit-adjust:{booking.id}:{time.time_ns()}"
        if delta > 0:
            if not self.wallet.debit(booking.tenant_id, delta, "Security deposit top-up on approval", key):
                raise InsufficientFundsError(
                    required=delta,
                    available=self.wallet.balance(booking.tenant_id),
                    account_id=booking.tenant_id,
                )
        else:
            self.wallet.credit(booking.tenant_id, -delta, "Security deposit reduction on approval", key)
        return delta, key

    def _undo_adjustment(self, tenant_id: uuid.UUID, delta: Decimal, key: str) -> None:
        if delta > 0:
            self._compensate(tenant_id, delta, "Security deposit top-up reversal", f"{key}:compensation")
        else:
            self._reclaim(tenant_id, -delta, "Security deposit reduction reversal", f"{key}:compensation")

    def _reclaim(self, tenant_id: uuid.UUID, amount: Decimal, description: str, key: str) -> None:
        """Compensating debit for a credit whose booking write failed"""
        try:
            ok = self.wallet.debit(tenant_id, amount, description, key)
        except Exception:
            ok = False
            logger.exception("Compensating debit raised", extra={"tenant_id": str(tenant_id), "idempotency_key": key})
        compensation_counter.labels(outcome="succeeded" if ok else "failed").inc()
        if not ok:
            logger.critical(
                "Compensating debit failed; tenant wallet holds an unreconciled credit",
                extra={"tenant_id": str(tenant_id), "amount": str(amount), "idempotency_key": key},
            )
            return
        logger.warning(
            "Compensating debit applied",
            extra={"tenant_id": str(tenant_id), "amount": str(amount), "idempotency_key": key},
        )

    def _compensate(self, tenant_id: uuid.UUID, amount: Decimal, description: str, key: str, **context) -> None:
        """Best-effort compensating credit; a failure is logged loudly, never dropped"""
        try:
            self.wallet.credit(tenant_id, amount, description, key)
        except Exception:
            compensation_counter.labels(outcome="failed").inc()
            logger.critical(
                "Compensating credit failed; wallet and booking store are inconsistent",
                exc_info=True,
                extra={
                    "tenant_id": str(tenant_id),
                    "amount": str(amount),
                    "idempotency_key": key,
                    **{k: str(v) for k, v in context.items()},
                },
            )
            return

        compensation_counter.labels(outcome="succeeded").inc()
        logger.warning(
            "Compensating credit applied",
            extra={"tenant_id": str(tenant_id), "amount": str(amount), "idempotency_key": key},
        )

    def _notify_parties(self, booking: Booking, actor: Actor, event: EventType, title: str, body: str) -> None:
        for user_id, link in ((booking.tenant_id, "/bookings"), (booking.owner_id, "/bookings/owner")):
            if user_id != actor.user_id:
                self.dispatcher.notify(user_id, event, title, body, link)
