"""Data access layer for bookings, obligations, wallet and collaborator records"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rental_gateway.domain.models import BookingStatus, ObligationStatus, PropertyStatus
from rental_gateway.infrastructure.database.models import (
    AppUser,
    Booking,
    LedgerEntry,
    MonthlyObligation,
    Property,
    WalletAccount,
)


class UserRepository:
    """User directory lookups"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: uuid.UUID) -> Optional[AppUser]:
        return self.db.get(AppUser, user_id)


class PropertyRepository:
    """Property catalog access: read a listing and flip its status"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, property_id: uuid.UUID, for_update: bool = False) -> Optional[Property]:
        query = self.db.query(Property).filter(Property.id == property_id)
        if for_update:
            # Serializes conflict check + insert per property where row locks exist
            query = query.with_for_update().populate_existing()
        return query.first()

    def set_status(self, prop: Property, status: PropertyStatus) -> Property:
        prop.status = status
        self.db.flush()
        return prop


class BookingRepository:
    """Repository for rent bookings"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> Booking:
        booking = Booking(**fields)
        self.db.add(booking)
        self.db.flush()  # Get ID without committing
        return booking

    def get(self, booking_id: uuid.UUID, for_update: bool = False) -> Optional[Booking]:
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def find_by_deposit_key(self, deposit_key: str) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.deposit_key == deposit_key).first()

    def find_by_property_and_status(
        self,
        property_id: uuid.UUID,
        statuses: Iterable[BookingStatus],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> List[Booking]:
        query = self.db.query(Booking).filter(
            Booking.property_id == property_id,
            Booking.status.in_(list(statuses)),
        )
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        return query.all()

    def list_for_tenant(self, tenant_id: uuid.UUID) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.tenant_id == tenant_id)
            .order_by(Booking.created_at.desc())
            .all()
        )

    def list_for_owner(self, owner_id: Optional[uuid.UUID]) -> List[Booking]:
        """Bookings on an owner's properties; ``None`` returns every booking"""
        query = self.db.query(Booking)
        if owner_id is not None:
            query = query.filter(Booking.owner_id == owner_id)
        return query.order_by(Booking.created_at.desc()).all()

    def list_pending(self, owner_id: Optional[uuid.UUID]) -> List[Booking]:
        query = self.db.query(Booking).filter(Booking.status == BookingStatus.PENDING_APPROVAL)
        if owner_id is not None:
            query = query.filter(Booking.owner_id == owner_id)
        return query.order_by(Booking.created_at.asc()).all()


class ObligationRepository:
    """Repository for monthly rent obligations"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, obligation_id: uuid.UUID, for_update: bool = False) -> Optional[MonthlyObligation]:
        query = self.db.query(MonthlyObligation).filter(MonthlyObligation.id == obligation_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def find_by_due_date(self, booking_id: uuid.UUID, due_date: date) -> Optional[MonthlyObligation]:
        return (
            self.db.query(MonthlyObligation)
            .filter(MonthlyObligation.booking_id == booking_id, MonthlyObligation.due_date == due_date)
            .first()
        )

    def find_by_payment_reference(self, payment_reference: str) -> Optional[MonthlyObligation]:
        return (
            self.db.query(MonthlyObligation)
            .filter(MonthlyObligation.payment_reference == payment_reference)
            .first()
        )

    def create_once(self, booking_id: uuid.UUID, due_date: date, amount_due: Decimal) -> MonthlyObligation:
        """
        Insert an obligation for (booking, due_date) unless one already exists.

        The existence check handles the common case; the unique constraint inside
        a savepoint handles two writers racing past the check.
        """
        existing = self.find_by_due_date(booking_id, due_date)
        if existing is not None:
            return existing

        obligation = MonthlyObligation(booking_id=booking_id, due_date=due_date, amount_due=amount_due)
        try:
            with self.db.begin_nested():
                self.db.add(obligation)
        except IntegrityError:
            existing = self.find_by_due_date(booking_id, due_date)
            if existing is None:
                raise
            return existing
        return obligation

    def list_for_booking(self, booking_id: uuid.UUID) -> List[MonthlyObligation]:
        return (
            self.db.query(MonthlyObligation)
            .filter(MonthlyObligation.booking_id == booking_id)
            .order_by(MonthlyObligation.due_date.asc())
            .all()
        )

    def list_pending_for_tenant(self, tenant_id: uuid.UUID) -> List[MonthlyObligation]:
        return (
            self.db.query(MonthlyObligation)
            .join(Booking, MonthlyObligation.booking_id == Booking.id)
            .filter(Booking.tenant_id == tenant_id, MonthlyObligation.status == ObligationStatus.PENDING)
            .order_by(MonthlyObligation.due_date.asc())
            .all()
        )


class WalletRepository:
    """Wallet accounts and their append-only ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def get_account(self, holder_id: uuid.UUID, for_update: bool = False) -> Optional[WalletAccount]:
        query = self.db.query(WalletAccount).filter(WalletAccount.holder_id == holder_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_or_create_account(self, holder_id: uuid.UUID, for_update: bool = False) -> WalletAccount:
        account = self.get_account(holder_id, for_update=for_update)
        if account is not None:
            return account

        account = WalletAccount(holder_id=holder_id, balance=Decimal("0.00"))
        try:
            with self.db.begin_nested():
                self.db.add(account)
        except IntegrityError:
            # Created concurrently by another request
            pass
        return self.get_account(holder_id, for_update=for_update)

    def find_entry(self, idempotency_key: str) -> Optional[LedgerEntry]:
        return self.db.query(LedgerEntry).filter(LedgerEntry.idempotency_key == idempotency_key).first()

    def add_entry(
        self, account: WalletAccount, amount: Decimal, description: str, idempotency_key: str
    ) -> Optional[LedgerEntry]:
        """
        Move the balance and append an entry; IntegrityError on a reused key.

        The balance moves in a single conditional UPDATE, so a debit that would
        overdraw touches no row and returns None even when a concurrent debit
        committed after the caller's read.
        """
        new_balance = func.round(WalletAccount.balance + amount, 2)
        moved = self.db.execute(
            update(WalletAccount)
            .where(WalletAccount.id == account.id, new_balance >= 0)
            .values(balance=new_balance)
            .execution_options(synchronize_session=False)
        ).rowcount
        if not moved:
            return None

        entry = LedgerEntry(
            account_id=account.id,
            amount=amount,
            description=description,
            idempotency_key=idempotency_key,
        )
        self.db.add(entry)
        self.db.flush()
        self.db.expire(account, ["balance"])
        return entry

    def list_entries(self, account_id: uuid.UUID, limit: int = 50) -> List[LedgerEntry]:
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.created_at.desc())
            .limit(limit)
            .all()
        )

    def sum_entries(self, account_id: uuid.UUID) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(LedgerEntry.amount), 0))
            .filter(LedgerEntry.account_id == account_id)
            .scalar()
        )
        return Decimal(total or 0)
