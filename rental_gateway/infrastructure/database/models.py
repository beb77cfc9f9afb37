"""SQLAlchemy ORM models for bookings, obligations and the wallet ledger"""

import uuid
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from rental_gateway.domain.models import BookingStatus, ObligationStatus, PropertyStatus, Role

Base = declarative_base()

MONEY = Numeric(12, 2)


class AppUser(Base):
    """User directory record (identity is resolved upstream)"""

    __tablename__ = "app_user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(Text, nullable=False)
    role = Column(Enum(Role, native_enum=False, length=16), nullable=False, default=Role.USER)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Property(Base):
    """Property catalog record; this service only reads it and flips its status"""

    __tablename__ = "property"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("app_user.id"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    status = Column(Enum(PropertyStatus, native_enum=False, length=16), nullable=False, default=PropertyStatus.FOR_RENT)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    bookings = relationship("Booking", back_populates="property")


class Booking(Base):
    """Tenancy agreement attempt or outcome; never physically deleted"""

    __tablename__ = "booking"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id = Column(Uuid, ForeignKey("property.id"), nullable=False)
    tenant_id = Column(Uuid, ForeignKey("app_user.id"), nullable=False, index=True)
    owner_id = Column(Uuid, ForeignKey("app_user.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    monthly_rent = Column(MONEY, nullable=False)
    security_deposit = Column(MONEY, nullable=False)
    status = Column(
        Enum(BookingStatus, native_enum=False, length=32),
        nullable=False,
        default=BookingStatus.PENDING_APPROVAL,
    )
    deposit_key = Column(Text, nullable=False, unique=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    property = relationship("Property", back_populates="bookings")
    obligations = relationship(
        "MonthlyObligation",
        back_populates="booking",
        order_by="MonthlyObligation.due_date",
    )

    __table_args__ = (
        Index("ix_booking_property_status", "property_id", "status"),
        Index("ix_booking_owner_status", "owner_id", "status"),
        CheckConstraint("security_deposit > 0", name="ck_booking_deposit_positive"),
        CheckConstraint("end_date IS NULL OR end_date > start_date", name="ck_booking_interval"),
    )


class MonthlyObligation(Base):
    """One rent period owed under an active booking"""

    __tablename__ = "monthly_obligation"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("booking.id"), nullable=False)
    amount_due = Column(MONEY, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(
        Enum(ObligationStatus, native_enum=False, length=16),
        nullable=False,
        default=ObligationStatus.PENDING,
    )
    paid_date = Column(Date, nullable=True)
    payment_reference = Column(Text, nullable=True, unique=True)
    gateway_order_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    booking = relationship("Booking", back_populates="obligations")

    __table_args__ = (UniqueConstraint("booking_id", "due_date", name="uq_obligation_booking_due_date"),)


class WalletAccount(Base):
    """One balance per user, created lazily on first reference"""

    __tablename__ = "wallet_account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    holder_id = Column(Uuid, nullable=False, unique=True)
    balance = Column(MONEY, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),)

    entries = relationship("LedgerEntry", back_populates="account", order_by="LedgerEntry.created_at")


class LedgerEntry(Base):
    """Append-only signed movement on a wallet account"""

    __tablename__ = "ledger_entry"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("wallet_account.id"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    description = Column(Text, nullable=False)
    idempotency_key = Column(Text, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("WalletAccount", back_populates="entries")
