"""Domain models - pure Python dataclasses and enums representing business entities"""

import enum
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CURRENCY_UNIT = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize an amount to currency scale (half-up)"""
    return Decimal(value).quantize(CURRENCY_UNIT, rounding=ROUND_HALF_UP)


class Role(str, enum.Enum):
    USER = "USER"
    AGENT = "AGENT"
    ADMIN = "ADMIN"


class BookingStatus(str, enum.Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    TERMINATED = "TERMINATED"


class ObligationStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class PropertyStatus(str, enum.Enum):
    FOR_RENT = "FOR_RENT"
    FOR_SALE = "FOR_SALE"
    RENTED = "RENTED"
    SOLD = "SOLD"
    INACTIVE = "INACTIVE"


class EventType(str, enum.Enum):
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_APPROVED = "BOOKING_APPROVED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_TERMINATED = "BOOKING_TERMINATED"
    BOOKING_EXTENDED = "BOOKING_EXTENDED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller identity, passed explicitly into every operation"""

    user_id: uuid.UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class DateInterval:
    """Closed date range; ``end`` is None for open-ended tenancies"""

    start: date
    end: Optional[date] = None


@dataclass
class Notification:
    """Message handed to the notification dispatcher"""

    user_id: uuid.UUID
    event_type: EventType
    title: str
    body: str
    action_link: str


@dataclass
class PaymentOrder:
    """Order created at the external payment processor"""

    order_id: str
    amount_minor: int
    currency: str
    receipt: str
    key_id: str
