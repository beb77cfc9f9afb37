"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rental_gateway.domain.models import BookingStatus, ObligationStatus


class BookingCreateRequest(BaseModel):
    """Request body for POST /v1/bookings"""

    property_id: uuid.UUID
    start_date: date
    end_date: Optional[date] = Field(None, description="Omit for an open-ended tenancy")
    monthly_rent: Decimal = Field(..., gt=0, decimal_places=2)
    security_deposit: Decimal = Field(..., gt=0, decimal_places=2)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)


class ApproveRequest(BaseModel):
    """Optional overrides applied on approval"""

    monthly_rent: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    security_deposit: Optional[Decimal] = Field(None, gt=0, decimal_places=2)


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)
    refund_deposit: bool = True


class TerminateRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)
    termination_date: Optional[date] = None
    refund_deposit: bool = False


class ExtendRequest(BaseModel):
    new_end_date: date
    reason: Optional[str] = Field(None, max_length=2000)
    monthly_rent: Optional[Decimal] = Field(None, gt=0, decimal_places=2)


class BookingResponse(BaseModel):
    """Booking as seen by its tenant, owner or an admin"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    property_id: uuid.UUID
    tenant_id: uuid.UUID
    owner_id: uuid.UUID
    start_date: date
    end_date: Optional[date] = None
    monthly_rent: Decimal
    security_deposit: Decimal
    status: BookingStatus
    approved_at: Optional[datetime] = None
    reason: Optional[str] = None


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]


class ObligationResponse(BaseModel):
    """Single monthly rent period"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    booking_id: uuid.UUID
    amount_due: Decimal
    due_date: date
    status: ObligationStatus
    paid_date: Optional[date] = None
    payment_reference: Optional[str] = None


class ObligationListResponse(BaseModel):
    obligations: List[ObligationResponse]


class PaymentOrderResponse(BaseModel):
    """Processor order the client completes in the checkout widget"""

    order_id: str
    amount_minor: int
    currency: str
    receipt: str
    key_id: str


class ConfirmPaymentRequest(BaseModel):
    """Checkout callback fields forwarded by the client"""

    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class WalletResponse(BaseModel):
    holder_id: uuid.UUID
    balance: Decimal


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    amount: Decimal
    description: str
    idempotency_key: str
    created_at: datetime


class LedgerEntryListResponse(BaseModel):
    holder_id: uuid.UUID
    entries: List[LedgerEntryResponse]


class TopUpRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    idempotency_key: str = Field(..., min_length=1, max_length=128)


class PublicKeyResponse(BaseModel):
    key_id: str
