"""Payment gateway bridge: order creation and callback signature verification

The bridge is stateless beyond configuration. It never touches bookings or
the wallet; callers act on a verified payment as a separate step.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from rental_gateway.config import settings
from rental_gateway.domain.exceptions import (
    ConfigurationError,
    InvalidSignatureError,
    LimitExceededError,
    PaymentProcessorError,
    ValidationError,
)
from rental_gateway.domain.models import PaymentOrder, to_money
from rental_gateway.domain.signatures import is_valid_signature
from rental_gateway.infrastructure.clients.processor import ProcessorClient
from rental_gateway.infrastructure.observability.metrics import gateway_order_counter, signature_failure_counter

logger = logging.getLogger(__name__)

MINOR_UNITS = Decimal("100")


class PaymentGateway:
    """Wraps the payment processor with limit, credential and signature checks"""

    def __init__(
        self,
        client: Optional[ProcessorClient] = None,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        currency: Optional[str] = None,
        transaction_ceiling: Optional[Decimal] = None,
    ):
        self.key_id = settings.processor_key_id if key_id is None else key_id
        self.key_secret = settings.processor_key_secret if key_secret is None else key_secret
        self.currency = currency or settings.processor_currency
        self.transaction_ceiling = (
            settings.processor_transaction_ceiling if transaction_ceiling is None else transaction_ceiling
        )
        self.client = client or ProcessorClient(key_id=self.key_id, key_secret=self.key_secret)

    async def create_order(self, amount: Decimal, receipt_id: str, currency: Optional[str] = None) -> PaymentOrder:
        """
        Create a processor order for ``amount`` (major units).

        Raises:
            ConfigurationError: processor credentials are not configured
            ValidationError: amount is not positive
            LimitExceededError: amount is above the processor's transaction ceiling
            PaymentProcessorError: processor unavailable or returned an error
        """
        if not self.key_id or not self.key_secret:
            raise ConfigurationError("Payment processor keys not configured")

        currency = currency or self.currency
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", {"amount": str(amount)})

        if amount > self.transaction_ceiling:
            gateway_order_counter.labels(outcome="over_limit").inc()
            raise LimitExceededError(amount=amount, ceiling=to_money(self.transaction_ceiling), currency=currency)

        amount_minor = int((amount * MINOR_UNITS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        try:
            order = await self.client.create_order(amount_minor, currency, receipt_id)
        except PaymentProcessorError:
            gateway_order_counter.labels(outcome="failed").inc()
            logger.error("Payment order creation failed", extra={"receipt": receipt_id, "amount": str(amount)})
            raise

        gateway_order_counter.labels(outcome="created").inc()
        return PaymentOrder(
            order_id=order["id"],
            amount_minor=order["amount"],
            currency=order["currency"],
            receipt=order["receipt"],
            key_id=self.key_id,
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Return True for a genuine callback; any mismatch raises InvalidSignatureError"""
        if not self.key_secret:
            raise ConfigurationError("Payment processor secret not configured")

        if not is_valid_signature(order_id, payment_id, signature, self.key_secret):
            signature_failure_counter.inc()
            logger.warning(
                "Payment signature rejected",
                extra={"order_id": order_id, "payment_id": payment_id},
            )
            raise InvalidSignatureError("Invalid payment signature", {"order_id": order_id})
        return True

    def public_key(self) -> str:
        if not self.key_id:
            raise ConfigurationError("Payment processor keys not configured")
        return self.key_id
