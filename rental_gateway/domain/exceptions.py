"""Domain-specific exceptions

Every error carries a stable machine-readable ``kind``, a human-readable
message and a ``context`` dict the API layer serializes as-is.
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    kind = "domain_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, "context": self.context}


class ValidationError(DomainException):
    """Malformed or out-of-range input"""

    kind = "validation"


class NotFoundError(DomainException):
    """Referenced entity does not exist"""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": str(entity_id)})


class AuthorizationError(DomainException):
    """Actor lacks permission for the target entity"""

    kind = "authorization"


class ConflictError(DomainException):
    """Requested interval overlaps an open booking on the same property"""

    kind = "conflict"


class InvalidStateError(DomainException):
    """Operation attempted from a state that does not permit it"""

    kind = "invalid_state"

    def __init__(self, message: str, current_state: str):
        super().__init__(message, {"current_state": current_state})
        self.current_state = current_state


class InsufficientFundsError(DomainException):
    """Wallet debit rejected because the balance does not cover it"""

    kind = "insufficient_funds"

    def __init__(self, required: Decimal, available: Decimal, account_id: Any = None):
        super().__init__(
            f"Insufficient wallet balance: required {required}, available {available}",
            {"required": str(required), "available": str(available), "account_id": str(account_id)},
        )
        self.required = required
        self.available = available


class LimitExceededError(DomainException):
    """Amount is above the payment processor's transaction ceiling"""

    kind = "limit_exceeded"

    def __init__(self, amount: Decimal, ceiling: Decimal, currency: str):
        super().__init__(
            f"Payment amount {amount} {currency} exceeds the processor transaction limit of {ceiling} {currency}",
            {"amount": str(amount), "ceiling": str(ceiling), "currency": currency},
        )
        self.amount = amount
        self.ceiling = ceiling


class InvalidSignatureError(DomainException):
    """Gateway callback failed signature verification"""

    kind = "invalid_signature"


class ConfigurationError(DomainException):
    """Required credentials or settings are missing"""

    kind = "configuration"


class PaymentProcessorError(DomainException):
    """Payment processor returned an error or is unavailable"""

    kind = "payment_processor"
