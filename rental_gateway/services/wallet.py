"""Wallet ledger: per-user balances with idempotent debit and credit"""

import logging
import uuid
from decimal import Decimal
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rental_gateway.domain.exceptions import InsufficientFundsError, ValidationError
from rental_gateway.domain.models import to_money
from rental_gateway.infrastructure.database.models import LedgerEntry, WalletAccount
from rental_gateway.infrastructure.database.repositories import WalletRepository
from rental_gateway.infrastructure.observability.metrics import record_wallet_operation

logger = logging.getLogger(__name__)


class WalletLedger:
    """
    Append-only wallet ledger.

    Each call is its own unit of work and commits on its own session. The
    account row is locked for the balance check, and the write itself is a
    conditional UPDATE, so two debits on one account can never overdraw it
    even on a backend that ignores row locks.

    Idempotency keys are unique across the ledger. Replaying a key that already
    produced an entry returns the original outcome without writing again.
    A rejected debit writes nothing, so its key stays free for a later retry.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepository(db)

    def debit(self, account_id: uuid.UUID, amount: Decimal, description: str, idempotency_key: str) -> bool:
        """Withdraw ``amount``; returns False (never raises) when funds are insufficient"""
        amount = _positive(amount)
        return self._apply(account_id, -amount, description, idempotency_key, operation="debit")

    def credit(self, account_id: uuid.UUID, amount: Decimal, description: str, idempotency_key: str) -> bool:
        amount = _positive(amount)
        return self._apply(account_id, amount, description, idempotency_key, operation="credit")

    def debit_or_raise(self, account_id: uuid.UUID, amount: Decimal, description: str, idempotency_key: str) -> None:
        """Debit, converting a rejection into InsufficientFundsError with balance context"""
        if not self.debit(account_id, amount, description, idempotency_key):
            raise InsufficientFundsError(
                required=to_money(amount),
                available=self.balance(account_id),
                account_id=account_id,
            )

    def balance(self, account_id: uuid.UUID) -> Decimal:
        account = self.repo.get_account(account_id)
        if account is None:
            return to_money(0)
        # Fresh read, not the identity-map copy
        self.db.refresh(account)
        stored = to_money(account.balance)
        ledger = to_money(self.repo.sum_entries(account.id))
        if stored != ledger:
            logger.critical(
                "Wallet balance does not match its ledger",
                extra={"account_id": str(account_id), "stored": str(stored), "ledger": str(ledger)},
            )
            return ledger
        return stored

    def has_entry(self, idempotency_key: str) -> bool:
        return self.repo.find_entry(idempotency_key) is not None

    def entries(self, account_id: uuid.UUID, limit: int = 50) -> List[LedgerEntry]:
        account = self.repo.get_account(account_id)
        if account is None:
            return []
        return self.repo.list_entries(account.id, limit=limit)

    def _apply(
        self,
        holder_id: uuid.UUID,
        signed_amount: Decimal,
        description: str,
        idempotency_key: str,
        operation: str,
    ) -> bool:
        if not idempotency_key:
            raise ValidationError("Idempotency key is required")

        existing = self.repo.find_entry(idempotency_key)
        if existing is not None:
            return self._replay(existing, holder_id, signed_amount, operation)

        try:
            account = self.repo.get_or_create_account(holder_id, for_update=True)

            # A concurrent request may have used the key while we waited for the lock
            existing = self.repo.find_entry(idempotency_key)
            if existing is not None:
                self.db.rollback()
                return self._replay(existing, holder_id, signed_amount, operation)

            if account.balance + signed_amount < 0:
                return self._reject(account, holder_id, signed_amount, idempotency_key, operation)

            # Re-checked in SQL: a debit committed after our read may have drained the account
            if self.repo.add_entry(account, signed_amount, description, idempotency_key) is None:
                return self._reject(account, holder_id, signed_amount, idempotency_key, operation)
            self.db.commit()

        except IntegrityError:
            self.db.rollback()
            existing = self.repo.find_entry(idempotency_key)
            if existing is None:
                raise
            return self._replay(existing, holder_id, signed_amount, operation)
        except Exception:
            self.db.rollback()
            raise

        record_wallet_operation(operation, "applied")
        return True

    def _reject(
        self, account: WalletAccount, holder_id: uuid.UUID, signed_amount: Decimal, idempotency_key: str, operation: str
    ) -> bool:
        self.db.rollback()
        available = to_money(account.balance)
        record_wallet_operation(operation, "rejected")
        logger.info(
            "Wallet debit rejected",
            extra={
                "account_id": str(holder_id),
                "required": str(-signed_amount),
                "available": str(available),
                "idempotency_key": idempotency_key,
            },
        )
        return False

    def _replay(self, entry: LedgerEntry, holder_id: uuid.UUID, signed_amount: Decimal, operation: str) -> bool:
        account = self.db.get(WalletAccount, entry.account_id)
        if account is None or account.holder_id != holder_id or to_money(entry.amount) != signed_amount:
            raise ValidationError(
                "Idempotency key was already used for a different wallet operation",
                {"idempotency_key": entry.idempotency_key},
            )
        record_wallet_operation(operation, "replayed")
        logger.info(
            "Wallet operation replayed",
            extra={"account_id": str(holder_id), "idempotency_key": entry.idempotency_key},
        )
        return True


def _positive(amount: Decimal) -> Decimal:
    try:
        amount = to_money(amount)
    except (ArithmeticError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid amount: {amount!r}") from e
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", {"amount": str(amount)})
    return amount
