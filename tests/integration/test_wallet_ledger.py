"""Integration tests for the wallet ledger over SQLite"""

import logging
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.orm import Session

from rental_gateway.domain.exceptions import InsufficientFundsError, ValidationError
from rental_gateway.infrastructure.database.models import WalletAccount
from rental_gateway.infrastructure.database.repositories import WalletRepository
from rental_gateway.services.wallet import WalletLedger


@pytest.fixture
def holder() -> uuid.UUID:
    return uuid.uuid4()


def test_balance_of_unknown_account_is_zero(wallet: WalletLedger, holder: uuid.UUID):
    assert wallet.balance(holder) == Decimal("0.00")
    assert wallet.entries(holder) == []


def test_credit_creates_account_lazily(wallet: WalletLedger, holder: uuid.UUID):
    assert wallet.credit(holder, Decimal("250.00"), "Top-up", "k-credit") is True
    assert wallet.balance(holder) == Decimal("250.00")


def test_debit_is_idempotent(wallet: WalletLedger, holder: uuid.UUID):
    """Same key twice moves the balance once"""
    wallet.credit(holder, Decimal("500.00"), "Top-up", "k-seed")

    assert wallet.debit(holder, Decimal("100.00"), "Rent", "K") is True
    assert wallet.debit(holder, Decimal("100.00"), "Rent", "K") is True

    assert wallet.balance(holder) == Decimal("400.00")
    assert len(wallet.entries(holder)) == 2


def test_credit_is_idempotent(wallet: WalletLedger, holder: uuid.UUID):
    wallet.credit(holder, Decimal("75.00"), "Refund", "k-refund")
    wallet.credit(holder, Decimal("75.00"), "Refund", "k-refund")

    assert wallet.balance(holder) == Decimal("75.00")


def test_debit_never_overdraws(wallet: WalletLedger, holder: uuid.UUID):
    wallet.credit(holder, Decimal("50.00"), "Top-up", "k-seed")

    assert wallet.debit(holder, Decimal("50.01"), "Too much", "k-over") is False
    assert wallet.balance(holder) == Decimal("50.00")


def test_rejected_debit_leaves_key_unused(wallet: WalletLedger, holder: uuid.UUID):
    """The same request succeeds once the account is funded"""
    assert wallet.debit(holder, Decimal("30.00"), "Deposit", "k-retry") is False
    assert wallet.has_entry("k-retry") is False

    wallet.credit(holder, Decimal("30.00"), "Top-up", "k-seed")
    assert wallet.debit(holder, Decimal("30.00"), "Deposit", "k-retry") is True
    assert wallet.balance(holder) == Decimal("0.00")


def test_debit_or_raise_reports_amounts(wallet: WalletLedger, holder: uuid.UUID):
    wallet.credit(holder, Decimal("20.00"), "Top-up", "k-seed")

    with pytest.raises(InsufficientFundsError) as exc_info:
        wallet.debit_or_raise(holder, Decimal("25.00"), "Deposit", "k-deposit")

    assert exc_info.value.required == Decimal("25.00")
    assert exc_info.value.available == Decimal("20.00")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
def test_non_positive_amounts_rejected(wallet: WalletLedger, holder: uuid.UUID, amount: Decimal):
    with pytest.raises(ValidationError):
        wallet.credit(holder, amount, "Bad", "k-bad")
    with pytest.raises(ValidationError):
        wallet.debit(holder, amount, "Bad", "k-bad")


def test_missing_key_rejected(wallet: WalletLedger, holder: uuid.UUID):
    with pytest.raises(ValidationError):
        wallet.credit(holder, Decimal("1.00"), "No key", "")


def test_replayed_key_with_different_amount_rejected(wallet: WalletLedger, holder: uuid.UUID):
    wallet.credit(holder, Decimal("100.00"), "Top-up", "k-shared")

    with pytest.raises(ValidationError):
        wallet.credit(holder, Decimal("99.00"), "Top-up", "k-shared")
    with pytest.raises(ValidationError):
        wallet.debit(holder, Decimal("100.00"), "Debit", "k-shared")


def test_replayed_key_for_other_account_rejected(wallet: WalletLedger, holder: uuid.UUID):
    wallet.credit(holder, Decimal("100.00"), "Top-up", "k-owned")

    with pytest.raises(ValidationError):
        wallet.credit(uuid.uuid4(), Decimal("100.00"), "Top-up", "k-owned")


def test_balance_equals_sum_of_entries(wallet: WalletLedger, wallet_db: Session, holder: uuid.UUID):
    wallet.credit(holder, Decimal("1000.00"), "Top-up", "k1")
    wallet.debit(holder, Decimal("333.33"), "Rent", "k2")
    wallet.credit(holder, Decimal("12.34"), "Refund", "k3")
    wallet.debit(holder, Decimal("5000.00"), "Rejected", "k4")

    repo = WalletRepository(wallet_db)
    account = repo.get_account(holder)
    assert wallet.balance(holder) == Decimal("679.01")
    assert repo.sum_entries(account.id) == Decimal("679.01")


def test_entries_newest_first_with_limit(wallet: WalletLedger, holder: uuid.UUID):
    for i in range(5):
        wallet.credit(holder, Decimal("1.00"), f"Top-up {i}", f"k-{i}")

    entries = wallet.entries(holder, limit=3)
    assert len(entries) == 3
    assert all(entry.amount == Decimal("1.00") for entry in entries)


def test_drifted_balance_reports_ledger_sum(wallet: WalletLedger, wallet_db: Session, holder: uuid.UUID, caplog):
    wallet.credit(holder, Decimal("300.00"), "Top-up", "k-drift-1")
    wallet.debit(holder, Decimal("120.50"), "Rent", "k-drift-2")

    wallet_db.execute(update(WalletAccount).where(WalletAccount.holder_id == holder).values(balance=Decimal("999.00")))
    wallet_db.commit()

    with caplog.at_level(logging.CRITICAL, logger="rental_gateway.services.wallet"):
        assert wallet.balance(holder) == Decimal("179.50")

    assert any("does not match its ledger" in record.getMessage() for record in caplog.records)


def test_debit_against_stale_read_cannot_overdraw(wallet: WalletLedger, wallet_db: Session, holder: uuid.UUID):
    """The account drained after the debit read it: the write itself refuses"""
    wallet.credit(holder, Decimal("100.00"), "Top-up", "k-stale-1")
    repo = WalletRepository(wallet_db)
    account = repo.get_account(holder)

    other = WalletLedger(Session(bind=wallet_db.get_bind()))
    try:
        assert other.debit(holder, Decimal("80.00"), "Rent", "k-stale-2") is True
    finally:
        other.db.close()

    # Balance still reads 100.00 in this session
    assert repo.add_entry(account, Decimal("-80.00"), "Rent", "k-stale-3") is None
    wallet_db.rollback()

    assert wallet.balance(holder) == Decimal("20.00")
    assert not wallet.has_entry("k-stale-3")
