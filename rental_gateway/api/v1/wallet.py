"""Wallet endpoints: balance, ledger history and top-up"""

from fastapi import APIRouter, Depends, Query

from rental_gateway.api.dependencies import get_actor, get_wallet
from rental_gateway.api.v1.schemas import (
    LedgerEntryListResponse,
    TopUpRequest,
    WalletResponse,
)
from rental_gateway.domain.models import Actor
from rental_gateway.services.wallet import WalletLedger

router = APIRouter()


@router.get("/wallet", response_model=WalletResponse)
def get_wallet_balance(
    actor: Actor = Depends(get_actor),
    wallet: WalletLedger = Depends(get_wallet),
):
    return WalletResponse(holder_id=actor.user_id, balance=wallet.balance(actor.user_id))


@router.get("/wallet/entries", response_model=LedgerEntryListResponse)
def get_wallet_entries(
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    wallet: WalletLedger = Depends(get_wallet),
):
    """Most recent ledger entries first"""
    return LedgerEntryListResponse(holder_id=actor.user_id, entries=wallet.entries(actor.user_id, limit=limit))


@router.post("/wallet/top-up", response_model=WalletResponse)
def top_up_wallet(
    request_body: TopUpRequest,
    actor: Actor = Depends(get_actor),
    wallet: WalletLedger = Depends(get_wallet),
):
    """Credit the caller's wallet; replaying the same idempotency key is a no-op"""
    wallet.credit(actor.user_id, request_body.amount, "Wallet top-up", f"topup:{request_body.idempotency_key}")
    return WalletResponse(holder_id=actor.user_id, balance=wallet.balance(actor.user_id))
