"""Dependency injection for FastAPI endpoints"""

import uuid
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from rental_gateway.domain.models import Actor, Role
from rental_gateway.infrastructure.clients.notifications import NotificationClient
from rental_gateway.infrastructure.database.session import get_db, get_wallet_db
from rental_gateway.services.bookings import BookingLifecycle
from rental_gateway.services.gateway import PaymentGateway
from rental_gateway.services.notifications import BackgroundNotificationDispatcher, NotificationDispatcher
from rental_gateway.services.obligations import ObligationScheduler
from rental_gateway.services.wallet import WalletLedger


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """
    Caller identity resolved by the upstream auth proxy.

    The proxy forwards ``X-User-Id`` and ``X-User-Role``; a request without a
    usable identity never reaches the services.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")
    try:
        role = Role((x_user_role or Role.USER.value).upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Role header")
    return Actor(user_id=user_id, role=role)


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


def get_dispatcher(
    background_tasks: BackgroundTasks,
    client: NotificationClient = Depends(get_notification_client),
) -> NotificationDispatcher:
    return BackgroundNotificationDispatcher(background_tasks, client)


def get_gateway() -> PaymentGateway:
    """Provide payment gateway bridge instance"""
    return PaymentGateway()


def get_wallet(wallet_db: Session = Depends(get_wallet_db)) -> WalletLedger:
    return WalletLedger(wallet_db)


def get_scheduler(
    db: Session = Depends(get_db),
    wallet: WalletLedger = Depends(get_wallet),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    gateway: PaymentGateway = Depends(get_gateway),
) -> ObligationScheduler:
    return ObligationScheduler(db, wallet, dispatcher, gateway=gateway)


def get_lifecycle(
    db: Session = Depends(get_db),
    wallet: WalletLedger = Depends(get_wallet),
    scheduler: ObligationScheduler = Depends(get_scheduler),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BookingLifecycle:
    return BookingLifecycle(db, wallet, scheduler, dispatcher)
