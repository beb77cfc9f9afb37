"""Engines and sessions for the booking store and the wallet ledger"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session
from rental_gateway.config import settings


def build_engine(url: str) -> Engine:
    """Engine for ``url``; server databases get the configured pool, SQLite is shared across threads"""
    if make_url(url).get_backend_name() == "sqlite":
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle_seconds,
    )


def build_wallet_engine(booking_engine: Engine, wallet_url: Optional[str]) -> Engine:
    """The ledger may live in its own database; otherwise it shares the booking engine's pool"""
    if not wallet_url or make_url(wallet_url) == booking_engine.url:
        return booking_engine
    return build_engine(wallet_url)


engine = build_engine(settings.database_url)
wallet_engine = build_wallet_engine(engine, settings.wallet_database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
# Ledger sessions always commit on their own, even when the engine is shared
WalletSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=wallet_engine)


def get_db() -> Session:
    """Dependency injection for booking-store sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_wallet_db() -> Session:
    """Dependency injection for wallet-ledger sessions, never the request's booking session"""
    db = WalletSessionLocal()
    try:
        yield db
    finally:
        db.close()
