"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from rental_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from rental_gateway.api.v1 import bookings, obligations, payments, wallet
from rental_gateway.domain.exceptions import DomainException
from rental_gateway.infrastructure.observability.logging import setup_logging
from rental_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level, service_name=settings.service_name)

logger = logging.getLogger(__name__)

# Error kind -> HTTP status
STATUS_BY_KIND = {
    "validation": 422,
    "not_found": 404,
    "authorization": 403,
    "conflict": 409,
    "invalid_state": 409,
    "insufficient_funds": 402,
    "limit_exceeded": 422,
    "invalid_signature": 400,
    "configuration": 503,
    "payment_processor": 502,
}


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 400)
    log = logger.error if status_code >= 500 else logger.info
    log(
        f"{exc.kind}: {exc.message}",
        extra={"request_id": getattr(request.state, "request_id", "unknown"), "path": request.url.path},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Rental Booking Gateway",
        description="Rent bookings, monthly obligations, wallet escrow and payment gateway",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(bookings.router, prefix="/v1", tags=["bookings"])
    app.include_router(obligations.router, prefix="/v1", tags=["obligations"])
    app.include_router(wallet.router, prefix="/v1", tags=["wallet"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])

    return app


app = create_app()
