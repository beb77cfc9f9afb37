"""Structured JSON logging with per-request correlation"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

# Set by RequestIDMiddleware for the duration of a request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines stamped with time, level, service and the current request ID"""

    def __init__(self, *args: Any, service_name: str = "rental-gateway", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name
        request_id = request_id_var.get()
        if request_id is not None:
            log_record.setdefault("request_id", request_id)


def setup_logging(level: str = "INFO", service_name: str = "rental-gateway") -> None:
    """Route every logger through one JSON handler on stdout"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service_name=service_name))
    logger.addHandler(handler)


def log_booking_event(
    step: str,
    booking_id: Any,
    actor_id: Any,
    status: str,
    **fields: Any,
) -> None:
    """Log structured booking lifecycle step for audit and analysis"""
    logging.getLogger("rental_gateway.bookings").info(
        "Booking %s",
        step,
        extra={
            "step": step,
            "booking_id": str(booking_id),
            "actor_id": str(actor_id),
            "booking_status": status,
            **{key: str(value) for key, value in fields.items()},
        },
    )
