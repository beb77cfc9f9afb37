"""Notification webhook client with exponential backoff retry logic"""

import asyncio
import logging
import httpx
from typing import Any, Dict, Optional
from rental_gateway.config import settings
from rental_gateway.domain.models import Notification
from rental_gateway.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)

logger = logging.getLogger(__name__)


class NotificationClient:
    """Client for delivering booking events to the notification service"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send(self, notification: Notification) -> bool:
        """
        Deliver a notification with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^attempt)
        - Retries on 5xx errors and network failures
        - After the last attempt the failure is logged and swallowed; delivery
          never propagates an error to the booking operation that emitted it

        Returns:
            True when delivered, False when all attempts failed
        """
        payload = _payload(notification)
        attempt = 0
        last_error: Optional[Exception] = None

        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=settings.http_timeout_seconds,
                        )
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    last_error = e
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        break

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

        logger.error(
            "Notification delivery failed",
            extra={
                "event_type": notification.event_type.value,
                "user_id": str(notification.user_id),
                "attempts": attempt,
                "error": str(last_error),
            },
        )
        return False


def _payload(notification: Notification) -> Dict[str, Any]:
    return {
        "user_id": str(notification.user_id),
        "event": notification.event_type.value,
        "title": notification.title,
        "body": notification.body,
        "action_link": notification.action_link,
    }
