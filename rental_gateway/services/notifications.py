"""Notification dispatch: best-effort side channel for booking events"""

import logging
import uuid
from typing import List

from fastapi import BackgroundTasks

from rental_gateway.domain.models import EventType, Notification
from rental_gateway.infrastructure.clients.notifications import NotificationClient

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Fire-and-forget dispatcher.

    ``notify`` never raises: delivery problems are logged here and never reach
    the booking operation that emitted the event.
    """

    def notify(self, user_id: uuid.UUID, event_type: EventType, title: str, body: str, action_link: str) -> None:
        notification = Notification(
            user_id=user_id,
            event_type=event_type,
            title=title,
            body=body,
            action_link=action_link,
        )
        try:
            self._dispatch(notification)
        except Exception:
            logger.exception(
                "Notification dispatch failed",
                extra={"event_type": event_type.value, "user_id": str(user_id)},
            )

    def _dispatch(self, notification: Notification) -> None:
        raise NotImplementedError


class BackgroundNotificationDispatcher(NotificationDispatcher):
    """Schedules webhook delivery after the response has been sent"""

    def __init__(self, background_tasks: BackgroundTasks, client: NotificationClient):
        self.background_tasks = background_tasks
        self.client = client

    def _dispatch(self, notification: Notification) -> None:
        self.background_tasks.add_task(self.client.send, notification)


class InMemoryNotificationDispatcher(NotificationDispatcher):
    """Keeps notifications in a list; used by scripts and tests"""

    def __init__(self) -> None:
        self.sent: List[Notification] = []

    def _dispatch(self, notification: Notification) -> None:
        self.sent.append(notification)

    def of_type(self, event_type: EventType) -> List[Notification]:
        return [n for n in self.sent if n.event_type == event_type]
