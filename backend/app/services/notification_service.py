"""
Notification Service.

Shipment e-mails are best-effort: they are dispatched only after the
shipment transaction has committed, run as background tasks, and a failing
transport never affects the request that triggered them.

The default sender writes rows into the ``notifications`` outbox using its
own session; the mail transport itself lives outside this service.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Set

from backend.app.core.config import settings
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError, notification_circuit_breaker
from backend.app.db.session import AsyncSessionLocal
from backend.app.models.notification import Notification, NotificationTemplate

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):

    async def send(
        self,
        recipient_email: str,
        template: NotificationTemplate,
        payload: Dict[str, Any]
    ) -> None: ...


class OutboxNotificationSender:
    """Stores each notification in the outbox table."""

    def __init__(self, session_factory: Callable = AsyncSessionLocal):
        self.session_factory = session_factory

    async def send(
        self,
        recipient_email: str,
        template: NotificationTemplate,
        payload: Dict[str, Any]
    ) -> None:
        async with self.session_factory() as session:
            session.add(Notification(
                recipient_email=recipient_email,
                template=template,
                payload=payload,
                shipment_id=payload.get("shipment_id"),
            ))
            await session.commit()


class NotificationDispatcher:
    """
    Fire-and-forget dispatch through a circuit breaker.

    References to pending tasks are kept until they finish so they are not
    garbage collected mid-flight.
    """

    def __init__(
        self,
        sender: NotificationSender,
        breaker: Optional[CircuitBreaker] = None,
        enabled: bool = True
    ):
        self.sender = sender
        self.breaker = breaker or notification_circuit_breaker
        self.enabled = enabled
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(
        self,
        recipient_email: Optional[str],
        template: NotificationTemplate,
        payload: Dict[str, Any]
    ) -> Optional[asyncio.Task]:
        if not self.enabled or not recipient_email:
            return None

        task = asyncio.create_task(self._deliver(recipient_email, template, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(
        self,
        recipient_email: str,
        template: NotificationTemplate,
        payload: Dict[str, Any]
    ) -> None:
        try:
            await self.breaker.call(self.sender.send, recipient_email, template, payload)
        except CircuitOpenError:
            logger.warning(
                "Notification %s for shipment %s skipped: circuit open",
                template.value, payload.get("shipment_id")
            )
        except Exception:
            logger.exception(
                "Notification %s for shipment %s failed",
                template.value, payload.get("shipment_id")
            )

    async def drain(self) -> None:
        """Wait for every pending notification task (used at shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


notification_dispatcher = NotificationDispatcher(
    sender=OutboxNotificationSender(),
    enabled=settings.notifications_enabled,
)


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency; tests override it."""
    return notification_dispatcher
