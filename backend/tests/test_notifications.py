"""
Notification dispatch tests.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.reliability import CircuitBreaker
from backend.app.models.notification import Notification, NotificationTemplate
from backend.app.services.notification_service import NotificationDispatcher, OutboxNotificationSender
from backend.tests.factories import FailingSender, RecordingSender


@pytest.mark.asyncio
async def test_dispatch_runs_in_background(dispatcher, notification_sender):
    task = dispatcher.dispatch("alice@example.com", NotificationTemplate.SHIPMENT_CREATED, {"shipment_id": 1})

    assert task is not None
    await dispatcher.drain()
    assert notification_sender.sent == [{
        "to": "alice@example.com",
        "template": NotificationTemplate.SHIPMENT_CREATED,
        "payload": {"shipment_id": 1},
    }]


@pytest.mark.asyncio
async def test_nothing_sent_without_recipient(dispatcher, notification_sender):
    assert dispatcher.dispatch(None, NotificationTemplate.SHIPMENT_CREATED, {}) is None
    assert notification_sender.sent == []


@pytest.mark.asyncio
async def test_disabled_dispatcher():
    sender = RecordingSender()
    dispatcher = NotificationDispatcher(sender, breaker=CircuitBreaker(), enabled=False)

    assert dispatcher.dispatch("a@example.com", NotificationTemplate.SHIPMENT_CREATED, {}) is None
    await dispatcher.drain()
    assert sender.sent == []


@pytest.mark.asyncio
async def test_failures_are_swallowed_and_open_the_circuit(caplog):
    sender = FailingSender()
    breaker = CircuitBreaker(failure_threshold=2, reset_timeout=60)
    dispatcher = NotificationDispatcher(sender, breaker=breaker)

    for shipment_id in range(4):
        dispatcher.dispatch("a@example.com", NotificationTemplate.SHIPMENT_STATUS_CHANGED, {"shipment_id": shipment_id})
        await dispatcher.drain()

    # Two real attempts, then the open circuit skips the transport
    assert sender.calls == 2
    assert breaker.state == "OPEN"
    assert "circuit open" in caplog.text


@pytest.mark.asyncio
async def test_outbox_sender_stores_row(db_session):
    sender = OutboxNotificationSender(session_factory=lambda: AsyncSession(db_session.bind))

    await sender.send("bob@example.com", NotificationTemplate.SHIPMENT_STATUS_CHANGED, {"shipment_id": 42, "status": "RECEIVED"})

    result = await db_session.execute(select(Notification))
    row = result.scalar_one()
    assert row.recipient_email == "bob@example.com"
    assert row.shipment_id == 42
    assert row.payload["status"] == "RECEIVED"
