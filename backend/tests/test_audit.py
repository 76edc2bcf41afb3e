"""
Audit recorder tests.
"""

import enum
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from backend.app.domain.shipments.lifecycle import ShipmentLifecycleManager
from backend.app.models.shipment_enums import ShipmentStatus
from backend.app.schemas.shipment import parse_shipment_request
from backend.app.services import audit
from backend.tests.factories import guest_sender_payload, shipment_payload


async def make_shipment(db_session, catalog_data, guest_actor):
    manager = ShipmentLifecycleManager(db_session)
    request = parse_shipment_request(
        guest_actor,
        shipment_payload(catalog_data.basic.id, catalog_data.germany.id, sender=guest_sender_payload()),
    )
    result = await manager.create_shipment(guest_actor, request)
    return result.shipment.id


class Colour(enum.Enum):
    RED = "red"


def test_to_json_safe():
    snapshot = audit.to_json_safe({
        "cost": Decimal("37.50"),
        "at": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        "status": ShipmentStatus.CREATED,
        "nested": [{"colour": Colour.RED}],
        "plain": 3,
    })

    assert snapshot == {
        "cost": "37.50",
        "at": "2024-01-02T03:04:05+00:00",
        "status": "CREATED",
        "nested": [{"colour": "red"}],
        "plain": 3,
    }


@pytest.mark.asyncio
async def test_history_is_oldest_first(db_session, catalog_data, guest_actor, admin_actor):
    shipment_id = await make_shipment(db_session, catalog_data, guest_actor)

    await audit.record_status_change(db_session, shipment_id, ShipmentStatus.RECEIVED, actor=admin_actor)
    await audit.record_status_change(db_session, shipment_id, ShipmentStatus.IN_TRANSIT, actor=admin_actor, note="on truck")
    await db_session.commit()

    history = await audit.get_shipment_history(db_session, shipment_id)

    assert [h.status for h in history] == [
        ShipmentStatus.CREATED, ShipmentStatus.RECEIVED, ShipmentStatus.IN_TRANSIT
    ]
    assert history[0].actor_id is None
    assert history[2].actor_id == admin_actor.user_id
    assert history[2].note == "on truck"


@pytest.mark.asyncio
async def test_admin_action_snapshots_are_json_safe(db_session, admin_actor):
    entry = await audit.record_admin_action(
        db_session,
        admin_actor,
        audit.AuditAction.COUNTRY_MULTIPLIER_UPDATED,
        target_type="country",
        target_id=7,
        description="test",
        before={"multiplier": Decimal("1.500")},
        after={"multiplier": Decimal("1.750")},
    )
    await db_session.commit()

    assert entry.id is not None
    assert entry.actor_email == "admin@example.com"
    assert entry.before_data == {"multiplier": "1.500"}


@pytest.mark.asyncio
async def test_query_admin_log_filters_and_pages(db_session, admin_actor, alice_actor):
    for target_id in range(1, 6):
        await audit.record_admin_action(
            db_session, admin_actor, audit.AuditAction.BOX_TYPE_PRICE_CORRECTED,
            target_type="box_type", target_id=target_id, description=f"box {target_id}",
        )
    await audit.record_admin_action(
        db_session, alice_actor, audit.AuditAction.COUNTRY_CREATED,
        target_type="country", target_id=1, description="country",
    )
    await db_session.commit()

    logs, total = await audit.query_admin_log(db_session, page=1, page_size=4)
    assert total == 6
    assert len(logs) == 4
    assert logs[0].action == audit.AuditAction.COUNTRY_CREATED

    logs, total = await audit.query_admin_log(db_session, page=2, page_size=4)
    assert len(logs) == 2

    logs, total = await audit.query_admin_log(
        db_session, audit.AdminLogFilters(target_type="box_type", target_id=3)
    )
    assert total == 1
    assert logs[0].description == "box 3"

    logs, total = await audit.query_admin_log(db_session, audit.AdminLogFilters(actor_id=alice_actor.user_id))
    assert total == 1


def test_audit_module_has_no_mutators():
    public = {name for name in dir(audit) if not name.startswith("_")}
    assert not {name for name in public if name.startswith(("update_", "delete_", "remove_"))}
