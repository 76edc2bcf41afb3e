"""
Audit and status-history recording.

Both logs are append-only: this module exposes writes that add rows and
reads that query them, nothing that updates or deletes. Writes only flush;
the caller owns the transaction, so a failed append fails the whole unit
of work instead of being lost.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.identity import ActorContext
from backend.app.models.admin_action_log import AdminActionLog
from backend.app.models.country_multiplier_log import CountryMultiplierLog
from backend.app.models.shipment_enums import ShipmentStatus
from backend.app.models.shipment_status_history import ShipmentStatusHistory


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    SHIPMENT_STATUS_UPDATED = "SHIPMENT_STATUS_UPDATED"
    SHIPMENT_DELETED = "SHIPMENT_DELETED"

    COUNTRY_CREATED = "COUNTRY_CREATED"
    COUNTRY_UPDATED = "COUNTRY_UPDATED"
    COUNTRY_MULTIPLIER_UPDATED = "COUNTRY_MULTIPLIER_UPDATED"
    BOX_TYPE_PRICE_CORRECTED = "BOX_TYPE_PRICE_CORRECTED"
    BOX_TYPE_AVAILABILITY_CHANGED = "BOX_TYPE_AVAILABILITY_CHANGED"


AuditEntry = Union[ShipmentStatusHistory, AdminActionLog, CountryMultiplierLog]


@dataclass(frozen=True)
class AdminLogFilters:
    """Optional filters for the admin action log."""
    actor_id: Optional[int] = None
    action: Optional[str] = None
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


def to_json_safe(value: Any) -> Any:
    """Convert snapshot values (Decimal, datetime, enums) into JSON-friendly types."""
    if isinstance(value, dict):
        return {key: to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


async def append_entry(db: AsyncSession, entry: AuditEntry) -> AuditEntry:
    """
    Append an immutable audit row inside the caller's transaction.

    Flushes immediately so constraint or connectivity errors surface here
    and abort the enclosing unit of work.
    """
    db.add(entry)
    await db.flush()
    return entry


async def record_status_change(
    db: AsyncSession,
    shipment_id: int,
    status: ShipmentStatus,
    actor: Optional[ActorContext] = None,
    note: Optional[str] = None
) -> ShipmentStatusHistory:
    """
    Append a status-history row for a shipment.

    Args:
        db: Database session (transaction owned by caller)
        shipment_id: Shipment whose status changed
        status: The status the shipment moved into
        actor: Who made the change (None or guest means no user id is stored)
        note: Optional free-text note

    Returns:
        Created ShipmentStatusHistory instance
    """
    entry = ShipmentStatusHistory(
        shipment_id=shipment_id,
        status=status,
        actor_id=actor.user_id if actor is not None else None,
        note=note,
    )
    return await append_entry(db, entry)


async def record_admin_action(
    db: AsyncSession,
    actor: ActorContext,
    action: str,
    target_type: str,
    target_id: Optional[int],
    description: str,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AdminActionLog:
    """
    Append an administrator action with before/after snapshots.

    Returns:
        Created AdminActionLog instance
    """
    entry = AdminActionLog(
        actor_id=actor.user_id,
        actor_email=actor.email,
        action=action,
        target_type=target_type,
        target_id=target_id,
        description=description,
        before_data=to_json_safe(before) if before is not None else None,
        after_data=to_json_safe(after) if after is not None else None,
        ip_address=ip_address,
    )
    return await append_entry(db, entry)


async def get_shipment_history(db: AsyncSession, shipment_id: int) -> List[ShipmentStatusHistory]:
    """Status history of one shipment, oldest first."""
    result = await db.execute(
        select(ShipmentStatusHistory)
        .where(ShipmentStatusHistory.shipment_id == shipment_id)
        .order_by(ShipmentStatusHistory.changed_at, ShipmentStatusHistory.id)
    )
    return list(result.scalars().all())


async def query_admin_log(
    db: AsyncSession,
    filters: Optional[AdminLogFilters] = None,
    page: int = 1,
    page_size: int = 50
) -> Tuple[List[AdminActionLog], int]:
    """
    Retrieve the admin action log with optional filtering.

    Args:
        db: Database session
        filters: Optional AdminLogFilters
        page: 1-based page number
        page_size: Maximum number of records per page

    Returns:
        (logs most recent first, total matching rows)
    """
    filters = filters or AdminLogFilters()
    conditions = []

    if filters.actor_id is not None:
        conditions.append(AdminActionLog.actor_id == filters.actor_id)
    if filters.action:
        conditions.append(AdminActionLog.action == filters.action)
    if filters.target_type:
        conditions.append(AdminActionLog.target_type == filters.target_type)
    if filters.target_id is not None:
        conditions.append(AdminActionLog.target_id == filters.target_id)
    if filters.created_from:
        conditions.append(AdminActionLog.created_at >= filters.created_from)
    if filters.created_to:
        conditions.append(AdminActionLog.created_at <= filters.created_to)

    total_result = await db.execute(
        select(func.count(AdminActionLog.id)).where(*conditions)
    )
    total = total_result.scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(
        select(AdminActionLog)
        .where(*conditions)
        .order_by(AdminActionLog.created_at.desc(), AdminActionLog.id.desc())
        .offset(offset)
        .limit(page_size)
    )
    return list(result.scalars().all()), total
