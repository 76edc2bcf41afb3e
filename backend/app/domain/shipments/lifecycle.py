"""
Shipment Lifecycle Manager (Domain Logic).

Owns every shipment write:
- creation (pricing, tracking number, first history row)
- status transitions (authorization, legality, history, audit)
- administrative deletion

Each operation is one database transaction. Side records (status history,
admin audit) commit together with the change they describe or not at all.
Notifications are sent only after commit and never fail the operation.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    ConflictError,
    IllegalTransitionError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from backend.app.core.guards import OwnershipGuard
from backend.app.core.identity import ActorContext
from backend.app.domain.pricing.catalog import PricingCatalog, SQLAlchemyPricingCatalog
from backend.app.domain.pricing.cost_calculator import CostBreakdown, CostCalculator, round_half_up
from backend.app.domain.shipments.tracking import TrackingNumberGenerator
from backend.app.models.country import Country
from backend.app.models.notification import NotificationTemplate
from backend.app.models.shipment import Shipment
from backend.app.models.shipment_enums import ShipmentStatus, is_legal_transition
from backend.app.models.shipment_status_history import ShipmentStatusHistory
from backend.app.models.user import User
from backend.app.schemas.shipment import (
    AuthenticatedShipmentRequest,
    GuestShipmentRequest,
    ShipmentRequest,
    parse_shipment_request,
)
from backend.app.services import audit
from backend.app.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

# Profile attribute -> sender field, for registered senders
PROFILE_SENDER_FIELDS = {
    "full_name": "name",
    "phone": "phone",
    "address": "address",
    "city": "city",
    "postal_code": "postal_code",
    "country": "country",
}

CONTACT_FIELDS = ("name", "email", "phone", "address", "city", "postal_code", "country")


@dataclass
class ShipmentResult:
    shipment: Shipment
    cost: CostBreakdown


@dataclass
class ShipmentDetail:
    shipment: Shipment
    history: List[ShipmentStatusHistory]


@dataclass
class ShipmentPage:
    shipments: List[Shipment]
    total: int
    page: int
    page_size: int


@dataclass(frozen=True)
class ShipmentFilters:
    status: Optional[ShipmentStatus] = None
    country_id: Optional[int] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    page: int = 1
    page_size: int = 20


@dataclass
class TrackingView:
    tracking_number: str
    status: ShipmentStatus
    destination_country: str
    created_at: datetime
    updated_at: datetime
    history: List[ShipmentStatusHistory] = field(default_factory=list)


@dataclass
class StatusStats:
    status: ShipmentStatus
    count: int
    revenue: Decimal


@dataclass
class CountryStats:
    country_id: int
    country_name: str
    count: int
    revenue: Decimal


@dataclass
class ShipmentStats:
    total_shipments: int
    total_revenue: Decimal
    currency: str
    by_status: List[StatusStats]
    by_country: List[CountryStats] = field(default_factory=list)
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


def _is_tracking_collision(exc: IntegrityError) -> bool:
    return "tracking_number" in str(exc.orig)


def shipment_snapshot(shipment: Shipment) -> Dict[str, Any]:
    """Plain dict of every shipment column."""
    return {column.name: getattr(shipment, column.name) for column in Shipment.__table__.columns}


class ShipmentLifecycleManager:

    def __init__(
        self,
        db: AsyncSession,
        catalog: Optional[PricingCatalog] = None,
        calculator: Optional[CostCalculator] = None,
        tracking: Optional[TrackingNumberGenerator] = None,
        notifier: Optional[NotificationDispatcher] = None,
        max_tracking_attempts: Optional[int] = None
    ):
        self.db = db
        self.catalog = catalog or SQLAlchemyPricingCatalog(db)
        self.calculator = calculator or CostCalculator(self.catalog)
        self.tracking = tracking or TrackingNumberGenerator()
        self.notifier = notifier
        self.max_tracking_attempts = max_tracking_attempts or settings.tracking_max_attempts
        self.ownership_guard = OwnershipGuard()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_from_payload(self, actor: ActorContext, payload: Dict[str, Any]) -> ShipmentResult:
        """
        Validate a raw creation payload and create the shipment.

        When the payload is invalid, the rejection also lists profile gaps
        and unknown or inactive catalog references found among the fields
        that did validate, so the caller sees every problem at once.
        """
        try:
            request = parse_shipment_request(actor, payload)
        except ValidationFailedError as exc:
            errors = list(exc.errors)
            if not actor.is_guest:
                _, profile_errors = await self._resolve_sender(actor, None)
                errors.extend(profile_errors)
            errors.extend(await self._payload_reference_errors(payload or {}, skip=exc.fields))
            raise ValidationFailedError(errors, message=exc.message) from exc
        return await self.create_shipment(actor, request)

    async def _payload_reference_errors(self, payload: Dict[str, Any], skip: List[str]) -> List[Dict[str, str]]:
        ids = {}
        for name in ("box_type_id", "country_id"):
            if name in skip:
                continue
            try:
                ids[name] = int(payload.get(name))
            except (TypeError, ValueError):
                continue
        if not ids:
            return []
        _, _, errors = await self.calculator.resolve_references(ids.get("box_type_id", 0), ids.get("country_id", 0))
        return [error for error in errors if error["field"] in ids]

    async def create_shipment(self, actor: ActorContext, request: ShipmentRequest) -> ShipmentResult:
        """
        Price and persist a new shipment.

        Flow:
        1. Resolve sender (guest payload or stored profile); missing sender
           data is reported together with any bad catalog reference
        2. Price it (InvalidReferenceError lists every bad reference)
        3. Insert shipment + CREATED history row in one transaction,
           retrying with a fresh tracking number on collision
        4. Dispatch the creation notification

        Raises:
            ValidationFailedError: missing sender data
            InvalidReferenceError: unknown or inactive box type / country
            ConflictError: tracking number collided on every attempt
        """
        sender, sender_errors = await self._resolve_sender(actor, request)
        if sender_errors:
            _, _, reference_errors = await self.calculator.resolve_references(request.box_type_id, request.country_id)
            raise ValidationFailedError(
                sender_errors + reference_errors,
                message="Validation failed" if actor.is_guest else "User profile is incomplete"
            )
        breakdown = await self.calculator.calculate(request.box_type_id, request.country_id, request.weight_kg)
        receiver = request.receiver

        values = {
            "user_id": None if actor.is_guest else actor.user_id,
            "guest_email": sender["email"] if actor.is_guest else None,
            **{f"sender_{name}": sender[name] for name in CONTACT_FIELDS},
            **{f"receiver_{name}": getattr(receiver, name) for name in CONTACT_FIELDS},
            "box_type_id": breakdown.box_type_id,
            "country_id": breakdown.country_id,
            "weight_kg": breakdown.weight_kg,
            "base_cost": breakdown.base_cost,
            "multiplier": breakdown.multiplier,
            "cost": breakdown.final_cost,
            "currency": breakdown.currency,
            "status": ShipmentStatus.CREATED,
        }

        shipment = None
        for attempt in range(1, self.max_tracking_attempts + 1):
            candidate = Shipment(tracking_number=self.tracking.generate(), **values)
            try:
                self.db.add(candidate)
                await self.db.flush()
                await audit.record_status_change(
                    self.db, candidate.id, ShipmentStatus.CREATED, actor=actor, note="created"
                )
                await self.db.commit()
            except IntegrityError as exc:
                await self.db.rollback()
                if not _is_tracking_collision(exc):
                    raise
                logger.warning(
                    "Tracking number collision on attempt %d/%d, retrying",
                    attempt, self.max_tracking_attempts
                )
                continue
            except Exception:
                await self.db.rollback()
                raise
            shipment = candidate
            break

        if shipment is None:
            raise ConflictError(
                "Could not allocate a unique tracking number",
                details={"attempts": self.max_tracking_attempts}
            )

        await self.db.refresh(shipment)
        logger.info(
            "Shipment %s created (%s, cost %s %s) by %s",
            shipment.tracking_number, shipment.id, shipment.cost, shipment.currency,
            "guest" if actor.is_guest else f"user {actor.user_id}"
        )

        self._notify(shipment, NotificationTemplate.SHIPMENT_CREATED, {
            "cost": shipment.cost,
            "estimated_delivery": asdict(breakdown.estimated_delivery),
        })
        return ShipmentResult(shipment=shipment, cost=breakdown)

    async def _resolve_sender(
        self,
        actor: ActorContext,
        request: Optional[ShipmentRequest]
    ) -> Tuple[Dict[str, Optional[str]], List[Dict[str, str]]]:
        """Sender contact details plus one error per missing field."""
        if actor.is_guest:
            if not isinstance(request, GuestShipmentRequest):
                return {}, [{"field": f"sender.{name}", "message": "Field required"} for name in CONTACT_FIELDS]
            return {name: getattr(request.sender, name) for name in CONTACT_FIELDS}, []

        if request is not None and not isinstance(request, AuthenticatedShipmentRequest):
            logger.debug("Ignoring sender payload from registered user %s", actor.user_id)

        profile = await self.db.get(User, actor.user_id)
        sender = {
            sender_field: (getattr(profile, attr) if profile is not None else None)
            for attr, sender_field in PROFILE_SENDER_FIELDS.items()
        }
        sender["email"] = (profile.email if profile is not None else None) or actor.email

        missing = [name for name in CONTACT_FIELDS if name != "email" and not sender.get(name)]
        return sender, [{"field": f"sender.{name}", "message": "Missing from user profile"} for name in missing]

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def update_status(
        self,
        actor: ActorContext,
        shipment_id: int,
        new_status: ShipmentStatus,
        note: Optional[str] = None
    ) -> Shipment:
        """
        Move a shipment along the state machine.

        Administrators may take any legal edge. Owners may only cancel their
        own shipment. History (and the admin audit row) commit with the
        status change.

        Raises:
            ResourceNotFoundError: shipment does not exist
            InsufficientPermissionsError: actor may not make this change
            IllegalTransitionError: not an edge of the state machine
            ConflictError: a concurrent update won the race
        """
        new_status = ShipmentStatus(new_status)
        shipment = await self._load_for_update(shipment_id)
        previous = shipment.status

        try:
            self._authorize_status_change(actor, shipment, new_status)
            await self._apply_transition(actor, shipment, new_status, note)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(shipment)
        logger.info(
            "Shipment %s status %s -> %s by user %s",
            shipment.id, previous.value, new_status.value, actor.user_id
        )

        self._notify(shipment, NotificationTemplate.SHIPMENT_STATUS_CHANGED, {
            "previous_status": previous,
            "note": note,
        })
        return shipment

    async def _load_for_update(self, shipment_id: int) -> Shipment:
        result = await self.db.execute(
            select(Shipment)
            .where(Shipment.id == shipment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        shipment = result.scalar_one_or_none()
        if shipment is None:
            raise ResourceNotFoundError("Shipment", shipment_id)
        return shipment

    def _authorize_status_change(self, actor: ActorContext, shipment: Shipment, new_status: ShipmentStatus) -> None:
        if actor.is_admin:
            return
        if actor.is_guest or not self.ownership_guard.can_access(shipment.user_id, actor):
            raise InsufficientPermissionsError("You can only change the status of your own shipments")
        if new_status != ShipmentStatus.CANCELLED:
            raise InsufficientPermissionsError("Only administrators can set this status")

    async def _apply_transition(
        self,
        actor: ActorContext,
        shipment: Shipment,
        new_status: ShipmentStatus,
        note: Optional[str]
    ) -> None:
        current = shipment.status
        if not is_legal_transition(current, new_status):
            raise IllegalTransitionError(current.value, new_status.value)

        expected_version = shipment.version
        shipment.status = new_status
        try:
            await self.db.flush()
        except StaleDataError as exc:
            raise ConflictError(
                "Shipment was modified concurrently, reload and retry",
                details={"shipment_id": shipment.id, "expected_version": expected_version}
            ) from exc

        await audit.record_status_change(self.db, shipment.id, new_status, actor=actor, note=note)

        if actor.is_admin:
            await audit.record_admin_action(
                self.db,
                actor=actor,
                action=audit.AuditAction.SHIPMENT_STATUS_UPDATED,
                target_type="shipment",
                target_id=shipment.id,
                description=f"Status of {shipment.tracking_number} changed from {current.value} to {new_status.value}",
                before={"status": current},
                after={"status": new_status, "note": note},
            )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_shipment(self, actor: ActorContext, shipment_id: int) -> None:
        """
        Delete a shipment (administrators only).

        The audit row keeps a full snapshot, history included. Delivered
        shipments are kept for record purposes.
        """
        if not actor.is_admin:
            raise InsufficientPermissionsError("Administrator access required to delete shipments")

        shipment = await self._load_for_update(shipment_id)

        try:
            if shipment.status == ShipmentStatus.DELIVERED:
                raise ConflictError(
                    "Delivered shipments cannot be deleted",
                    details={"shipment_id": shipment_id, "status": shipment.status.value}
                )
            history = await audit.get_shipment_history(self.db, shipment.id)
            snapshot = shipment_snapshot(shipment)
            snapshot["history"] = [
                {"status": entry.status, "actor_id": entry.actor_id, "note": entry.note, "changed_at": entry.changed_at}
                for entry in history
            ]
            await audit.record_admin_action(
                self.db,
                actor=actor,
                action=audit.AuditAction.SHIPMENT_DELETED,
                target_type="shipment",
                target_id=shipment.id,
                description=f"Shipment {shipment.tracking_number} deleted",
                before=snapshot,
            )
            await self.db.execute(
                delete(ShipmentStatusHistory).where(ShipmentStatusHistory.shipment_id == shipment.id)
            )
            await self.db.delete(shipment)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Shipment %s deleted by admin %s", shipment_id, actor.user_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_shipment(self, actor: ActorContext, shipment_id: int) -> ShipmentDetail:
        """
        Shipment with its status history.

        Anyone but the owner or an administrator gets ResourceNotFoundError,
        so ids cannot be enumerated.
        """
        shipment = await self.db.get(Shipment, shipment_id)
        if shipment is None or actor.is_guest or not self.ownership_guard.can_access(shipment.user_id, actor):
            raise ResourceNotFoundError("Shipment", shipment_id)
        history = await audit.get_shipment_history(self.db, shipment.id)
        return ShipmentDetail(shipment=shipment, history=history)

    async def list_shipments(self, actor: ActorContext, filters: Optional[ShipmentFilters] = None) -> ShipmentPage:
        """Administrators see every shipment; registered users see their own."""
        if actor.is_guest:
            raise InsufficientPermissionsError("Sign in to list shipments")
        filters = filters or ShipmentFilters()

        conditions = []
        owner_id = self.ownership_guard.filter_by_ownership(actor)
        if owner_id is not None:
            conditions.append(Shipment.user_id == owner_id)
        if filters.status is not None:
            conditions.append(Shipment.status == filters.status)
        if filters.country_id is not None:
            conditions.append(Shipment.country_id == filters.country_id)
        if filters.created_from is not None:
            conditions.append(Shipment.created_at >= filters.created_from)
        if filters.created_to is not None:
            conditions.append(Shipment.created_at <= filters.created_to)

        total_result = await self.db.execute(select(func.count(Shipment.id)).where(*conditions))
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Shipment)
            .where(*conditions)
            .order_by(Shipment.created_at.desc(), Shipment.id.desc())
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
        )
        return ShipmentPage(
            shipments=list(result.scalars().all()),
            total=total,
            page=filters.page,
            page_size=filters.page_size,
        )

    async def track_shipment(self, tracking_number: str) -> TrackingView:
        """Public lookup by tracking number; no contact details are exposed."""
        result = await self.db.execute(
            select(Shipment).where(Shipment.tracking_number == tracking_number.strip().upper())
        )
        shipment = result.scalar_one_or_none()
        if shipment is None:
            raise ResourceNotFoundError("Shipment", tracking_number)

        country = await self.db.get(Country, shipment.country_id)
        history = await audit.get_shipment_history(self.db, shipment.id)
        return TrackingView(
            tracking_number=shipment.tracking_number,
            status=shipment.status,
            destination_country=country.name if country is not None else shipment.receiver_country,
            created_at=shipment.created_at,
            updated_at=shipment.updated_at,
            history=history,
        )

    async def get_shipment_stats(
        self,
        actor: ActorContext,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None
    ) -> ShipmentStats:
        """
        Shipment count and revenue per status and per destination country
        (administrators only), optionally limited to a creation window.

        Countries are listed busiest first; countries without shipments in
        the window are left out.
        """
        if not actor.is_admin:
            raise InsufficientPermissionsError("Administrator access required")
        if created_from is not None and created_to is not None and created_from > created_to:
            raise ValidationFailedError([
                {"field": "created_from", "message": "created_from must not be after created_to"}
            ])

        conditions = []
        if created_from is not None:
            conditions.append(Shipment.created_at >= created_from)
        if created_to is not None:
            conditions.append(Shipment.created_at <= created_to)

        result = await self.db.execute(
            select(Shipment.status, func.count(Shipment.id), func.sum(Shipment.cost))
            .where(*conditions)
            .group_by(Shipment.status)
        )
        rows = {status: (count, revenue) for status, count, revenue in result.all()}

        by_status = []
        for status in ShipmentStatus:
            count, revenue = rows.get(status, (0, None))
            by_status.append(StatusStats(
                status=status,
                count=count,
                revenue=round_half_up(Decimal(str(revenue or 0))),
            ))

        shipment_count = func.count(Shipment.id)
        result = await self.db.execute(
            select(Country.id, Country.name, shipment_count, func.sum(Shipment.cost))
            .join(Shipment, Shipment.country_id == Country.id)
            .where(*conditions)
            .group_by(Country.id, Country.name)
            .order_by(shipment_count.desc(), Country.name)
        )
        by_country = [
            CountryStats(
                country_id=country_id,
                country_name=name,
                count=count,
                revenue=round_half_up(Decimal(str(revenue or 0))),
            )
            for country_id, name, count, revenue in result.all()
        ]

        return ShipmentStats(
            total_shipments=sum(item.count for item in by_status),
            total_revenue=round_half_up(sum((item.revenue for item in by_status), Decimal("0"))),
            currency=settings.currency,
            by_status=by_status,
            by_country=by_country,
            created_from=created_from,
            created_to=created_to,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, shipment: Shipment, template: NotificationTemplate, extra: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        payload = audit.to_json_safe({
            "shipment_id": shipment.id,
            "tracking_number": shipment.tracking_number,
            "status": shipment.status,
            "currency": shipment.currency,
            **extra,
        })
        try:
            self.notifier.dispatch(shipment.contact_email, template, payload)
        except Exception:
            logger.exception("Could not schedule %s notification for shipment %s", template.value, shipment.id)
