"""
Pricing Catalog.

Read access to box types and destination countries, plus the administrator
writes that change prices. The catalog is the only writer of
country_multiplier_logs.

Two implementations share the PricingCatalog protocol:
- SQLAlchemyPricingCatalog: backed by the request's AsyncSession
- InMemoryPricingCatalog: explicit test double, wired in by test setup only
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from backend.app.core.identity import ActorContext
from backend.app.models.box_type import BoxType
from backend.app.models.country import Country
from backend.app.models.country_multiplier_log import CountryMultiplierLog
from backend.app.services.audit import AuditAction, append_entry, record_admin_action

logger = logging.getLogger(__name__)

MULTIPLIER_PLACES = Decimal("0.001")
MONEY_PLACES = Decimal("0.01")
COUNTRY_CODE = re.compile(r"[A-Z]{2,3}")

# Country columns an administrator may change through update_country
COUNTRY_UPDATABLE_FIELDS = ("name", "code", "multiplier", "is_source_country", "is_active")


@runtime_checkable
class PricingCatalog(Protocol):
    """Read side of the catalog used by the cost calculator."""

    async def get_box_type(self, box_type_id: int) -> BoxType: ...

    async def get_country(self, country_id: int) -> Country: ...

    async def list_active_countries(self) -> List[Country]: ...

    async def list_active_box_types(self) -> List[BoxType]: ...


def _require_admin(actor: ActorContext, what: str) -> None:
    if not actor.is_admin:
        raise InsufficientPermissionsError(f"Administrator access required to {what}")


def normalize_multiplier(value) -> Decimal:
    """Parse and validate a country multiplier (> 0, at most 3 decimal places)."""
    try:
        multiplier = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailedError([{"field": "multiplier", "message": "Multiplier must be a number"}])
    if not multiplier.is_finite() or multiplier <= 0:
        raise ValidationFailedError([{"field": "multiplier", "message": "Multiplier must be greater than 0"}])
    if multiplier != multiplier.quantize(MULTIPLIER_PLACES):
        raise ValidationFailedError([{"field": "multiplier", "message": "Multiplier allows at most 3 decimal places"}])
    return multiplier.quantize(MULTIPLIER_PLACES)


def normalize_base_cost(value) -> Decimal:
    """Parse and validate a box base cost (>= 0, whole cents)."""
    try:
        cost = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailedError([{"field": "base_cost", "message": "Base cost must be a number"}])
    if not cost.is_finite() or cost < 0:
        raise ValidationFailedError([{"field": "base_cost", "message": "Base cost must not be negative"}])
    if cost != cost.quantize(MONEY_PLACES):
        raise ValidationFailedError([{"field": "base_cost", "message": "Base cost allows at most 2 decimal places"}])
    return cost.quantize(MONEY_PLACES)


def normalize_country_identity(name: str, code: str) -> Tuple[str, str]:
    """Strip both values and upper-case the code; blank values are rejected."""
    name = (name or "").strip()
    code = (code or "").strip().upper()
    errors = []
    if not name:
        errors.append({"field": "name", "message": "Name must not be blank"})
    if not COUNTRY_CODE.fullmatch(code):
        errors.append({"field": "code", "message": "Code must be 2 or 3 letters"})
    if errors:
        raise ValidationFailedError(errors)
    return name, code


class SQLAlchemyPricingCatalog:
    """Pricing catalog backed by the database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_box_type(self, box_type_id: int) -> BoxType:
        box_type = await self.db.get(BoxType, box_type_id)
        if box_type is None:
            raise ResourceNotFoundError("Box type", box_type_id)
        return box_type

    async def get_country(self, country_id: int) -> Country:
        country = await self.db.get(Country, country_id)
        if country is None:
            raise ResourceNotFoundError("Country", country_id)
        return country

    async def list_active_countries(self) -> List[Country]:
        result = await self.db.execute(
            select(Country).where(Country.is_active == True).order_by(Country.name)
        )
        return list(result.scalars().all())

    async def list_active_box_types(self) -> List[BoxType]:
        result = await self.db.execute(
            select(BoxType).where(BoxType.is_active == True).order_by(BoxType.base_cost, BoxType.id)
        )
        return list(result.scalars().all())

    async def update_country_multiplier(
        self,
        country_id: int,
        new_multiplier,
        actor: ActorContext,
        reason: Optional[str] = None
    ) -> Country:
        """
        Change a country's multiplier (administrators only).

        The CountryMultiplierLog row with the previous value is written first,
        then the country is updated; both commit together or not at all.
        Setting the current value again is a no-op and logs nothing.
        """
        _require_admin(actor, "change country pricing")
        multiplier = normalize_multiplier(new_multiplier)

        result = await self.db.execute(
            select(Country).where(Country.id == country_id).with_for_update()
        )
        country = result.scalar_one_or_none()
        if country is None:
            raise ResourceNotFoundError("Country", country_id)

        previous = Decimal(country.multiplier)
        if previous == multiplier:
            return country

        try:
            await append_entry(self.db, CountryMultiplierLog(
                country_id=country.id,
                previous_multiplier=previous,
                new_multiplier=multiplier,
                changed_by=actor.user_id,
                reason=reason or "Administrative update",
            ))
            country.multiplier = multiplier
            await record_admin_action(
                self.db,
                actor=actor,
                action=AuditAction.COUNTRY_MULTIPLIER_UPDATED,
                target_type="country",
                target_id=country.id,
                description=f"Multiplier for {country.code} changed from {previous} to {multiplier}",
                before={"multiplier": previous},
                after={"multiplier": multiplier, "reason": reason},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(country)
        logger.info(
            "Country %s multiplier changed %s -> %s by user %s",
            country.code, previous, multiplier, actor.user_id
        )
        return country

    async def get_multiplier_history(self, country_id: int) -> List[CountryMultiplierLog]:
        """All multiplier changes for a country, newest first."""
        await self.get_country(country_id)
        result = await self.db.execute(
            select(CountryMultiplierLog)
            .where(CountryMultiplierLog.country_id == country_id)
            .order_by(CountryMultiplierLog.created_at.desc(), CountryMultiplierLog.id.desc())
        )
        return list(result.scalars().all())

    async def create_country(
        self,
        actor: ActorContext,
        name: str,
        code: str,
        multiplier,
        is_source_country: bool = False
    ) -> Country:
        """Add a destination country (administrators only)."""
        _require_admin(actor, "create countries")
        name, code = normalize_country_identity(name, code)
        country = Country(
            name=name,
            code=code,
            multiplier=normalize_multiplier(multiplier),
            is_source_country=is_source_country,
            is_active=True,
        )

        try:
            self.db.add(country)
            await self.db.flush()
            await record_admin_action(
                self.db,
                actor=actor,
                action=AuditAction.COUNTRY_CREATED,
                target_type="country",
                target_id=country.id,
                description=f"Country {country.code} created",
                after={
                    "name": country.name,
                    "code": country.code,
                    "multiplier": country.multiplier,
                    "is_source_country": country.is_source_country,
                },
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError(
                f"Country with code '{code}' or name '{name}' already exists"
            ) from exc
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(country)
        return country

    async def update_country(
        self,
        country_id: int,
        changes: Dict[str, Any],
        actor: ActorContext,
        reason: Optional[str] = None
    ) -> Country:
        """
        Change any of a country's name, code, multiplier, source flag or
        active flag (administrators only).

        Only the fields present in ``changes`` are touched. A multiplier change
        also appends a CountryMultiplierLog row. One AdminActionLog row records
        the before/after values of the fields that actually changed.

        Raises:
            ValidationFailedError: unknown field or invalid value
            ConflictError: name or code already used by another country
        """
        _require_admin(actor, "update countries")
        unknown = sorted(set(changes) - set(COUNTRY_UPDATABLE_FIELDS))
        if unknown:
            raise ValidationFailedError(
                [{"field": name, "message": "Field cannot be changed"} for name in unknown]
            )

        result = await self.db.execute(
            select(Country).where(Country.id == country_id).with_for_update()
        )
        country = result.scalar_one_or_none()
        if country is None:
            raise ResourceNotFoundError("Country", country_id)

        requested = dict(changes)
        if "name" in requested or "code" in requested:
            requested["name"], requested["code"] = normalize_country_identity(
                requested.get("name", country.name), requested.get("code", country.code)
            )
        if "multiplier" in requested:
            requested["multiplier"] = normalize_multiplier(requested["multiplier"])
        for flag in ("is_source_country", "is_active"):
            if flag in requested and not isinstance(requested[flag], bool):
                raise ValidationFailedError([{"field": flag, "message": "Must be true or false"}])

        before = {}
        after = {}
        for name, value in requested.items():
            current = getattr(country, name)
            if name == "multiplier":
                current = Decimal(current)
            if current != value:
                before[name] = current
                after[name] = value
        if not after:
            return country

        code = after.get("code", country.code)
        try:
            if "multiplier" in after:
                await append_entry(self.db, CountryMultiplierLog(
                    country_id=country.id,
                    previous_multiplier=before["multiplier"],
                    new_multiplier=after["multiplier"],
                    changed_by=actor.user_id,
                    reason=reason or "Administrative update",
                ))
            for name, value in after.items():
                setattr(country, name, value)
            await self.db.flush()
            await record_admin_action(
                self.db,
                actor=actor,
                action=AuditAction.COUNTRY_UPDATED,
                target_type="country",
                target_id=country_id,
                description=f"Country {code} updated: {', '.join(sorted(after))}",
                before=before,
                after={**after, "reason": reason},
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError(f"Another country already uses this name or code ({code})") from exc
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(country)
        logger.info("Country %s updated (%s) by user %s", code, ", ".join(sorted(after)), actor.user_id)
        return country

    async def update_box_type_base_cost(
        self,
        box_type_id: int,
        new_cost,
        actor: ActorContext,
        reason: Optional[str] = None
    ) -> BoxType:
        """
        Correct a box type's base cost (administrators only).

        Already-created shipments keep their recorded cost.
        """
        _require_admin(actor, "correct box prices")
        base_cost = normalize_base_cost(new_cost)

        result = await self.db.execute(
            select(BoxType).where(BoxType.id == box_type_id).with_for_update()
        )
        box_type = result.scalar_one_or_none()
        if box_type is None:
            raise ResourceNotFoundError("Box type", box_type_id)

        previous = Decimal(box_type.base_cost)
        if previous == base_cost:
            return box_type

        try:
            box_type.base_cost = base_cost
            await record_admin_action(
                self.db,
                actor=actor,
                action=AuditAction.BOX_TYPE_PRICE_CORRECTED,
                target_type="box_type",
                target_id=box_type.id,
                description=f"Base cost for {box_type.name} changed from {previous} to {base_cost}",
                before={"base_cost": previous},
                after={"base_cost": base_cost, "reason": reason},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(box_type)
        return box_type

    async def set_box_type_active(self, box_type_id: int, active: bool, actor: ActorContext) -> BoxType:
        """
        Offer or withdraw a box type (administrators only).

        Inactive box types are rejected for new shipments; existing shipments
        are unaffected.
        """
        _require_admin(actor, "change box type availability")
        result = await self.db.execute(
            select(BoxType).where(BoxType.id == box_type_id).with_for_update()
        )
        box_type = result.scalar_one_or_none()
        if box_type is None:
            raise ResourceNotFoundError("Box type", box_type_id)

        previous = bool(box_type.is_active)
        if previous == active:
            return box_type

        name = box_type.name
        try:
            box_type.is_active = active
            await record_admin_action(
                self.db,
                actor=actor,
                action=AuditAction.BOX_TYPE_AVAILABILITY_CHANGED,
                target_type="box_type",
                target_id=box_type_id,
                description=f"Box type {name} {'activated' if active else 'deactivated'}",
                before={"is_active": previous},
                after={"is_active": active},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(box_type)
        logger.info("Box type %s active=%s by user %s", name, active, actor.user_id)
        return box_type


class InMemoryPricingCatalog:
    """
    Dictionary-backed catalog for tests.

    Holds transient BoxType / Country instances; never attached to a session.
    """

    def __init__(self):
        self.box_types: Dict[int, BoxType] = {}
        self.countries: Dict[int, Country] = {}
        self.multiplier_log: List[CountryMultiplierLog] = []

    def add_box_type(self, id: int, name: str, base_cost, size: str = "", is_active: bool = True) -> BoxType:
        box_type = BoxType(id=id, name=name, size=size, base_cost=normalize_base_cost(base_cost), is_active=is_active)
        self.box_types[id] = box_type
        return box_type

    def add_country(
        self,
        id: int,
        name: str,
        code: str,
        multiplier,
        is_active: bool = True,
        is_source_country: bool = False
    ) -> Country:
        country = Country(
            id=id,
            name=name,
            code=code,
            multiplier=normalize_multiplier(multiplier),
            is_active=is_active,
            is_source_country=is_source_country,
        )
        self.countries[id] = country
        return country

    async def get_box_type(self, box_type_id: int) -> BoxType:
        try:
            return self.box_types[box_type_id]
        except KeyError:
            raise ResourceNotFoundError("Box type", box_type_id)

    async def get_country(self, country_id: int) -> Country:
        try:
            return self.countries[country_id]
        except KeyError:
            raise ResourceNotFoundError("Country", country_id)

    async def list_active_countries(self) -> List[Country]:
        return sorted((c for c in self.countries.values() if c.is_active), key=lambda c: c.name)

    async def list_active_box_types(self) -> List[BoxType]:
        return sorted((b for b in self.box_types.values() if b.is_active), key=lambda b: (b.base_cost, b.id))

    async def update_country_multiplier(
        self,
        country_id: int,
        new_multiplier,
        actor: ActorContext,
        reason: Optional[str] = None
    ) -> Country:
        _require_admin(actor, "change country pricing")
        multiplier = normalize_multiplier(new_multiplier)
        country = await self.get_country(country_id)
        previous = Decimal(country.multiplier)
        if previous == multiplier:
            return country
        self.multiplier_log.append(CountryMultiplierLog(
            country_id=country_id,
            previous_multiplier=previous,
            new_multiplier=multiplier,
            changed_by=actor.user_id,
            reason=reason,
        ))
        country.multiplier = multiplier
        return country
