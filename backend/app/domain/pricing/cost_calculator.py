"""
Cost Calculator (Domain Logic).

Derives a shipment price from the catalog:

    final_cost = round_half_up(box_type.base_cost * country.multiplier, 2)

All arithmetic uses Decimal. The calculator never writes; the same inputs
against the same catalog state always give the same breakdown.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidReferenceError, ResourceNotFoundError
from backend.app.domain.pricing.catalog import PricingCatalog
from backend.app.models.box_type import BoxType
from backend.app.models.country import Country

CENTS = Decimal("0.01")

# Business-day delivery windows
DOMESTIC_DELIVERY_DAYS = (2, 5)
INTERNATIONAL_DELIVERY_DAYS = (7, 14)


def round_half_up(value: Decimal, places: Decimal = CENTS) -> Decimal:
    return Decimal(value).quantize(places, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DeliveryEstimate:
    min_days: int
    max_days: int
    unit: str = "business days"


@dataclass(frozen=True)
class CostBreakdown:
    """Result of a price calculation."""
    box_type_id: int
    country_id: int
    base_cost: Decimal
    multiplier: Decimal
    final_cost: Decimal
    currency: str
    box_type_name: str
    country_name: str
    weight_kg: Optional[Decimal]
    breakdown: str
    estimated_delivery: DeliveryEstimate

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def estimate_delivery(is_source_country: bool) -> DeliveryEstimate:
    low, high = DOMESTIC_DELIVERY_DAYS if is_source_country else INTERNATIONAL_DELIVERY_DAYS
    return DeliveryEstimate(min_days=low, max_days=high)


class CostCalculator:
    """
    Computes shipment cost from a PricingCatalog.

    Raises InvalidReferenceError listing every unresolved or inactive
    reference, so a client can fix all of them in one round trip.
    """

    def __init__(self, catalog: PricingCatalog, currency: Optional[str] = None):
        self.catalog = catalog
        self.currency = currency or settings.currency

    async def resolve_references(
        self,
        box_type_id: int,
        country_id: int
    ) -> Tuple[Optional[BoxType], Optional[Country], List[Dict[str, str]]]:
        """
        Look up both catalog references without raising.

        Returns the rows found plus one error per missing or inactive
        reference.
        """
        errors: List[Dict[str, str]] = []
        box_type = None
        country = None

        try:
            box_type = await self.catalog.get_box_type(box_type_id)
            if not box_type.is_active:
                errors.append({"field": "box_type_id", "message": f"Box type {box_type_id} is not available"})
        except ResourceNotFoundError:
            errors.append({"field": "box_type_id", "message": f"Box type {box_type_id} does not exist"})

        try:
            country = await self.catalog.get_country(country_id)
            if not country.is_active:
                errors.append({"field": "country_id", "message": f"Country {country_id} is not available"})
        except ResourceNotFoundError:
            errors.append({"field": "country_id", "message": f"Country {country_id} does not exist"})

        return box_type, country, errors

    async def calculate(
        self,
        box_type_id: int,
        country_id: int,
        weight_kg: Optional[Decimal] = None
    ) -> CostBreakdown:
        box_type, country, errors = await self.resolve_references(box_type_id, country_id)
        if errors:
            raise InvalidReferenceError(errors)

        # Round once, on the product of the stored operands
        base_cost = Decimal(str(box_type.base_cost))
        multiplier = Decimal(str(country.multiplier))
        final_cost = round_half_up(base_cost * multiplier)

        return CostBreakdown(
            box_type_id=box_type.id,
            country_id=country.id,
            base_cost=base_cost,
            multiplier=multiplier,
            final_cost=final_cost,
            currency=self.currency,
            box_type_name=box_type.name,
            country_name=country.name,
            weight_kg=Decimal(str(weight_kg)) if weight_kg is not None else None,
            breakdown=f"{base_cost} x {multiplier} = {final_cost} {self.currency}",
            estimated_delivery=estimate_delivery(bool(country.is_source_country)),
        )
