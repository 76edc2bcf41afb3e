"""
Cost Calculator Tests.

Runs against the in-memory catalog double; no database involved.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from backend.app.core.exceptions import InvalidReferenceError, ValidationFailedError
from backend.app.domain.pricing.catalog import InMemoryPricingCatalog
from backend.app.domain.pricing.cost_calculator import CostCalculator, round_half_up


@pytest.fixture
def catalog():
    catalog = InMemoryPricingCatalog()
    catalog.add_box_type(1, "Basic", "25.00")
    catalog.add_box_type(2, "Fragile", "15.99")
    catalog.add_box_type(3, "Retired", "5.00", is_active=False)
    catalog.add_country(1, "Sweden", "SE", "1.000", is_source_country=True)
    catalog.add_country(2, "Germany", "DE", "1.500")
    catalog.add_country(3, "Japan", "JP", "1.333")
    catalog.add_country(4, "Atlantis", "ATL", "2.000", is_active=False)
    return catalog


@pytest.fixture
def calculator(catalog):
    return CostCalculator(catalog, currency="USD")


@pytest.mark.asyncio
async def test_basic_box_to_germany(calculator):
    result = await calculator.calculate(1, 2)

    assert result.base_cost == Decimal("25.00")
    assert result.multiplier == Decimal("1.500")
    assert result.final_cost == Decimal("37.50")
    assert result.currency == "USD"
    assert result.box_type_name == "Basic"
    assert result.country_name == "Germany"
    assert result.breakdown == "25.00 x 1.500 = 37.50 USD"


@pytest.mark.asyncio
async def test_rounds_half_up_to_cents(calculator):
    # 15.99 * 1.333 = 21.31467
    result = await calculator.calculate(2, 3)
    assert result.final_cost == Decimal("21.31")


def test_round_half_up_on_exact_half():
    assert round_half_up(Decimal("10.005")) == Decimal("10.01")
    assert round_half_up(Decimal("10.004")) == Decimal("10.00")
    assert round_half_up(Decimal("0.125")) == Decimal("0.13")


@pytest.mark.asyncio
async def test_same_inputs_same_result(calculator):
    first = await calculator.calculate(2, 3, weight_kg=Decimal("1.20"))
    second = await calculator.calculate(2, 3, weight_kg=Decimal("1.20"))
    assert first == second


@pytest.mark.asyncio
async def test_weight_is_informational(calculator):
    light = await calculator.calculate(1, 2, weight_kg=Decimal("0.50"))
    heavy = await calculator.calculate(1, 2, weight_kg=Decimal("30.00"))

    assert light.final_cost == heavy.final_cost == Decimal("37.50")
    assert heavy.weight_kg == Decimal("30.00")


@pytest.mark.asyncio
async def test_delivery_estimate_source_vs_abroad(calculator):
    domestic = await calculator.calculate(1, 1)
    abroad = await calculator.calculate(1, 3)

    assert (domestic.estimated_delivery.min_days, domestic.estimated_delivery.max_days) == (2, 5)
    assert (abroad.estimated_delivery.min_days, abroad.estimated_delivery.max_days) == (7, 14)
    assert domestic.final_cost == Decimal("25.00")


@pytest.mark.asyncio
async def test_reports_every_invalid_reference(calculator):
    with pytest.raises(InvalidReferenceError) as exc_info:
        await calculator.calculate(99, 98)

    assert exc_info.value.fields == ["box_type_id", "country_id"]
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_inactive_references_are_rejected(calculator):
    with pytest.raises(InvalidReferenceError) as exc_info:
        await calculator.calculate(3, 4)

    messages = [error["message"] for error in exc_info.value.errors]
    assert exc_info.value.fields == ["box_type_id", "country_id"]
    assert all("not available" in message for message in messages)


@pytest.mark.asyncio
async def test_one_bad_reference_only_reports_that_one(calculator):
    with pytest.raises(InvalidReferenceError) as exc_info:
        await calculator.calculate(1, 42)
    assert exc_info.value.fields == ["country_id"]


@pytest.mark.asyncio
async def test_reflects_multiplier_change(calculator, catalog, admin_actor):
    before = await calculator.calculate(1, 2)
    await catalog.update_country_multiplier(2, Decimal("2.000"), admin_actor, reason="fuel surcharge")
    after = await calculator.calculate(1, 2)

    assert before.final_cost == Decimal("37.50")
    assert after.final_cost == Decimal("50.00")
    assert len(catalog.multiplier_log) == 1
    assert catalog.multiplier_log[0].previous_multiplier == Decimal("1.500")


class UnroundedCatalog:
    """Serves stored values exactly as given, bypassing catalog validation."""

    async def get_box_type(self, box_type_id):
        return SimpleNamespace(id=box_type_id, name="Crate", base_cost=Decimal("100.00"), is_active=True)

    async def get_country(self, country_id):
        return SimpleNamespace(
            id=country_id, name="Norway", multiplier=Decimal("1.2345"),
            is_active=True, is_source_country=False,
        )


@pytest.mark.asyncio
async def test_rounds_the_product_not_the_multiplier():
    # 100.00 * 1.2345 = 123.45 exactly; rounding the multiplier first gives 123.40
    result = await CostCalculator(UnroundedCatalog(), currency="USD").calculate(1, 1)

    assert result.final_cost == Decimal("123.45")


def test_in_memory_catalog_validates_like_the_database_catalog(catalog):
    with pytest.raises(ValidationFailedError) as exc_info:
        catalog.add_country(9, "Norway", "NO", "1.2345")
    assert exc_info.value.fields == ["multiplier"]

    with pytest.raises(ValidationFailedError):
        catalog.add_box_type(9, "Crate", "10.001")

    assert catalog.add_country(9, "Norway", "NO", 1.5).multiplier == Decimal("1.500")
