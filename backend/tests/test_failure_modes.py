"""
Failure Injection Tests.

Validates resilience against component failures.
"""

import pytest
from sqlalchemy.exc import OperationalError

from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.domain.pricing.catalog import SQLAlchemyPricingCatalog


async def failing_func():
    raise ValueError("Boom")


async def working_func():
    return "ok"


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    # Threshold reached, the function is no longer called
    with pytest.raises(CircuitOpenError):
        await cb.call(working_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovers():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=60)
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Pretend the timeout has passed
    cb.last_failure_time -= 61

    assert await cb.call(working_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_failure_reopens():
    cb = CircuitBreaker(failure_threshold=3, reset_timeout=60)
    for _ in range(3):
        with pytest.raises(ValueError):
            await cb.call(failing_func)
    cb.last_failure_time -= 61

    with pytest.raises(ValueError):
        await cb.call(failing_func)

    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    await cb.call(working_func)
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    assert cb.state == "CLOSED"


@pytest.mark.asyncio
async def test_database_outage_returns_503(client, mocker):
    """Connectivity errors surface as a fatal persistence error, not a 500."""
    mocker.patch.object(
        SQLAlchemyPricingCatalog,
        "list_active_countries",
        side_effect=OperationalError("SELECT 1", {}, ConnectionRefusedError("db down")),
    )

    response = await client.get("/v1/catalog/countries")

    assert response.status_code == 503
    assert response.json()["error_code"] == "ERR_FATAL_001"


@pytest.mark.asyncio
async def test_responses_carry_correlation_id(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers
