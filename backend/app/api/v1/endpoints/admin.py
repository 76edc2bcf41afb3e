"""
Admin API Endpoints.

Administrator-only pricing management, audit trail and shipment statistics.
Every mutation here writes an admin action log entry.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.deps import get_lifecycle_manager, get_pricing_catalog
from backend.app.core.guards import require_admin
from backend.app.core.identity import ActorContext
from backend.app.db.session import get_db
from backend.app.domain.pricing.catalog import SQLAlchemyPricingCatalog
from backend.app.domain.shipments.lifecycle import ShipmentLifecycleManager
from backend.app.schemas.admin import (
    AuditLogResponse, AuditTrailResponse, BaseCostUpdateRequest, BoxTypeActiveRequest,
    CountryCreateRequest, CountryUpdateRequest, MultiplierLogListResponse, MultiplierLogResponse,
    MultiplierUpdateRequest
)
from backend.app.schemas.catalog import BoxTypeResponse, CountryResponse
from backend.app.schemas.shipment import CountryStats, ShipmentStatsResponse, StatusStats
from backend.app.services.audit import AdminLogFilters, query_admin_log

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/countries", response_model=CountryResponse, status_code=status.HTTP_201_CREATED)
async def create_country(
    request: CountryCreateRequest,
    admin: ActorContext = Depends(require_admin),
    catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)
):
    """Add a destination country (admin-only)."""
    country = await catalog.create_country(
        admin,
        name=request.name,
        code=request.code,
        multiplier=request.multiplier,
        is_source_country=request.is_source_country,
    )
    return CountryResponse.model_validate(country)


@router.patch("/countries/{country_id}", response_model=CountryResponse)
async def update_country(
    country_id: int = Path(..., description="Country ID"),
    request: CountryUpdateRequest = ...,
    admin: ActorContext = Depends(require_admin),
    catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)
):
    """
    Update a country (admin-only).

    Only the fields present in the body change. Deactivated countries are
    no longer offered for new shipments.
    """
    country = await catalog.update_country(country_id, request.changes(), admin, reason=request.reason)
    return CountryResponse.model_validate(country)


@router.patch("/countries/{country_id}/multiplier", response_model=CountryResponse)
async def update_country_multiplier(
    country_id: int = Path(..., description="Country ID"),
    request: MultiplierUpdateRequest = ...,
    admin: ActorContext = Depends(require_admin),
    catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)
):
    """
    Change a country's price multiplier (admin-only).

    The previous value is kept in the multiplier log. Existing shipments
    keep the price they were created with.
    """
    country = await catalog.update_country_multiplier(
        country_id, request.multiplier, admin, reason=request.reason
    )
    return CountryResponse.model_validate(country)


@router.get("/countries/{country_id}/multiplier-log", response_model=MultiplierLogListResponse)
async def get_multiplier_log(
    country_id: int = Path(..., description="Country ID"),
    admin: ActorContext = Depends(require_admin),
    catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)
):
    """Multiplier change history of a country, newest first (admin-only)."""
    changes = await catalog.get_multiplier_history(country_id)
    return MultiplierLogListResponse(
        country_id=country_id,
        changes=[MultiplierLogResponse.model_validate(change) for change in changes],
    )


@router.patch("/box-types/{box_type_id}/base-cost", response_model=BoxTypeResponse)
async def update_box_type_base_cost(
    box_type_id: int = Path(..., description="Box type ID"),
    request: BaseCostUpdateRequest = ...,
    admin: ActorContext = Depends(require_admin),
    catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)
):
    """Correct a box type's base cost (admin-only)."""
    box_type = await catalog.update_box_type_base_cost(
        box_type_id, request.base_cost, admin, reason=request.reason
    )
    return BoxTypeResponse.model_validate(box_type)


@router.patch("/box-types/{box_type_id}/active", response_model=BoxTypeResponse)
async def set_box_type_active(
    box_type_id: int = Path(..., description="Box type ID"),
    request: BoxTypeActiveRequest = ...,
    admin: ActorContext = Depends(require_admin),
    catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)
):
    """Offer or withdraw a box type (admin-only)."""
    box_type = await catalog.set_box_type_active(box_type_id, request.is_active, admin)
    return BoxTypeResponse.model_validate(box_type)


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def list_audit_logs(
    actor_id: Optional[int] = Query(None, description="Filter by actor"),
    action: Optional[str] = Query(None, description="Filter by action"),
    target_type: Optional[str] = Query(None, description="Filter by target type"),
    target_id: Optional[int] = Query(None, description="Filter by target id"),
    created_from: Optional[datetime] = Query(None, description="Logged at or after"),
    created_to: Optional[datetime] = Query(None, description="Logged at or before"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: ActorContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Query the admin action log (admin-only).

    Returns most recent entries first.
    """
    logs, total = await query_admin_log(
        db,
        AdminLogFilters(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            created_from=created_from,
            created_to=created_to,
        ),
        page=page,
        page_size=page_size,
    )
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/shipments/stats", response_model=ShipmentStatsResponse)
async def get_shipment_stats(
    created_from: Optional[datetime] = Query(None, description="Created at or after"),
    created_to: Optional[datetime] = Query(None, description="Created at or before"),
    admin: ActorContext = Depends(require_admin),
    manager: ShipmentLifecycleManager = Depends(get_lifecycle_manager)
):
    """Shipment counts and revenue per status and destination country (admin-only)."""
    stats = await manager.get_shipment_stats(admin, created_from=created_from, created_to=created_to)
    return ShipmentStatsResponse(
        total_shipments=stats.total_shipments,
        total_revenue=stats.total_revenue,
        currency=stats.currency,
        by_status=[
            StatusStats(status=item.status, count=item.count, revenue=item.revenue)
            for item in stats.by_status
        ],
        by_country=[
            CountryStats(
                country_id=item.country_id,
                country_name=item.country_name,
                count=item.count,
                revenue=item.revenue,
            )
            for item in stats.by_country
        ],
        created_from=stats.created_from,
        created_to=stats.created_to,
    )
