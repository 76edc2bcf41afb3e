"""
Shipment API Endpoints.

Creation and cost preview are open to guests; everything else needs a token.
All business rules live in ShipmentLifecycleManager; these handlers only
translate between HTTP and the domain.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from backend.app.api.v1.deps import get_cost_calculator, get_lifecycle_manager
from backend.app.core.dependencies import get_actor, get_authenticated_actor
from backend.app.core.identity import ActorContext
from backend.app.domain.pricing.cost_calculator import CostCalculator
from backend.app.domain.shipments.lifecycle import ShipmentFilters, ShipmentLifecycleManager
from backend.app.models.shipment_enums import ShipmentStatus
from backend.app.schemas.shipment import (
    CostBreakdownResponse,
    CostCalculationRequest,
    ShipmentCreateResponse,
    ShipmentDetailResponse,
    ShipmentListResponse,
    ShipmentResponse,
    StatusHistoryResponse,
    StatusUpdateRequest,
    TrackingEvent,
    TrackingResponse,
)

router = APIRouter(prefix="/shipments", tags=["Shipments"])


@router.post("", response_model=ShipmentCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_shipment(
    payload: Dict[str, Any] = Body(..., description="Shipment details; guests must include sender"),
    actor: ActorContext = Depends(get_actor),
    manager: ShipmentLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Create a shipment.

    Guests supply full sender details including an email address.
    Registered users' sender details are taken from their stored profile.
    """
    result = await manager.create_from_payload(actor, payload)
    return ShipmentCreateResponse(
        shipment=ShipmentResponse.model_validate(result.shipment),
        cost=CostBreakdownResponse.model_validate(result.cost),
    )


@router.post("/cost", response_model=CostBreakdownResponse)
async def calculate_cost(
    request: CostCalculationRequest,
    calculator: CostCalculator = Depends(get_cost_calculator)
):
    """Live cost preview. Writes nothing."""
    breakdown = await calculator.calculate(request.box_type_id, request.country_id, request.weight_kg)
    return CostBreakdownResponse.model_validate(breakdown)


@router.get("", response_model=ShipmentListResponse)
async def list_shipments(
    status_filter: Optional[ShipmentStatus] = Query(None, alias="status", description="Filter by status"),
    country_id: Optional[int] = Query(None, ge=1, description="Filter by destination country"),
    created_from: Optional[datetime] = Query(None, description="Created at or after"),
    created_to: Optional[datetime] = Query(None, description="Created at or before"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    actor: ActorContext = Depends(get_authenticated_actor),
    manager: ShipmentLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    List shipments.

    Administrators see every shipment; registered users only their own.
    """
    shipment_page = await manager.list_shipments(actor, ShipmentFilters(
        status=status_filter,
        country_id=country_id,
        created_from=created_from,
        created_to=created_to,
        page=page,
        page_size=page_size,
    ))
    return ShipmentListResponse(
        shipments=[ShipmentResponse.model_validate(s) for s in shipment_page.shipments],
        total=shipment_page.total,
        page=shipment_page.page,
        page_size=shipment_page.page_size,
    )


@router.get("/track/{tracking_number}", response_model=TrackingResponse)
async def track_shipment(
    tracking_number: str = Path(..., min_length=3, max_length=40),
    manager: ShipmentLifecycleManager = Depends(get_lifecycle_manager)
):
    """Public tracking lookup."""
    view = await manager.track_shipment(tracking_number)
    return TrackingResponse(
        tracking_number=view.tracking_number,
        status=view.status,
        destination_country=view.destination_country,
        created_at=view.created_at,
        updated_at=view.updated_at,
        history=[TrackingEvent.model_validate(entry) for entry in view.history],
    )


@router.get("/{shipment_id}", response_model=ShipmentDetailResponse)
async def get_shipment(
    shipment_id: int = Path(..., description="Shipment ID"),
    actor: ActorContext = Depends(get_authenticated_actor),
    manager: ShipmentLifecycleManager = Depends(get_lifecycle_manager)
):
    """Shipment with its status history (owner or administrator)."""
    detail = await manager.get_shipment(actor, shipment_id)
    shipment = ShipmentResponse.model_validate(detail.shipment)
    return ShipmentDetailResponse(
        **shipment.model_dump(),
        history=[StatusHistoryResponse.model_validate(entry) for entry in detail.history],
    )


@router.patch("/{shipment_id}/status", response_model=ShipmentResponse)
async def update_shipment_status(
    shipment_id: int = Path(..., description="Shipment ID"),
    request: StatusUpdateRequest = ...,
    actor: ActorContext = Depends(get_authenticated_actor),
    manager: ShipmentLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Change a shipment's status.

    Administrators may take any legal transition; owners may only cancel.
    """
    shipment = await manager.update_status(actor, shipment_id, request.status, note=request.note)
    return ShipmentResponse.model_validate(shipment)


@router.delete("/{shipment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shipment(
    shipment_id: int = Path(..., description="Shipment ID"),
    actor: ActorContext = Depends(get_authenticated_actor),
    manager: ShipmentLifecycleManager = Depends(get_lifecycle_manager)
):
    """Delete a shipment (administrator only; delivered shipments are kept)."""
    await manager.delete_shipment(actor, shipment_id)
