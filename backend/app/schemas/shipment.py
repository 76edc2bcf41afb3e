"""
Shipment Pydantic schemas.

Shipment creation is modelled as two request variants instead of one schema
with conditional rules:

- GuestShipmentRequest: sender details (including a contact email) are required
- AuthenticatedShipmentRequest: sender details come from the stored profile

parse_shipment_request() picks the variant from the actor, never from the
client payload.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, ValidationError

from backend.app.core.exceptions import ValidationFailedError, format_validation_errors
from backend.app.core.identity import ActorContext
from backend.app.models.shipment_enums import ShipmentStatus


class ContactDetails(BaseModel):
    """Structured postal contact shared by sender and receiver."""
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=3, max_length=20)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class ReceiverDetails(ContactDetails):
    email: Optional[EmailStr] = None


class GuestSenderDetails(ContactDetails):
    email: EmailStr


class ShipmentRequestBase(BaseModel):
    box_type_id: int = Field(..., gt=0)
    country_id: int = Field(..., gt=0)
    weight_kg: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2, description="Informational only, not priced")
    receiver: ReceiverDetails


class GuestShipmentRequest(ShipmentRequestBase):
    kind: Literal["guest"] = "guest"
    sender: GuestSenderDetails


class AuthenticatedShipmentRequest(ShipmentRequestBase):
    kind: Literal["authenticated"] = "authenticated"


ShipmentRequest = Annotated[
    Union[GuestShipmentRequest, AuthenticatedShipmentRequest],
    Field(discriminator="kind")
]


def parse_shipment_request(actor: ActorContext, payload: Dict[str, Any]) -> ShipmentRequest:
    """
    Validate a raw creation payload into the variant that fits the actor.

    Every invalid or missing field is reported at once. Sender data sent by a
    registered user is dropped; their profile is authoritative.

    Raises:
        ValidationFailedError: listing each offending field (e.g. "sender.email")
    """
    data = dict(payload or {})
    if actor.is_guest:
        data["kind"] = "guest"
        if data.get("sender") is None:
            data["sender"] = {}
        model = GuestShipmentRequest
    else:
        data["kind"] = "authenticated"
        data.pop("sender", None)
        model = AuthenticatedShipmentRequest

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailedError(format_validation_errors(exc.errors()))


class CostCalculationRequest(BaseModel):
    """Schema for the live cost preview."""
    box_type_id: int = Field(..., gt=0)
    country_id: int = Field(..., gt=0)
    weight_kg: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)


class DeliveryEstimateResponse(BaseModel):
    min_days: int
    max_days: int
    unit: str

    class Config:
        from_attributes = True


class CostBreakdownResponse(BaseModel):
    box_type_id: int
    country_id: int
    box_type_name: str
    country_name: str
    base_cost: Decimal
    multiplier: Decimal
    final_cost: Decimal
    currency: str
    weight_kg: Optional[Decimal] = None
    breakdown: str
    estimated_delivery: DeliveryEstimateResponse

    class Config:
        from_attributes = True


class StatusUpdateRequest(BaseModel):
    """Schema for changing a shipment's status."""
    status: ShipmentStatus
    note: Optional[str] = Field(None, max_length=500)


class ShipmentResponse(BaseModel):
    """Schema for shipment response."""
    id: int
    user_id: Optional[int]
    guest_email: Optional[str]
    tracking_number: str

    sender_name: str
    sender_email: Optional[str]
    sender_phone: str
    sender_address: str
    sender_city: str
    sender_postal_code: str
    sender_country: str

    receiver_name: str
    receiver_email: Optional[str]
    receiver_phone: str
    receiver_address: str
    receiver_city: str
    receiver_postal_code: str
    receiver_country: str

    box_type_id: int
    country_id: int
    weight_kg: Optional[Decimal]
    base_cost: Decimal
    multiplier: Decimal
    cost: Decimal
    currency: str
    status: ShipmentStatus
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StatusHistoryResponse(BaseModel):
    id: int
    status: ShipmentStatus
    actor_id: Optional[int]
    note: Optional[str]
    changed_at: datetime

    class Config:
        from_attributes = True


class ShipmentCreateResponse(BaseModel):
    shipment: ShipmentResponse
    cost: CostBreakdownResponse


class ShipmentDetailResponse(ShipmentResponse):
    history: List[StatusHistoryResponse] = []


class ShipmentListResponse(BaseModel):
    """Schema for paginated shipment list."""
    shipments: List[ShipmentResponse]
    total: int
    page: int
    page_size: int


class TrackingEvent(BaseModel):
    status: ShipmentStatus
    changed_at: datetime

    class Config:
        from_attributes = True


class TrackingResponse(BaseModel):
    """Public tracking view; no contact details."""
    tracking_number: str
    status: ShipmentStatus
    destination_country: str
    created_at: datetime
    updated_at: datetime
    history: List[TrackingEvent] = []


class StatusStats(BaseModel):
    status: ShipmentStatus
    count: int
    revenue: Decimal


class CountryStats(BaseModel):
    country_id: int
    country_name: str
    count: int
    revenue: Decimal


class ShipmentStatsResponse(BaseModel):
    total_shipments: int
    total_revenue: Decimal
    currency: str
    by_status: List[StatusStats]
    by_country: List[CountryStats]
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
