"""
Admin API Schema Definitions.

Pydantic schemas for admin endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List


class CountryCreateRequest(BaseModel):
    """Schema for adding a destination country."""
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=2, max_length=3, pattern=r"^[A-Za-z]{2,3}$")
    multiplier: Decimal = Field(..., gt=0, max_digits=10, decimal_places=3)
    is_source_country: bool = False

    class Config:
        str_strip_whitespace = True


class CountryUpdateRequest(BaseModel):
    """Partial country update; only the fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=2, max_length=3, pattern=r"^[A-Za-z]{2,3}$")
    multiplier: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=3)
    is_source_country: Optional[bool] = None
    is_active: Optional[bool] = None
    reason: Optional[str] = Field(None, max_length=500, description="Reason for the change (for audit log)")

    class Config:
        str_strip_whitespace = True

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"reason"})


class BoxTypeActiveRequest(BaseModel):
    """Schema for offering or withdrawing a box type."""
    is_active: bool


class MultiplierUpdateRequest(BaseModel):
    """Schema for changing a country's multiplier."""
    multiplier: Decimal = Field(..., gt=0, max_digits=10, decimal_places=3)
    reason: Optional[str] = Field(None, max_length=500, description="Reason for the change (for audit log)")


class BaseCostUpdateRequest(BaseModel):
    """Schema for correcting a box type's base cost."""
    base_cost: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=500, description="Reason for the correction (for audit log)")


class MultiplierLogResponse(BaseModel):
    """Schema for one multiplier change."""
    id: int
    country_id: int
    previous_multiplier: Decimal
    new_multiplier: Decimal
    changed_by: Optional[int]
    reason: Optional[str]
    effective_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class MultiplierLogListResponse(BaseModel):
    country_id: int
    changes: List[MultiplierLogResponse]


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_email: Optional[str]
    action: str
    target_type: Optional[str]
    target_id: Optional[int]
    description: Optional[str]
    before_data: Optional[dict]
    after_data: Optional[dict]
    ip_address: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
