"""
Catalog Pydantic schemas.

Public read models for box types and destination countries.
"""

from pydantic import BaseModel
from decimal import Decimal
from typing import List


class BoxTypeResponse(BaseModel):
    """Schema for box type response."""
    id: int
    name: str
    size: str
    base_cost: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class CountryResponse(BaseModel):
    """Schema for country response."""
    id: int
    name: str
    code: str
    multiplier: Decimal
    is_source_country: bool
    is_active: bool

    class Config:
        from_attributes = True


class BoxTypeListResponse(BaseModel):
    box_types: List[BoxTypeResponse]


class CountryListResponse(BaseModel):
    countries: List[CountryResponse]
