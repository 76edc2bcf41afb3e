"""
User profile Pydantic schemas.

The profile is where a registered user's sender details come from.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional


class ProfileUpdate(BaseModel):
    """
    Schema for creating or replacing the signed-in user's profile.

    email defaults to the address carried by the access token.
    """
    email: Optional[EmailStr] = None
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=3, max_length=20)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class ProfileResponse(BaseModel):
    """Schema for profile response."""
    id: int
    email: str
    full_name: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    city: Optional[str]
    postal_code: Optional[str]
    country: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
