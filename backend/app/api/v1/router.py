"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import shipments, catalog, admin, users

router = APIRouter()

# Shipment creation, cost preview, lifecycle and public tracking
router.include_router(shipments.router)

# Box types and destination countries
router.include_router(catalog.router)

# Pricing administration, audit trail, statistics
router.include_router(admin.router)

# Registered user profile
router.include_router(users.router)
