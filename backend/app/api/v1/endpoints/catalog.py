"""
Catalog API Endpoints.

Public lists of what can be shipped and where to.
"""

from fastapi import APIRouter, Depends

from backend.app.api.v1.deps import get_pricing_catalog
from backend.app.domain.pricing.catalog import SQLAlchemyPricingCatalog
from backend.app.schemas.catalog import (
    BoxTypeListResponse, BoxTypeResponse, CountryListResponse, CountryResponse
)

router = APIRouter(prefix="/catalog", tags=["Catalog"])


@router.get("/countries", response_model=CountryListResponse)
async def list_countries(catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)):
    countries = await catalog.list_active_countries()
    return CountryListResponse(countries=[CountryResponse.model_validate(c) for c in countries])


@router.get("/box-types", response_model=BoxTypeListResponse)
async def list_box_types(catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)):
    box_types = await catalog.list_active_box_types()
    return BoxTypeListResponse(box_types=[BoxTypeResponse.model_validate(b) for b in box_types])
