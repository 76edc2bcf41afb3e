"""
Service dependencies for the v1 endpoints.

Everything is built per request around the request's database session.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.domain.pricing.catalog import SQLAlchemyPricingCatalog
from backend.app.domain.pricing.cost_calculator import CostCalculator
from backend.app.domain.shipments.lifecycle import ShipmentLifecycleManager
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher


def get_pricing_catalog(db: AsyncSession = Depends(get_db)) -> SQLAlchemyPricingCatalog:
    return SQLAlchemyPricingCatalog(db)


def get_cost_calculator(catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog)) -> CostCalculator:
    return CostCalculator(catalog)


def get_lifecycle_manager(
    db: AsyncSession = Depends(get_db),
    catalog: SQLAlchemyPricingCatalog = Depends(get_pricing_catalog),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher)
) -> ShipmentLifecycleManager:
    return ShipmentLifecycleManager(db, catalog=catalog, notifier=notifier)
