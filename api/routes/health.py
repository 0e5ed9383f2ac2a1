"""
Health check endpoint with database, catalog and render-health status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse
from models.marketplace_module import MarketplaceModule
from models.render_health import ModuleRenderHealth
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Active / inactive catalog projections
    - Render success and failure totals across sites
    """

    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    active = inactive = successes = failures = 0

    if db_connected:
        try:
            result = await db.execute(
                select(MarketplaceModule.is_active, func.count(MarketplaceModule.id))
                .group_by(MarketplaceModule.is_active)
            )
            for is_active, count in result.all():
                if is_active:
                    active = count
                else:
                    inactive = count

            result = await db.execute(
                select(
                    func.coalesce(func.sum(ModuleRenderHealth.success_count), 0),
                    func.coalesce(func.sum(ModuleRenderHealth.failure_count), 0),
                )
            )
            successes, failures = result.one()
        except Exception as e:
            logger.error(f"Failed to fetch catalog/render counts: {str(e)}")

    # Status is derived by the validator in HealthCheckResponse
    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        catalog_modules_active=active,
        catalog_modules_inactive=inactive,
        render_successes=successes,
        render_failures=failures,
    )
