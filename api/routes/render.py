"""
Host render contract, sandboxed page preparation and render-health reporting
"""

from typing import List
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db
from marketplace.loader import RenderLoader
from runtime.engine import SandboxEngine
from runtime.health import RenderHealthRecorder
from schemas.api import RenderHealthReport, RenderHealthSummary
from schemas.catalog import RenderableModule
from schemas.runtime import MountResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sites/{site_id}", tags=["Render"])


@router.get("/modules", response_model=List[RenderableModule])
async def get_site_modules(site_id: str, db: AsyncSession = Depends(get_db)):
    """Ordered, enabled, renderable modules with merged settings."""
    return await RenderLoader(db).load_for_site(site_id)


@router.get("/page", response_model=List[MountResult])
async def get_site_page(site_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Sandbox documents for every module on the page.

    A module that fails to prepare comes back as a placeholder; its
    siblings are unaffected.
    """
    request_id = getattr(request.state, "request_id", "-")
    modules = await RenderLoader(db).load_for_site(site_id)
    results = await SandboxEngine().mount_page(site_id, modules)

    written = await RenderHealthRecorder(db).record_mounts(site_id, results)
    logger.info(f"[{request_id}] Page for site {site_id}: {len(results)} module(s), {written} health record(s)")
    return results


@router.post("/render-health", status_code=status.HTTP_202_ACCEPTED)
async def report_render_health(
    site_id: str,
    body: RenderHealthReport,
    db: AsyncSession = Depends(get_db),
):
    """Browser-side MODULE_READY / MODULE_ERROR report relayed by the host page."""
    await RenderHealthRecorder(db).report(site_id, body.module_id, body.status, body.error)
    return {"accepted": True}


@router.get("/render-health", response_model=RenderHealthSummary)
async def get_render_health(site_id: str, db: AsyncSession = Depends(get_db)):
    return await RenderHealthRecorder(db).summary(site_id)
