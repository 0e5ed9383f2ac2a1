"""
Per-site module installation endpoints
"""

from typing import List
import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db
from marketplace.installation import InstallationManager
from schemas.api import InstallRequest, SetEnabledRequest, UpdateSettingsRequest
from schemas.catalog import InstallationResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sites/{site_id}/installations", tags=["Installations"])


@router.get("", response_model=List[InstallationResponse])
async def list_installations(
    site_id: str,
    enabled_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return await InstallationManager(db).list_for_site(site_id, enabled_only=enabled_only)


@router.post("", response_model=InstallationResponse, status_code=status.HTTP_201_CREATED)
async def install_module(site_id: str, body: InstallRequest, db: AsyncSession = Depends(get_db)):
    """
    Install a module on a site.

    409 when already installed, 404 when the module is not available,
    422 when the settings do not match the module's schema.
    """
    return await InstallationManager(db).install(site_id, body.module_id, body.settings)


@router.delete("/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def uninstall_module(site_id: str, module_id: str, db: AsyncSession = Depends(get_db)):
    await InstallationManager(db).uninstall(site_id, module_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{module_id}/settings", response_model=InstallationResponse)
async def update_installation_settings(
    site_id: str,
    module_id: str,
    body: UpdateSettingsRequest,
    db: AsyncSession = Depends(get_db),
):
    return await InstallationManager(db).update_settings(site_id, module_id, body.settings)


@router.patch("/{module_id}", response_model=InstallationResponse)
async def set_installation_enabled(
    site_id: str,
    module_id: str,
    body: SetEnabledRequest,
    db: AsyncSession = Depends(get_db),
):
    return await InstallationManager(db).set_enabled(site_id, module_id, body.is_enabled)
