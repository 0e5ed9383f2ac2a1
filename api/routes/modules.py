"""
Authoring/admin endpoints: deploy, unpublish, rollback and catalog sync
"""

from typing import List
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_api_key
from publishing.deployer import DeploymentPipeline
from publishing.sync import SyncEngine
from schemas.api import DeployRequest
from schemas.pipeline import (
    DeploymentInfo,
    DeploymentResult,
    RollbackResult,
    SyncResult,
    SyncSummary,
    UnpublishResult,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Publishing"], dependencies=[Depends(require_api_key)])


@router.post("/modules/{source_id}/deploy", response_model=DeploymentResult)
async def deploy_module(
    source_id: UUID,
    body: DeployRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Snapshot the source as a new version, flip its status and (production) sync the catalog."""
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] Deploy {source_id} to {body.environment.value}")
    return await DeploymentPipeline(db).deploy(
        source_id,
        changelog=body.changelog,
        version=body.version,
        environment=body.environment,
        bump=body.bump,
    )


@router.post("/modules/{source_id}/unpublish", response_model=UnpublishResult)
async def unpublish_module(source_id: UUID, db: AsyncSession = Depends(get_db)):
    return await DeploymentPipeline(db).unpublish(source_id)


@router.get("/modules/{source_id}/deployments", response_model=List[DeploymentInfo])
async def list_deployments(source_id: UUID, db: AsyncSession = Depends(get_db)):
    return await DeploymentPipeline(db).list_deployments(source_id)


@router.post("/deployments/{deployment_id}/rollback", response_model=RollbackResult)
async def rollback_deployment(deployment_id: UUID, db: AsyncSession = Depends(get_db)):
    return await DeploymentPipeline(db).rollback(deployment_id)


@router.post("/modules/{source_id}/sync", response_model=SyncResult)
async def sync_module(
    source_id: UUID,
    dry_run: bool = Query(False, description="Report what would change without writing"),
    db: AsyncSession = Depends(get_db),
):
    engine = SyncEngine(db)
    if dry_run:
        return await engine.preview(source_id)
    return await engine.sync_one(source_id)


@router.post("/sync", response_model=SyncSummary)
async def sync_all(db: AsyncSession = Depends(get_db)):
    """Reconcile every published module into the catalog."""
    return await SyncEngine(db).sync_all()
