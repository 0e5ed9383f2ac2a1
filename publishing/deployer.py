# ============================================================================
# File: publishing/deployer.py
# Description: Deployment orchestration with best-effort catalog sync
# ============================================================================
"""
Deployment Pipeline - snapshot, status transition, then catalog sync.

Phases of a deploy:
1. Validate - the source must be deployable before anything is written
2. Snapshot - immutable ModuleVersion, committed on its own
3. Transition - ModuleDeployment audit row and the source status flip
4. Sync - production only, best-effort; a failure becomes a warning

The version snapshot and the status flip are never rolled back because
the catalog sync failed. A missed sync is repaired by the scheduled
reconciliation job.
"""

from typing import List, Optional, Union
from uuid import UUID
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import (
    ModuleServiceError,
    ValidationError,
    SettingsValidationError,
    NotFoundError,
    PersistenceError,
)
from models.base import ModuleStatus, DeploymentEnvironment, DeploymentStatus
from models.module_source import ModuleSource
from models.module_version import ModuleVersion, ModuleDeployment
from publishing.sync import SyncEngine, _as_uuid
from publishing.versioning import VersionLedger, increment_version, compare_versions, BUMP_TYPES
from runtime.policy import scan_code
from schemas.pipeline import (
    SyncAction,
    SyncResult,
    DeploymentResult,
    UnpublishResult,
    DeploymentInfo,
    RollbackResult,
)
from schemas.settings_schema import SettingsSchema

logger = logging.getLogger(__name__)


def validate_for_deployment(source: ModuleSource) -> List[str]:
    """Return every reason the source cannot be deployed (empty when deployable)."""
    errors: List[str] = []

    if not (source.name or "").strip():
        errors.append("Module name is required")

    code = source.render_code or ""
    if not code.strip():
        errors.append("Module render code is required")
    else:
        if "export default" not in code:
            errors.append("Module must have a default export")
        if code.count("{") != code.count("}"):
            errors.append("Mismatched curly braces in code")
        if settings.SANDBOX_REJECT_UNSAFE_CODE:
            for finding in scan_code(code):
                errors.append(f"Forbidden host API '{finding.pattern}' on line {finding.line}: {finding.message}")

    try:
        schema = SettingsSchema.parse(source.settings_schema)
        schema.validate_settings(source.default_settings or {})
    except SettingsValidationError as e:
        field_errors = e.context.get("field_errors")
        if field_errors:
            details = ", ".join(f"{name}: {problem}" for name, problem in field_errors.items())
            errors.append(f"{e.message} ({details})")
        else:
            errors.append(e.message)

    return errors


class DeploymentPipeline:
    """
    Deployment orchestrator.

    Responsibilities:
    - Reject undeployable sources before any write
    - Write exactly one version snapshot and one audit row per deploy
    - Keep deploy success independent of catalog visibility
    """

    def __init__(self, db_session: AsyncSession, sync_engine: Optional[SyncEngine] = None):
        self.db = db_session
        self.ledger = VersionLedger(db_session)
        self.sync_engine = sync_engine or SyncEngine(db_session)

    async def _get_source(self, source_id: UUID) -> ModuleSource:
        source = await self.db.get(ModuleSource, source_id)
        if source is None:
            raise NotFoundError(
                "Module source not found",
                context={"module_source_id": str(source_id)},
            )
        return source

    async def _commit(self, operation: str, table_name: str, source_id: UUID) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to write deployment state",
                context={
                    "operation": operation,
                    "table_name": table_name,
                    "module_source_id": str(source_id),
                },
                original_exception=e,
            )

    async def _next_version(self, source: ModuleSource, bump: str) -> str:
        labels = [v.version for v in await self.ledger.list_versions(source.id)]
        if source.published_version:
            labels.append(source.published_version)

        latest = None
        for label in labels:
            if latest is None or compare_versions(label, latest) > 0:
                latest = label
        return increment_version(latest, bump)

    async def _mark_failed(self, deployment_id: UUID, message: str) -> None:
        deployment = await self.db.get(ModuleDeployment, deployment_id)
        if deployment is None:
            return
        deployment.status = DeploymentStatus.FAILED
        deployment.error_message = message
        deployment.completed_at = datetime.utcnow()
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Could not mark deployment {deployment_id} as failed: {e}")

    async def _apply_transition(
        self,
        source_id: UUID,
        version: ModuleVersion,
        environment: DeploymentEnvironment,
        restore_snapshot: bool = False,
    ) -> ModuleDeployment:
        """Write the audit row, flip the source status and mark the deployment successful."""
        deployment = ModuleDeployment(
            module_source_id=source_id,
            version_id=version.id,
            environment=environment,
            status=DeploymentStatus.DEPLOYING,
        )
        self.db.add(deployment)
        await self._commit("INSERT", ModuleDeployment.__tablename__, source_id)
        deployment_id = deployment.id
        label = version.version

        try:
            source = await self._get_source(source_id)
            now = datetime.utcnow()

            if restore_snapshot:
                source.render_code = version.render_code
                source.settings_schema = version.settings_schema
                source.styles = version.styles
                source.default_settings = version.default_settings

            if environment == DeploymentEnvironment.PRODUCTION:
                source.status = ModuleStatus.PUBLISHED
                source.published_version = label
                source.published_at = now
            else:
                source.status = ModuleStatus.TESTING
            source.updated_at = now

            deployment.status = DeploymentStatus.SUCCESS
            deployment.completed_at = now
            await self._commit("UPDATE", ModuleSource.__tablename__, source_id)
        except ModuleServiceError as e:
            await self._mark_failed(deployment_id, e.message)
            raise

        return deployment

    async def _best_effort(self, operation: str, source_id: UUID, warnings: List[str]) -> Optional[SyncResult]:
        """Run sync_one or unsync; failures are logged and appended to ``warnings``."""
        try:
            if operation == "unsync":
                result = await self.sync_engine.unsync(source_id)
            else:
                result = await self.sync_engine.sync_one(source_id)
        except ModuleServiceError as e:
            warnings.append(f"Catalog {operation} failed: {e.message}")
            logger.warning(
                f"Catalog {operation} failed for {source_id}; reconciliation will retry",
                extra={"error_context": e.to_dict()},
            )
            return None
        except Exception as e:
            await self.db.rollback()
            warnings.append(f"Catalog {operation} failed: {e}")
            logger.warning(f"Catalog {operation} failed for {source_id}: {e}", exc_info=True)
            return None

        if operation == "sync" and result.action == SyncAction.SKIPPED.value:
            warnings.append(f"Catalog sync skipped: {result.message}")
        return result

    async def deploy(
        self,
        source_id: Union[str, UUID],
        changelog: str,
        version: Optional[str] = None,
        environment: DeploymentEnvironment = DeploymentEnvironment.PRODUCTION,
        bump: str = "patch",
    ) -> DeploymentResult:
        """
        Deploy a module source.

        Args:
            source_id: ModuleSource id
            changelog: Required release notes
            version: Explicit semver label; bumped from the latest known version when omitted
            environment: production publishes and syncs; staging moves the source to testing
            bump: major, minor or patch (only used without an explicit version)

        Returns:
            DeploymentResult; ``warnings`` carries a failed or skipped catalog sync

        Raises:
            NotFoundError: If the source does not exist
            ValidationError: If the changelog is empty or the source is not deployable
            ConflictError: If the version label already exists for this source
            PersistenceError: If a deployment write fails
        """
        source_id = _as_uuid(source_id)
        environment = DeploymentEnvironment(environment)
        source = await self._get_source(source_id)

        if not (changelog or "").strip():
            raise ValidationError(
                "Changelog is required",
                context={"module_source_id": str(source_id)},
            )
        if bump not in BUMP_TYPES:
            raise ValidationError(
                f"bump must be one of: {', '.join(BUMP_TYPES)}",
                context={"module_source_id": str(source_id), "bump": bump},
            )

        problems = validate_for_deployment(source)
        if problems:
            raise ValidationError(
                "Module is not deployable",
                context={"module_source_id": str(source_id), "errors": problems},
            )

        label = version or await self._next_version(source, bump)
        slug = source.slug
        logger.info(f"Deploying {slug} {label} to {environment.value}")

        snapshot = await self.ledger.create_version(source, label, changelog.strip())
        deployment = await self._apply_transition(source_id, snapshot, environment)

        warnings: List[str] = []
        sync_result = None
        if environment == DeploymentEnvironment.PRODUCTION:
            sync_result = await self._best_effort("sync", source_id, warnings)

        status = ModuleStatus.PUBLISHED if environment == DeploymentEnvironment.PRODUCTION else ModuleStatus.TESTING
        logger.info(f"Deployed {slug} {label} ({status.value}) with {len(warnings)} warning(s)")
        return DeploymentResult(
            success=True,
            deployment_id=deployment.id,
            version_id=snapshot.id,
            version=label,
            environment=environment,
            status=status.value,
            sync=sync_result,
            warnings=warnings,
        )

    async def unpublish(self, source_id: Union[str, UUID]) -> UnpublishResult:
        """
        Move a source back to draft and hide its catalog entry.

        Installations keep rendering through the loader's source fallback.
        """
        source_id = _as_uuid(source_id)
        source = await self._get_source(source_id)

        source.status = ModuleStatus.DRAFT
        source.updated_at = datetime.utcnow()
        await self._commit("UPDATE", ModuleSource.__tablename__, source_id)
        logger.info(f"Unpublished {source.slug}")

        warnings: List[str] = []
        sync_result = await self._best_effort("unsync", source_id, warnings)
        return UnpublishResult(
            module_source_id=source_id,
            status=ModuleStatus.DRAFT.value,
            sync=sync_result,
            warnings=warnings,
        )

    async def list_deployments(self, source_id: Union[str, UUID]) -> List[DeploymentInfo]:
        source_id = _as_uuid(source_id)
        await self._get_source(source_id)

        result = await self.db.execute(
            select(ModuleDeployment)
            .where(ModuleDeployment.module_source_id == source_id)
            .order_by(ModuleDeployment.started_at.desc())
        )
        return [
            DeploymentInfo(
                id=d.id,
                module_source_id=d.module_source_id,
                version_id=d.version_id,
                version=d.version.version if d.version else None,
                environment=d.environment,
                status=d.status,
                error_message=d.error_message,
                started_at=d.started_at,
                completed_at=d.completed_at,
            )
            for d in result.scalars().all()
        ]

    async def rollback(self, deployment_id: Union[str, UUID]) -> RollbackResult:
        """
        Roll back a successful deployment.

        The previous successful deployment's snapshot is restored into the
        source. Without one, the source falls back to testing and its
        catalog entry is hidden.

        Raises:
            NotFoundError: If the deployment does not exist
            ValidationError: If the deployment was not successful
        """
        deployment_id = _as_uuid(deployment_id)
        deployment = await self.db.get(ModuleDeployment, deployment_id)
        if deployment is None:
            raise NotFoundError("Deployment not found", context={"deployment_id": str(deployment_id)})
        if deployment.status != DeploymentStatus.SUCCESS:
            raise ValidationError(
                "Can only roll back successful deployments",
                context={"deployment_id": str(deployment_id), "status": deployment.status.value},
            )

        source_id = deployment.module_source_id
        deployment.status = DeploymentStatus.ROLLED_BACK

        result = await self.db.execute(
            select(ModuleDeployment)
            .where(
                ModuleDeployment.module_source_id == source_id,
                ModuleDeployment.status == DeploymentStatus.SUCCESS,
                ModuleDeployment.id != deployment_id,
            )
            .order_by(ModuleDeployment.completed_at.desc())
            .limit(1)
        )
        previous = result.scalar_one_or_none()

        source = await self._get_source(source_id)
        snapshot = await self.ledger.get_version(previous.version_id) if previous is not None else None
        restored_version = None
        if snapshot is not None:
            source.render_code = snapshot.render_code
            source.settings_schema = snapshot.settings_schema
            source.styles = snapshot.styles
            source.default_settings = snapshot.default_settings
            source.published_version = snapshot.version
            restored_version = snapshot.version
        else:
            source.status = ModuleStatus.TESTING
            source.published_version = None
        source.updated_at = datetime.utcnow()
        status = source.status

        await self._commit("UPDATE", ModuleSource.__tablename__, source_id)
        logger.info(f"Rolled back deployment {deployment_id}; restored version {restored_version}")

        warnings: List[str] = []
        if status == ModuleStatus.PUBLISHED:
            await self._best_effort("sync", source_id, warnings)
        else:
            await self._best_effort("unsync", source_id, warnings)

        return RollbackResult(
            deployment_id=deployment_id,
            restored_version=restored_version,
            status=status.value,
            warnings=warnings,
        )

    async def redeploy(
        self,
        source_id: Union[str, UUID],
        version_id: Union[str, UUID],
        environment: DeploymentEnvironment = DeploymentEnvironment.PRODUCTION,
    ) -> DeploymentResult:
        """Restore an existing version's snapshot into the source and deploy it again."""
        source_id = _as_uuid(source_id)
        version_id = _as_uuid(version_id)
        environment = DeploymentEnvironment(environment)
        await self._get_source(source_id)

        snapshot = await self.ledger.get_version(version_id)
        if snapshot is None or snapshot.module_source_id != source_id:
            raise NotFoundError(
                "Version not found for this module",
                context={"module_source_id": str(source_id), "version_id": str(version_id)},
            )

        deployment = await self._apply_transition(source_id, snapshot, environment, restore_snapshot=True)

        warnings: List[str] = []
        sync_result = None
        if environment == DeploymentEnvironment.PRODUCTION:
            sync_result = await self._best_effort("sync", source_id, warnings)

        status = ModuleStatus.PUBLISHED if environment == DeploymentEnvironment.PRODUCTION else ModuleStatus.TESTING
        return DeploymentResult(
            success=True,
            deployment_id=deployment.id,
            version_id=snapshot.id,
            version=snapshot.version,
            environment=environment,
            status=status.value,
            sync=sync_result,
            warnings=warnings,
        )
