# ============================================================================
# File: publishing/sync.py
# Description: Reconciles published module sources into the public catalog
# ============================================================================
"""
Sync Engine - projects published ModuleSource rows into MarketplaceModule.

This module provides:
- Create-or-update of one projection per source (module_source_id is unique)
- Field ownership: source-owned fields are copied, catalog-owned
  statistics (install_count, ratings) are never written
- Batch reconciliation with per-item failure isolation
- Soft delete (is_active=False) on unsync
"""

from typing import Dict, Any, List, Optional, Union
from uuid import UUID
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import (
    ModuleServiceError,
    NotFoundError,
    ConflictError,
    PersistenceError,
)
from models.base import ModuleStatus, SourceType
from models.module_source import ModuleSource
from models.marketplace_module import MarketplaceModule
from publishing.pricing import resolve_pricing
from schemas.pipeline import SyncAction, SyncResult, SyncSummary

logger = logging.getLogger(__name__)


def _as_uuid(value: Union[str, UUID]) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def projection_values(source: ModuleSource) -> Dict[str, Any]:
    """Source-owned projection fields derived from one ModuleSource."""
    price = resolve_pricing(source)
    return {
        "slug": source.slug,
        "name": source.name,
        "description": source.description,
        "category": source.category,
        "icon": source.icon,
        "version": source.published_version or "1.0.0",
        "pricing_type": price.pricing_type,
        "billing_cycle": price.billing_cycle,
        "wholesale_price_monthly": price.wholesale_price_monthly,
        "retail_price_monthly": price.retail_price_monthly,
        "render_code": source.render_code,
        "settings_schema": source.settings_schema,
        "styles": source.styles,
        "default_settings": source.default_settings,
        "is_active": True,
        "source_type": SourceType.STUDIO,
    }


def diff_projection(existing: MarketplaceModule, values: Dict[str, Any]) -> List[str]:
    return [field for field, value in values.items() if getattr(existing, field) != value]


class SyncEngine:
    """
    Catalog projection writer.

    Responsibilities:
    - Only published sources are projected
    - At most one MarketplaceModule per source
    - Re-running with no authoring change writes nothing
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def _get_source(self, source_id: UUID) -> ModuleSource:
        source = await self.db.get(ModuleSource, source_id)
        if source is None:
            raise NotFoundError(
                "Module source not found",
                context={"module_source_id": str(source_id)},
            )
        return source

    async def _get_projection(self, source_id: UUID) -> Optional[MarketplaceModule]:
        result = await self.db.execute(
            select(MarketplaceModule).where(MarketplaceModule.module_source_id == source_id)
        )
        return result.scalar_one_or_none()

    async def _slug_taken(self, slug: str, source_id: UUID) -> bool:
        result = await self.db.execute(
            select(MarketplaceModule.id).where(
                MarketplaceModule.slug == slug,
                (MarketplaceModule.module_source_id != source_id)
                | MarketplaceModule.module_source_id.is_(None),
            )
        )
        return result.first() is not None

    async def _commit(self, operation: str, source_id: UUID, slug: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                "Catalog projection violates a uniqueness constraint",
                context={
                    "module_source_id": str(source_id),
                    "slug": slug,
                    "constraint": "slug",
                },
                original_exception=e,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to write catalog projection",
                context={
                    "operation": operation,
                    "table_name": MarketplaceModule.__tablename__,
                    "module_source_id": str(source_id),
                },
                original_exception=e,
            )

    async def sync_one(self, source_id: Union[str, UUID]) -> SyncResult:
        """
        Create or update the catalog projection for one source.

        A source that is not published is reported as ``skipped``, not
        raised.

        Raises:
            NotFoundError: If the source does not exist
            ConflictError: If the slug belongs to another catalog entry
            PersistenceError: If the write fails
        """
        source_id = _as_uuid(source_id)
        source = await self._get_source(source_id)

        if source.status != ModuleStatus.PUBLISHED:
            logger.info(f"Sync skipped for {source.slug}: status is {source.status.value}")
            return SyncResult(
                action=SyncAction.SKIPPED,
                module_source_id=source_id,
                slug=source.slug,
                message=f"Module must be published to sync (status: {source.status.value})",
            )

        values = projection_values(source)
        slug = values["slug"]
        existing = await self._get_projection(source_id)

        # --------------------------------------------------
        # CREATE
        # --------------------------------------------------
        if existing is None:
            if await self._slug_taken(slug, source_id):
                raise ConflictError(
                    "Slug is already used by another catalog entry",
                    context={"module_source_id": str(source_id), "slug": slug, "constraint": "slug"},
                )

            projection = MarketplaceModule(module_source_id=source_id, **values)
            self.db.add(projection)
            await self._commit("INSERT", source_id, slug)

            logger.info(f"Created catalog entry {projection.id} for {slug}")
            return SyncResult(
                action=SyncAction.CREATED,
                module_source_id=source_id,
                marketplace_module_id=projection.id,
                slug=slug,
                changed=True,
                changed_fields=list(values.keys()),
                message="Catalog entry created",
            )

        # --------------------------------------------------
        # UPDATE (source-owned fields only)
        # --------------------------------------------------
        projection_id = existing.id
        changed_fields = diff_projection(existing, values)
        if not changed_fields:
            return SyncResult(
                action=SyncAction.UPDATED,
                module_source_id=source_id,
                marketplace_module_id=projection_id,
                slug=slug,
                changed=False,
                message="Catalog entry already up to date",
            )

        if "slug" in changed_fields and await self._slug_taken(slug, source_id):
            raise ConflictError(
                "Slug is already used by another catalog entry",
                context={"module_source_id": str(source_id), "slug": slug, "constraint": "slug"},
            )

        for field in changed_fields:
            setattr(existing, field, values[field])
        existing.updated_at = datetime.utcnow()
        await self._commit("UPDATE", source_id, slug)

        logger.info(f"Updated catalog entry {projection_id} for {slug}: {', '.join(changed_fields)}")
        return SyncResult(
            action=SyncAction.UPDATED,
            module_source_id=source_id,
            marketplace_module_id=projection_id,
            slug=slug,
            changed=True,
            changed_fields=changed_fields,
            message="Catalog entry updated",
        )

    async def preview(self, source_id: Union[str, UUID]) -> SyncResult:
        """Report what sync_one would do without writing anything."""
        source_id = _as_uuid(source_id)
        source = await self._get_source(source_id)

        if source.status != ModuleStatus.PUBLISHED:
            return SyncResult(
                action=SyncAction.SKIPPED,
                module_source_id=source_id,
                slug=source.slug,
                message=f"Module must be published to sync (status: {source.status.value})",
            )

        values = projection_values(source)
        existing = await self._get_projection(source_id)
        if existing is None:
            return SyncResult(
                action=SyncAction.CREATED,
                module_source_id=source_id,
                slug=source.slug,
                changed=True,
                changed_fields=list(values.keys()),
                message="Would create catalog entry",
            )

        changed_fields = diff_projection(existing, values)
        return SyncResult(
            action=SyncAction.UPDATED,
            module_source_id=source_id,
            marketplace_module_id=existing.id,
            slug=source.slug,
            changed=bool(changed_fields),
            changed_fields=changed_fields,
            message="Would update catalog entry" if changed_fields else "Catalog entry already up to date",
        )

    async def _published_source_ids(self) -> List[UUID]:
        source_ids: List[UUID] = []
        offset = 0
        batch_size = max(settings.SYNC_BATCH_SIZE, 1)

        while True:
            result = await self.db.execute(
                select(ModuleSource.id)
                .where(ModuleSource.status == ModuleStatus.PUBLISHED)
                .order_by(ModuleSource.created_at, ModuleSource.id)
                .offset(offset)
                .limit(batch_size)
            )
            page = list(result.scalars().all())
            source_ids.extend(page)
            if len(page) < batch_size:
                break
            offset += batch_size

        return source_ids

    async def sync_all(self) -> SyncSummary:
        """
        Reconcile every published source.

        One item's failure never stops the batch: it is rolled back,
        counted in ``errors`` and recorded in ``error_details``.
        """
        summary = SyncSummary()
        source_ids = await self._published_source_ids()
        logger.info(f"Reconciling {len(source_ids)} published module sources")

        for source_id in source_ids:
            try:
                result = await self.sync_one(source_id)
            except ModuleServiceError as e:
                summary.errors += 1
                summary.error_details.append(e.to_dict())
                logger.error(f"Sync failed for {source_id}: {e}", extra={"error_context": e.to_dict()})
                continue
            except Exception as e:
                await self.db.rollback()
                summary.errors += 1
                summary.error_details.append({
                    "error_type": type(e).__name__,
                    "message": str(e),
                    "context": {"module_source_id": str(source_id)},
                })
                logger.error(f"Unexpected sync failure for {source_id}: {e}", exc_info=True)
                continue

            summary.results.append(result)
            if result.action == SyncAction.CREATED.value:
                summary.created += 1
            elif result.action == SyncAction.UPDATED.value:
                summary.updated += 1
            else:
                summary.skipped += 1

        logger.info(
            f"Reconciliation finished: created={summary.created}, updated={summary.updated}, "
            f"skipped={summary.skipped}, errors={summary.errors}"
        )
        return summary

    async def unsync(self, source_id: Union[str, UUID]) -> SyncResult:
        """
        Hide the source's projection from the catalog (is_active=False).

        Installations are never touched; they keep resolving through the
        render loader's source fallback.
        """
        source_id = _as_uuid(source_id)
        projection = await self._get_projection(source_id)

        if projection is None:
            return SyncResult(
                action=SyncAction.SKIPPED,
                module_source_id=source_id,
                message="No catalog entry to deactivate",
            )

        projection_id = projection.id
        slug = projection.slug
        if not projection.is_active:
            return SyncResult(
                action=SyncAction.UPDATED,
                module_source_id=source_id,
                marketplace_module_id=projection_id,
                slug=slug,
                changed=False,
                message="Catalog entry already inactive",
            )

        projection.is_active = False
        projection.updated_at = datetime.utcnow()
        await self._commit("UPDATE", source_id, slug)

        logger.info(f"Deactivated catalog entry {projection_id} for {slug}")
        return SyncResult(
            action=SyncAction.UPDATED,
            module_source_id=source_id,
            marketplace_module_id=projection_id,
            slug=slug,
            changed=True,
            changed_fields=["is_active"],
            message="Catalog entry deactivated",
        )
