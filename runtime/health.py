"""
Render health counters per (site, module).
"""

from typing import Iterable, Optional
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import PersistenceError, ValidationError
from models.base import RenderStatus
from models.render_health import ModuleRenderHealth
from schemas.api import RenderHealthEntry, RenderHealthSummary
from schemas.runtime import MountResult

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


class RenderHealthRecorder:

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def _get(self, site_id: str, module_id: str) -> Optional[ModuleRenderHealth]:
        result = await self.db.execute(
            select(ModuleRenderHealth).where(
                ModuleRenderHealth.site_id == site_id,
                ModuleRenderHealth.module_id == module_id,
            )
        )
        return result.scalar_one_or_none()

    async def _apply(self, site_id: str, module_id: str, status: RenderStatus, error: Optional[str]) -> None:
        row = await self._get(site_id, module_id)
        if row is None:
            row = ModuleRenderHealth(
                site_id=site_id,
                module_id=module_id,
                success_count=0,
                failure_count=0,
            )
            self.db.add(row)

        if status == RenderStatus.OK:
            row.success_count = (row.success_count or 0) + 1
            row.last_error = None
        else:
            row.failure_count = (row.failure_count or 0) + 1
            row.last_error = (error or status.value)[:MAX_ERROR_LENGTH]
        row.last_status = status
        row.last_reported_at = datetime.utcnow()

        await self.db.commit()

    async def report(
        self,
        site_id: str,
        module_id: str,
        status: RenderStatus,
        error: Optional[str] = None,
    ) -> None:
        """
        Record one render outcome.

        A concurrent first report for the same pair loses the insert race
        and is retried once as an update.

        Raises:
            ValidationError: If site_id or module_id is empty
            PersistenceError: If the counters cannot be written
        """
        if not site_id or not module_id:
            raise ValidationError(
                "site_id and module_id are required",
                context={"site_id": site_id, "module_id": module_id},
            )
        status = RenderStatus(status)

        for attempt in (1, 2):
            try:
                await self._apply(site_id, module_id, status, error)
                return
            except IntegrityError as e:
                await self.db.rollback()
                if attempt == 2:
                    raise PersistenceError(
                        "Failed to record render health",
                        context={"site_id": site_id, "module_id": module_id, "table_name": ModuleRenderHealth.__tablename__},
                        original_exception=e,
                    )
            except SQLAlchemyError as e:
                await self.db.rollback()
                raise PersistenceError(
                    "Failed to record render health",
                    context={"site_id": site_id, "module_id": module_id, "table_name": ModuleRenderHealth.__tablename__},
                    original_exception=e,
                )

    async def record_mounts(self, site_id: str, results: Iterable[MountResult]) -> int:
        """Best-effort: record server-side mount outcomes. Returns how many were written."""
        written = 0
        for result in results:
            try:
                await self.report(site_id, result.module_id, RenderStatus(result.status), result.error)
                written += 1
            except PersistenceError as e:
                logger.warning(f"Could not record render health for {result.module_id}: {e.message}")
        return written

    async def summary(self, site_id: str) -> RenderHealthSummary:
        result = await self.db.execute(
            select(ModuleRenderHealth)
            .where(ModuleRenderHealth.site_id == site_id)
            .order_by(ModuleRenderHealth.module_id)
        )
        entries = [RenderHealthEntry.model_validate(row) for row in result.scalars().all()]
        return RenderHealthSummary(
            site_id=site_id,
            modules=entries,
            total_successes=sum(e.success_count for e in entries),
            total_failures=sum(e.failure_count for e in entries),
        )
