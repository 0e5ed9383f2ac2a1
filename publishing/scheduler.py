import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from core.config import settings
from publishing.sync import SyncEngine
from schemas.pipeline import SyncSummary

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Periodic catalog reconciliation: the backstop for missed post-deploy syncs."""

    def __init__(self, interval_minutes: Optional[int] = None):
        self.interval_minutes = interval_minutes or settings.SYNC_INTERVAL_MINUTES
        self.scheduler = AsyncIOScheduler()
        self.engine = create_async_engine(settings.DATABASE_URL, echo=False)
        self.SessionLocal = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def run_sync_job(self) -> Optional[SyncSummary]:
        """Job to reconcile every published module into the catalog"""
        logger.info("Scheduler: Starting catalog reconciliation")
        async with self.SessionLocal() as session:
            try:
                summary = await SyncEngine(session).sync_all()
                logger.info(
                    f"Scheduler: Reconciliation done - created={summary.created}, "
                    f"updated={summary.updated}, skipped={summary.skipped}, errors={summary.errors}"
                )
                return summary
            except Exception as e:
                logger.error(f"Scheduler: Reconciliation job failed - {e}")
                return None

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="catalog_sync_job",
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Sync Scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Sync Scheduler stopped")
