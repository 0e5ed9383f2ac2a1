"""
Script to reconcile published modules into the marketplace catalog
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from core.config import settings
from core.exceptions import ModuleServiceError
from core.logging import setup_logging
from publishing.sync import SyncEngine

logger = logging.getLogger(__name__)


async def run_sync(source_id=None, dry_run=False) -> int:
    """Sync one source or every published source. Returns the process exit code."""

    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with AsyncSessionLocal() as session:
            sync_engine = SyncEngine(session)

            if source_id:
                result = await (sync_engine.preview(source_id) if dry_run else sync_engine.sync_one(source_id))
                logger.info(
                    f"{result.slug}: {result.action} "
                    f"(changed={result.changed}, fields={', '.join(result.changed_fields) or '-'})"
                )
                return 0

            if dry_run:
                logger.error("--dry-run requires --source-id")
                return 2

            summary = await sync_engine.sync_all()
            logger.info(
                f"Sync completed: created={summary.created}, updated={summary.updated}, "
                f"skipped={summary.skipped}, errors={summary.errors}"
            )
            for detail in summary.error_details:
                logger.error(f"  {detail}")
            return 1 if summary.errors else 0

    except ModuleServiceError as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reconcile published modules into the catalog")
    parser.add_argument("--source-id", help="Sync a single module source")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run_sync(args.source_id, args.dry_run)))
