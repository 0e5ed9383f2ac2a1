import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from publishing.scheduler import SyncScheduler
from schemas.pipeline import SyncSummary


def _session_maker(mock_session):
    maker = MagicMock()
    maker.return_value.__aenter__.return_value = mock_session
    return maker


@pytest.mark.asyncio
async def test_scheduler_initialization():
    scheduler = SyncScheduler(interval_minutes=5)
    assert scheduler.interval_minutes == 5
    assert scheduler.scheduler is not None
    assert scheduler.engine is not None


@pytest.mark.asyncio
async def test_scheduler_job_execution():
    with patch("publishing.scheduler.SyncEngine") as mock_engine_cls:
        mock_engine = MagicMock()
        mock_engine.sync_all = AsyncMock(return_value=SyncSummary(created=2, updated=1))
        mock_engine_cls.return_value = mock_engine

        mock_session = AsyncMock()
        scheduler = SyncScheduler()
        scheduler.SessionLocal = _session_maker(mock_session)

        summary = await scheduler.run_sync_job()

        mock_engine_cls.assert_called_once_with(mock_session)
        assert mock_engine.sync_all.await_count == 1
        assert summary.created == 2
        assert summary.total == 3


@pytest.mark.asyncio
async def test_scheduler_job_never_raises():
    with patch("publishing.scheduler.SyncEngine") as mock_engine_cls:
        mock_engine = MagicMock()
        mock_engine.sync_all = AsyncMock(side_effect=RuntimeError("database unavailable"))
        mock_engine_cls.return_value = mock_engine

        scheduler = SyncScheduler()
        scheduler.SessionLocal = _session_maker(AsyncMock())

        assert await scheduler.run_sync_job() is None


@pytest.mark.asyncio
async def test_scheduler_start_registers_job():
    scheduler = SyncScheduler(interval_minutes=15)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job("catalog_sync_job")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 15 * 60
    finally:
        scheduler.stop()
