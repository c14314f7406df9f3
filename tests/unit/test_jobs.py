from unittest.mock import AsyncMock

import pytest

from app.services.jobs import tasks
from app.services.jobs.scheduler import NIGHTLY_JOB_ID, run_scheduled_sync, start_sync_scheduler
from app.services.jobs.tasks import count_failed_modules


def test_count_failed_modules() -> None:
    results = {
        "invoices": {"status": "error"},
        "purchaseorders": {"status": "success"},
        "bills": {"status": "skipped"}
    }

    assert count_failed_modules(results) == 1
    assert count_failed_modules({}) == 0


@pytest.mark.asyncio
async def test_scheduled_sync_runs_nightly() -> None:
    orchestrator = AsyncMock()
    orchestrator.run_nightly.return_value = {"invoices": {"status": "success"}}

    await run_scheduled_sync(orchestrator)

    orchestrator.run_nightly.assert_awaited_once()


@pytest.mark.asyncio
async def test_scheduled_sync_swallows_failures() -> None:
    orchestrator = AsyncMock()
    orchestrator.run_nightly.side_effect = RuntimeError("database unavailable")

    await run_scheduled_sync(orchestrator)


@pytest.mark.asyncio
async def test_run_books_sync_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError, match="Unknown sync mode"):
        await tasks.run_books_sync("weekly")


@pytest.mark.asyncio
async def test_run_books_sync_dispatches_and_closes_client(monkeypatch) -> None:
    from app.core import dependencies

    http_client = AsyncMock()
    orchestrator = AsyncMock()
    orchestrator.run_full_backfill.return_value = {"invoices": {"status": "success"}}
    monkeypatch.setattr(dependencies, "create_http_client", lambda: http_client)
    monkeypatch.setattr(dependencies, "create_sync_orchestrator", lambda http, supabase: orchestrator)
    monkeypatch.setattr(tasks, "create_client", lambda url, key: object())

    results = await tasks.run_books_sync("full")

    assert results == {"invoices": {"status": "success"}}
    orchestrator.run_full_backfill.assert_awaited_once()
    orchestrator.run_delta.assert_not_called()
    http_client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_scheduler_registers_nightly_cron_job() -> None:
    scheduler = start_sync_scheduler(AsyncMock, hour=22, minute=30, timezone_name="Asia/Kolkata")
    try:
        job = scheduler.get_job(NIGHTLY_JOB_ID)
        assert job is not None
        assert "hour='22'" in str(job.trigger)
        assert "minute='30'" in str(job.trigger)
        assert str(job.trigger.timezone) == "Asia/Kolkata"
        assert job.max_instances == 1
    finally:
        scheduler.shutdown(wait=False)


def test_broker_middleware_has_no_time_limit_or_retries() -> None:
    from dramatiq.middleware import Retries, TimeLimit

    from app.services.jobs.broker import build_broker

    broker = build_broker("redis://localhost:6379/0")

    assert not any(isinstance(m, TimeLimit) for m in broker.middleware)
    retries = next(m for m in broker.middleware if isinstance(m, Retries))
    assert retries.max_retries == 0


def test_sync_orchestrator_dependency_requires_initialization(monkeypatch) -> None:
    from app.core import dependencies

    monkeypatch.setattr(dependencies, "_sync_orchestrator", None)

    with pytest.raises(RuntimeError, match="not initialized"):
        dependencies.get_sync_orchestrator()
