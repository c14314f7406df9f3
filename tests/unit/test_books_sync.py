from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.services.sync.cursor import SyncCursor
from app.services.sync.errors import AlreadyRunningError, BatchWriteError
from app.services.sync.modules import INVOICES
from app.services.sync.orchestration.books_sync import (
    MODE_DELTA,
    MODE_FULL,
    BooksSyncOrchestrator,
    compute_delta_window
)

from tests.fakes import make_invoices, make_purchase_orders

TODAY = date(2024, 5, 20)


# ============================================================================
# DELTA WINDOW
# ============================================================================

def test_window_starts_one_day_before_last_sync() -> None:
    window = compute_delta_window(datetime(2024, 5, 10, tzinfo=timezone.utc), TODAY)

    assert window == {"date_start": "2024-05-09", "date_end": "2024-05-20"}


def test_window_without_prior_sync_uses_lookback() -> None:
    assert compute_delta_window(None, TODAY) == {"date_start": "2024-02-20", "date_end": "2024-05-20"}
    assert compute_delta_window(None, TODAY, lookback_days=7)["date_start"] == "2024-05-13"


def test_window_uses_local_date_of_last_sync() -> None:
    # 20:00 UTC is already the next day in Kolkata
    last_sync = datetime(2024, 5, 9, 20, 0, tzinfo=timezone.utc)

    window = compute_delta_window(last_sync, TODAY, tz=ZoneInfo("Asia/Kolkata"))

    assert window["date_start"] == "2024-05-09"


def test_naive_last_sync_treated_as_utc() -> None:
    window = compute_delta_window(datetime(2024, 5, 10, 12, 0), TODAY)

    assert window["date_start"] == "2024-05-09"


# ============================================================================
# ORCHESTRATOR
# ============================================================================

@pytest.mark.asyncio
async def test_full_backfill_mirrors_every_record(fake_zoho, orchestrator, record_store, cursor_store) -> None:
    fake_zoho.pages = {
        "invoices": [make_invoices(200), make_invoices(200, start=201), make_invoices(10, start=401)],
        "purchaseorders": [make_purchase_orders(3)]
    }

    results = await orchestrator.run_full_backfill()

    assert results["invoices"]["status"] == "success"
    assert results["invoices"]["mode"] == MODE_FULL
    assert results["invoices"]["fetched"] == 410
    assert results["invoices"]["upserted"] == 410
    assert results["invoices"]["pages"] == 3
    assert results["purchaseorders"]["upserted"] == 3
    assert len(record_store.rows("zoho_invoices")) == 410
    assert len(record_store.rows("zoho_purchaseorders")) == 3

    for call in fake_zoho.list_calls:
        assert "date_start" not in call["params"]

    for module in ("invoices", "purchaseorders"):
        cursor = cursor_store.cursors[module]
        assert cursor.last_sync_at is not None
        assert cursor.running is False


@pytest.mark.asyncio
async def test_delta_sends_date_window(fake_zoho, orchestrator, cursor_store, monkeypatch) -> None:
    monkeypatch.setattr(orchestrator, "today", lambda: TODAY)
    cursor_store.cursors["invoices"] = SyncCursor(
        module="invoices",
        last_sync_at=datetime(2024, 5, 10, 6, 0, tzinfo=timezone.utc)
    )
    fake_zoho.pages = {"invoices": [make_invoices(2)]}

    results = await orchestrator.run_delta()

    params = {c["resource"]: c["params"] for c in fake_zoho.list_calls}
    assert params["invoices"]["date_start"] == "2024-05-09"
    assert params["invoices"]["date_end"] == "2024-05-20"
    # never synced: 90 day lookback
    assert params["purchaseorders"]["date_start"] == "2024-02-20"
    assert results["invoices"]["window"] == {"date_start": "2024-05-09", "date_end": "2024-05-20"}
    assert results["invoices"]["mode"] == MODE_DELTA


@pytest.mark.asyncio
async def test_one_module_failing_does_not_stop_the_next(fake_zoho, orchestrator, cursor_store) -> None:
    fake_zoho.fail_status["invoices"] = 400
    fake_zoho.pages = {"purchaseorders": [make_purchase_orders(2)]}

    results = await orchestrator.run_delta()

    assert results["invoices"]["status"] == "error"
    assert "400" in results["invoices"]["error"]
    assert results["purchaseorders"]["status"] == "success"
    assert results["purchaseorders"]["upserted"] == 2

    assert cursor_store.cursors["invoices"].last_sync_at is None
    assert cursor_store.cursors["invoices"].last_error
    assert cursor_store.cursors["purchaseorders"].last_sync_at is not None


@pytest.mark.asyncio
async def test_running_module_is_skipped(fake_zoho, orchestrator, cursor_store) -> None:
    cursor_store.cursors["invoices"] = SyncCursor(module="invoices", running=True)

    results = await orchestrator.run_full_backfill()

    assert results["invoices"]["status"] == "skipped"
    assert results["purchaseorders"]["status"] == "success"
    assert all(c["resource"] != "invoices" for c in fake_zoho.list_calls)
    # the other run's lock is untouched
    assert cursor_store.cursors["invoices"].running is True


@pytest.mark.asyncio
async def test_sync_module_raises_when_locked(orchestrator, cursor_store) -> None:
    cursor_store.cursors["invoices"] = SyncCursor(module="invoices", running=True)

    with pytest.raises(AlreadyRunningError):
        await orchestrator.sync_module(INVOICES, MODE_DELTA)


@pytest.mark.asyncio
async def test_partial_write_failure_keeps_cursor(fake_zoho, orchestrator, record_store, cursor_store) -> None:
    previous = datetime(2024, 5, 10, tzinfo=timezone.utc)
    cursor_store.cursors["invoices"] = SyncCursor(module="invoices", last_sync_at=previous)
    fake_zoho.pages = {"invoices": [make_invoices(3)]}
    record_store.fail_keys.add("inv-3")

    with pytest.raises(BatchWriteError) as exc_info:
        await orchestrator.sync_module(INVOICES, MODE_FULL)

    assert (exc_info.value.applied, exc_info.value.failed) == (2, 1)
    # the rest of the batch was still applied
    assert sorted(record_store.rows("zoho_invoices")) == ["inv-1", "inv-2"]
    cursor = cursor_store.cursors["invoices"]
    assert cursor.last_sync_at == previous
    assert "1 of 3 invoices records failed" in cursor.last_error
    assert cursor.running is False


@pytest.mark.asyncio
async def test_all_writes_failing_reported_as_error(fake_zoho, orchestrator, record_store, cursor_store) -> None:
    previous = datetime(2024, 5, 10, tzinfo=timezone.utc)
    cursor_store.cursors["invoices"] = SyncCursor(module="invoices", last_sync_at=previous)
    fake_zoho.pages = {"invoices": [make_invoices(3)]}
    record_store.fail_keys.update({"inv-1", "inv-2", "inv-3"})

    results = await orchestrator.run_full_backfill()

    invoices = results["invoices"]
    assert invoices["status"] == "error"
    assert (invoices["fetched"], invoices["upserted"], invoices["failed"]) == (3, 0, 3)
    assert len(invoices["errors"]) == 3
    assert cursor_store.cursors["invoices"].last_sync_at == previous
    assert cursor_store.cursors["invoices"].last_error
    assert results["purchaseorders"]["status"] == "success"


@pytest.mark.asyncio
async def test_fetch_failure_after_first_page_commits_nothing(fake_zoho, orchestrator, record_store, cursor_store) -> None:
    previous = datetime(2024, 5, 10, tzinfo=timezone.utc)
    cursor_store.cursors["invoices"] = SyncCursor(module="invoices", last_sync_at=previous)
    fake_zoho.pages = {"invoices": [make_invoices(5), make_invoices(5, start=6), make_invoices(5, start=11)]}
    fake_zoho.fail_on_page["invoices"] = 2

    results = await orchestrator.run_delta()

    assert results["invoices"]["status"] == "error"
    assert record_store.rows("zoho_invoices") == {}
    cursor = cursor_store.cursors["invoices"]
    assert cursor.last_sync_at == previous
    assert "500" in cursor.last_error
    assert cursor.running is False


@pytest.mark.asyncio
async def test_nightly_uses_full_mode_when_configured(fake_zoho, zoho_client, record_store, cursor_store) -> None:
    orchestrator = BooksSyncOrchestrator(zoho_client, record_store, cursor_store, full_refresh_nightly=True)

    results = await orchestrator.run_nightly()

    assert {r["mode"] for r in results.values()} == {MODE_FULL}
    for call in fake_zoho.list_calls:
        assert "date_start" not in call["params"]


@pytest.mark.asyncio
async def test_nightly_defaults_to_delta(fake_zoho, orchestrator) -> None:
    results = await orchestrator.run_nightly()

    assert {r["mode"] for r in results.values()} == {MODE_DELTA}
    assert all("date_start" in c["params"] for c in fake_zoho.list_calls)


@pytest.mark.asyncio
async def test_single_module_configuration(fake_zoho, zoho_client, record_store, cursor_store) -> None:
    orchestrator = BooksSyncOrchestrator(zoho_client, record_store, cursor_store, modules=[INVOICES])

    results = await orchestrator.run_delta()

    assert list(results) == ["invoices"]
    assert {c["resource"] for c in fake_zoho.list_calls} == {"invoices"}
