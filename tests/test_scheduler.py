#!/usr/bin/env python3
"""
Test suite for the recurring task scheduler and the notification jobs.
Jobs are driven with run_once()/direct calls, never by waiting on timers.
"""
import asyncio
from datetime import timedelta

import pytest

from core.analytics import AnalyticsEngine, pipelines
from core.jobs import NotificationJobs
from core.models.listing import LISTINGS_COLLECTION
from core.scheduler import RecurringTask, Scheduler
from fakes import NOW, RecordingConnection, fixed_clock, make_listing


# ============================================================================
# SCHEDULER
# ============================================================================

@pytest.mark.asyncio
async def test_run_once_counts_runs_and_failures():
    print("\n=== Test: Recurring Task ===")
    calls = []

    async def flaky():
        calls.append(len(calls))
        if len(calls) == 2:
            raise RuntimeError("store hiccup")

    task = RecurringTask("flaky", 60, flaky)
    assert await task.run_once() is True
    assert await task.run_once() is False
    assert await task.run_once() is True
    assert task.runs == 3
    assert task.failures == 1
    print("✓ A failing run is counted and the task keeps going")


def test_invalid_registration():
    async def noop():
        return None

    with pytest.raises(ValueError):
        RecurringTask("bad", 0, noop)

    scheduler = Scheduler()
    scheduler.every("digest", 10, noop)
    with pytest.raises(ValueError):
        scheduler.every("digest", 10, noop)


@pytest.mark.asyncio
async def test_background_loop_runs_and_cancels():
    ticks = []

    async def tick():
        ticks.append(1)

    scheduler = Scheduler()
    task = scheduler.every("tick", 0.01, tick, run_immediately=True)
    scheduler.start_all()
    await asyncio.sleep(0.05)
    await scheduler.shutdown()

    assert ticks
    assert not task.is_running


@pytest.mark.asyncio
async def test_run_all_once_reports_each_task():
    async def ok():
        return None

    async def broken():
        raise KeyError("missing")

    scheduler = Scheduler()
    scheduler.every("ok", 5, ok)
    scheduler.every("broken", 5, broken)
    assert await scheduler.run_all_once() == {"ok": True, "broken": False}


# ============================================================================
# NOTIFICATION JOBS
# ============================================================================

@pytest.fixture
def jobs(store, fanout):
    return NotificationJobs(AnalyticsEngine(store, clock=fixed_clock), fanout)


@pytest.fixture
def vendor_conn(router, authenticator, vendor):
    conn = RecordingConnection("vendor")
    router.connect(conn, authenticator.issue(vendor))
    return conn


def test_register_adds_four_tasks(jobs):
    scheduler = jobs.register(Scheduler())
    assert [task.name for task in scheduler.tasks] == [
        "daily-digest",
        "market-trends",
        "stale-inventory-scan",
        "vendor-summaries",
    ]


@pytest.mark.asyncio
async def test_daily_digest_goes_to_public(jobs, store, router):
    store.seed(
        LISTINGS_COLLECTION,
        make_listing(_id="new", listed_at=NOW - timedelta(hours=3)).to_dict_for_db(),
    )
    watcher = RecordingConnection("watcher")
    router.connect(watcher)

    assert await jobs.send_daily_digest() == 1
    digest = watcher.events("daily-digest")[0]
    assert digest["new_listings"] == 1


@pytest.mark.asyncio
async def test_market_trends_skipped_when_quiet(jobs, router):
    watcher = RecordingConnection("watcher")
    router.connect(watcher)
    assert await jobs.send_market_trends() == 0
    assert watcher.sent == []


@pytest.mark.asyncio
async def test_stale_scan_alerts_each_vendor(jobs, store, vendor_conn):
    store.script_aggregate(
        LISTINGS_COLLECTION,
        pipelines.stale_by_seller(NOW - timedelta(days=30), 20),
        [{"_id": "vendor-1", "count": 2}],
    )
    assert await jobs.scan_stale_inventory() == {"vendor-1": 2}
    alert = vendor_conn.events("inventory-alert")[0]
    assert alert["alert_type"] == "stale_listings"
    assert alert["priority"] == "medium"
    assert alert["days"] == 30


@pytest.mark.asyncio
async def test_vendor_summaries_for_small_inventory(jobs, store, vendor_conn):
    store.seed(
        LISTINGS_COLLECTION,
        make_listing(_id="a").to_dict_for_db(),
        make_listing(_id="b").to_dict_for_db(),
    )
    assert await jobs.send_vendor_summaries() == 1

    summary = vendor_conn.events("daily-summary")[0]
    assert summary["summary"]["date"] == "2026-03-15"
    alert_types = [alert["alert_type"] for alert in vendor_conn.events("inventory-alert")]
    assert "low_inventory" in alert_types
    assert vendor_conn.events("batch-notification") == []


@pytest.mark.asyncio
async def test_job_failure_is_contained_by_scheduler(jobs, store):
    store.unavailable = True
    scheduler = jobs.register(Scheduler())
    assert await scheduler.get("daily-digest").run_once() is False
    assert scheduler.get("daily-digest").failures == 1
