from __future__ import annotations

import pytest

from docpanel.models import Collection
from docpanel.services.view_tracker import ViewOutcome, is_bot, reading_time_minutes

ENTRIES = Collection.ENTRIES.value


@pytest.mark.asyncio
async def test_views_are_deduplicated_within_window(harness) -> None:
    entry = harness.seed_entry(status="published")
    tracker = harness.tracker

    assert await tracker.record_view(entry["id"], "198.51.100.7", "Mozilla/5.0") is ViewOutcome.COUNTED
    assert await tracker.record_view(entry["id"], "198.51.100.7", "Mozilla/5.0") is ViewOutcome.DUPLICATE
    assert harness.store.raw(ENTRIES, entry["id"])["views"] == 1

    harness.clock.advance(hours=24, seconds=1)
    assert await tracker.record_view(entry["id"], "198.51.100.7", "Mozilla/5.0") is ViewOutcome.COUNTED
    assert harness.store.raw(ENTRIES, entry["id"])["views"] == 2


@pytest.mark.asyncio
async def test_distinct_visitors_count_separately(harness) -> None:
    entry = harness.seed_entry(status="published")
    await harness.tracker.record_view(entry["id"], "198.51.100.7")
    await harness.tracker.record_view(entry["id"], "198.51.100.8")
    assert harness.store.raw(ENTRIES, entry["id"])["views"] == 2
    assert all(row["ip_address"] != "198.51.100.7" for row in harness.views.views)


@pytest.mark.asyncio
async def test_admins_bots_and_missing_ip_are_skipped(harness) -> None:
    entry = harness.seed_entry(status="published")
    tracker = harness.tracker
    assert await tracker.record_view(entry["id"], "1.2.3.4", from_admin=True) is ViewOutcome.SKIPPED_ADMIN
    assert await tracker.record_view(entry["id"], "1.2.3.4", "Googlebot/2.1") is ViewOutcome.SKIPPED_BOT
    assert await tracker.record_view(entry["id"], None) is ViewOutcome.SKIPPED_NO_IP
    assert harness.store.raw(ENTRIES, entry["id"])["views"] == 0
    assert harness.views.views == []


@pytest.mark.asyncio
async def test_view_log_failure_reports_failed_without_raising(harness) -> None:
    entry = harness.seed_entry(status="published")
    harness.views.fail_writes = True
    assert await harness.tracker.record_view(entry["id"], "1.2.3.4") is ViewOutcome.FAILED
    assert harness.store.raw(ENTRIES, entry["id"])["views"] == 0


@pytest.mark.asyncio
async def test_view_of_deleted_entry_fails_quietly(harness) -> None:
    assert await harness.tracker.record_view("missing00000001", "1.2.3.4") is ViewOutcome.FAILED


@pytest.mark.asyncio
async def test_record_duration_bounds_and_counters(harness) -> None:
    entry = harness.seed_entry(status="published")
    assert await harness.tracker.record_duration(entry["id"], 0, "1.2.3.4") is False
    assert await harness.tracker.record_duration(entry["id"], 3601, "1.2.3.4") is False
    assert await harness.tracker.record_duration(entry["id"], 90, "1.2.3.4") is True
    assert await harness.tracker.record_duration(entry["id"], 30, "1.2.3.5") is True

    record = harness.store.raw(ENTRIES, entry["id"])
    assert record["total_view_duration"] == 120
    assert record["view_duration_count"] == 2
    assert len(harness.views.durations) == 2


@pytest.mark.asyncio
async def test_record_feedback_increments_counter(harness) -> None:
    entry = harness.seed_entry(status="published")
    await harness.tracker.record_feedback(entry["id"], True)
    await harness.tracker.record_feedback(entry["id"], False)
    await harness.tracker.record_feedback(entry["id"], True)
    record = harness.store.raw(ENTRIES, entry["id"])
    assert (record["helpful_yes"], record["helpful_no"]) == (2, 1)


def test_is_bot_is_case_insensitive() -> None:
    assert is_bot("Mozilla/5.0 (compatible; BingBot/2.0)", ["bingbot"])
    assert not is_bot("Mozilla/5.0", ["bingbot"])
    assert not is_bot(None, ["bingbot"])


def test_reading_time_minutes() -> None:
    assert reading_time_minutes("") == 0
    assert reading_time_minutes("one two three", wpm=225) == 1
    assert reading_time_minutes(" ".join(["word"] * 451), wpm=225) == 3
