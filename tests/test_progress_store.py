"""Tests for the in-memory progress store."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from inkfinder.crawler.models import CrawlError, CrawlProgress, CrawlStatus
from inkfinder.progress import ProgressStore, sweep_forever


@pytest.fixture()
def store() -> ProgressStore:
    return ProgressStore(ttl=3600)


class TestProgressStore:
    def test_create_and_get(self, store: ProgressStore) -> None:
        created = store.create("s1", total_urls=4)
        assert created.status is CrawlStatus.RUNNING
        assert created.total_urls == 4
        fetched = store.get("s1")
        assert fetched == created
        assert "s1" in store
        assert len(store) == 1

    def test_get_unknown(self, store: ProgressStore) -> None:
        assert store.get("missing") is None

    def test_update_merges(self, store: ProgressStore) -> None:
        store.create("s1")
        updated = store.update("s1", processed_urls=2, status="stopping")
        assert updated is not None
        assert updated.processed_urls == 2
        assert updated.status is CrawlStatus.STOPPING
        assert store.get("s1").processed_urls == 2

    def test_update_unknown_session(self, store: ProgressStore) -> None:
        assert store.update("missing", processed_urls=1) is None

    def test_update_rejects_unknown_fields(self, store: ProgressStore) -> None:
        store.create("s1")
        with pytest.raises(ValueError, match="bogus"):
            store.update("s1", bogus=1)

    def test_put_upserts(self, store: ProgressStore) -> None:
        progress = CrawlProgress(session_id="s2", total_urls=3, status=CrawlStatus.COMPLETED)
        store.put(progress)
        assert store.get("s2").status is CrawlStatus.COMPLETED
        progress.total_urls = 99
        store.put(progress)
        assert store.get("s2").total_urls == 99

    def test_reads_are_snapshots(self, store: ProgressStore) -> None:
        store.create("s1")
        record = store.get("s1")
        record.processed_urls = 50
        record.errors.append(CrawlError(url="x", error="y"))
        fresh = store.get("s1")
        assert fresh.processed_urls == 0
        assert fresh.errors == []

    def test_delete(self, store: ProgressStore) -> None:
        store.create("s1")
        store.delete("s1")
        store.delete("s1")
        assert store.get("s1") is None


class TestSweep:
    def test_removes_expired_records(self, store: ProgressStore) -> None:
        store.create("old")
        store.create("new")
        old = store.get("old")
        old.start_time = (datetime.now(timezone.utc) - timedelta(hours=2)).isoformat()
        store.put(old)

        assert store.sweep() == 1
        assert store.get("old") is None
        assert store.get("new") is not None

    def test_everything_expires_eventually(self, store: ProgressStore) -> None:
        store.create("a")
        store.create("b")
        later = datetime.now(timezone.utc) + timedelta(hours=2)
        assert store.sweep(now=later) == 2
        assert len(store) == 0

    def test_unparseable_start_time_is_dropped(self, store: ProgressStore) -> None:
        store.put(CrawlProgress(session_id="bad", start_time="yesterday"))
        assert store.sweep() == 1

    def test_sweep_forever_runs_on_interval(self) -> None:
        store = ProgressStore(ttl=0)
        store.put(CrawlProgress(session_id="gone", start_time="2000-01-01T00:00:00+00:00"))

        async def scenario() -> None:
            task = asyncio.ensure_future(sweep_forever(store, interval=0.01))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert len(store) == 0

    def test_sweep_forever_also_sweeps_scheduler(self) -> None:
        swept = []

        class Registry:
            def sweep(self, ttl: float) -> int:
                swept.append(ttl)
                return 0

        async def scenario() -> None:
            task = asyncio.ensure_future(
                sweep_forever(ProgressStore(ttl=60), interval=0.01, scheduler=Registry())
            )
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert swept and set(swept) == {60}
