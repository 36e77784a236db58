"""Thread-safe progress records for crawl sessions.

The HTTP layer reads from here while scheduler sessions write their
snapshots into it.  Records older than ``settings.progress_ttl`` seconds
(measured from their ``start_time``) are removed by :meth:`ProgressStore.sweep`,
which :func:`sweep_forever` calls on a fixed interval.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import fields
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from inkfinder.config import settings
from inkfinder.crawler.models import CrawlProgress, CrawlStatus

if TYPE_CHECKING:
    from inkfinder.crawler.scheduler import CrawlScheduler

_UPDATABLE = {f.name for f in fields(CrawlProgress)} - {"session_id"}


def _parse_time(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ProgressStore:
    """Session id → :class:`CrawlProgress`, guarded by a lock.

    Every read returns a snapshot, so callers can never mutate a stored
    record behind the store's back.
    """

    def __init__(self, ttl: Optional[float] = None) -> None:
        self.ttl = settings.progress_ttl if ttl is None else ttl
        self._records: Dict[str, CrawlProgress] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._records

    def create(self, session_id: str, total_urls: int = 0) -> CrawlProgress:
        """Insert a fresh ``running`` record, replacing any previous one."""
        record = CrawlProgress(
            session_id=session_id,
            total_urls=total_urls,
            status=CrawlStatus.RUNNING,
        )
        with self._lock:
            self._records[session_id] = record
            return record.snapshot()

    def get(self, session_id: str) -> Optional[CrawlProgress]:
        with self._lock:
            record = self._records.get(session_id)
            return record.snapshot() if record else None

    def put(self, progress: CrawlProgress) -> None:
        """Store *progress* as-is (insert or replace)."""
        with self._lock:
            self._records[progress.session_id] = progress.snapshot()

    def update(self, session_id: str, **changes: Any) -> Optional[CrawlProgress]:
        """Merge *changes* into an existing record.

        Returns the updated record, or ``None`` if *session_id* is unknown.

        Raises:
            ValueError: If a key is not a progress field.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if "status" in changes:
            changes["status"] = CrawlStatus(changes["status"])

        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            return record.snapshot()

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop records whose ``start_time`` is older than the TTL.

        Records with an unparseable ``start_time`` are dropped as well.
        Returns the number of records removed.
        """
        now = now or datetime.now(timezone.utc)
        with self._lock:
            expired = []
            for session_id, record in self._records.items():
                started = _parse_time(record.start_time)
                if started is None or (now - started).total_seconds() > self.ttl:
                    expired.append(session_id)
            for session_id in expired:
                del self._records[session_id]
        if expired:
            print(f"[PROGRESS] swept {len(expired)} expired record(s)")
        return len(expired)


async def sweep_forever(
    store: ProgressStore,
    interval: Optional[float] = None,
    scheduler: Optional[CrawlScheduler] = None,
) -> None:
    """Sweep *store* (and *scheduler*, if given) every *interval* seconds until cancelled."""
    interval = settings.progress_sweep_interval if interval is None else interval
    while True:
        await asyncio.sleep(interval)
        store.sweep()
        if scheduler is not None:
            scheduler.sweep(store.ttl)
