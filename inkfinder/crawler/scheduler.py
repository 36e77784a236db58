"""Two-phase crawl sessions: discover studio URLs, then crawl each one.

A :class:`CrawlScheduler` keeps a registry of sessions keyed by id, so a
caller can hold on to any number of them and stop each one individually.
Every mutation of a session's :class:`CrawlProgress` is pushed to the
session's progress sink as a snapshot.

State machine::

    running ──▶ stopping ──▶ stopped
       │
       ├──────────────────▶ completed
       └──────────────────▶ error
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Callable, Dict, Iterable, List, Optional

from inkfinder.config import settings
from inkfinder.crawler.control import CancelToken
from inkfinder.crawler.discovery import DirectoryDiscoverer
from inkfinder.crawler.fetcher import Fetcher
from inkfinder.crawler.models import (
    CrawlError,
    CrawlProgress,
    CrawlResults,
    CrawlStatus,
    StudioCrawlResult,
)
from inkfinder.crawler.runner import BatchPolicy, BatchRunner
from inkfinder.crawler.sites import DEFAULT_DIRECTORIES, dedupe
from inkfinder.crawler.studio import StudioCrawler

ProgressSink = Callable[[CrawlProgress], None]


class CrawlSession:
    """One discovery + crawl run and everything it accumulates."""

    def __init__(self, session_id: str, sink: Optional[ProgressSink] = None) -> None:
        self.id = session_id
        self.progress = CrawlProgress(session_id=session_id, status=CrawlStatus.RUNNING)
        self.results = CrawlResults()
        self.token = CancelToken()
        self.discovered_urls: List[str] = []
        self.task: Optional[asyncio.Task] = None
        self._sink = sink
        self._started = time.monotonic()
        self._finished = asyncio.Event()

    @property
    def start_time(self) -> str:
        return self.progress.start_time

    @property
    def status(self) -> CrawlStatus:
        return self.progress.status

    @property
    def is_running(self) -> bool:
        return self.progress.status is CrawlStatus.RUNNING

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self._started

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the run loop to exit; ``False`` if *timeout* elapsed first."""
        try:
            await asyncio.wait_for(self._finished.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def emit(self) -> None:
        progress = self.progress
        if progress.processed_urls > 0:
            elapsed = time.monotonic() - self._started
            remaining = max(progress.total_urls - progress.processed_urls, 0)
            progress.estimated_time_remaining = elapsed / progress.processed_urls * remaining
        if self._sink is not None:
            self._sink(progress.snapshot())

    def record_failure(self, url: str, error: str) -> None:
        entry = CrawlError(url=url, error=error)
        self.results.errors.append(entry)
        self.progress.errors.append(entry)
        self.progress.failed_crawls += 1
        self.progress.processed_urls += 1
        self.emit()


class CrawlScheduler:
    """Registry and driver for :class:`CrawlSession` objects.

    Args:
        fetcher: Shared fetcher for both phases (mostly for tests); by
            default each phase builds one from its policy.
        discovery_policy: Batch policy for the seed pages.  Defaults to
            ``settings.directory_delay`` between seeds.
        crawl_policy: Batch policy for studio pages.  Defaults to
            ``settings.request_delay`` between studios.
        grace_period: How long :meth:`stop` waits for the in-flight unit
            of work to unwind.
        on_progress: Default progress sink for new sessions.
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        discovery_policy: Optional[BatchPolicy] = None,
        crawl_policy: Optional[BatchPolicy] = None,
        grace_period: Optional[float] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> None:
        self.discovery_policy = discovery_policy or BatchPolicy.from_settings(
            settings.directory_delay
        )
        self.crawl_policy = crawl_policy or BatchPolicy.from_settings()
        self.discoverer = DirectoryDiscoverer(
            fetcher or self.discovery_policy.build_fetcher(),
            seed_delay=self.discovery_policy.per_item_delay,
        )
        self.studio_crawler = StudioCrawler(fetcher or self.crawl_policy.build_fetcher())
        self.grace_period = settings.stop_grace_period if grace_period is None else grace_period
        self.on_progress = on_progress
        self._sessions: Dict[str, CrawlSession] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    def create_session(
        self, session_id: Optional[str] = None, on_progress: Optional[ProgressSink] = None
    ) -> CrawlSession:
        """Register a new running session.

        Raises:
            ValueError: If *session_id* names a session that is still running.
        """
        sid = session_id or f"crawl-{uuid.uuid4().hex[:12]}"
        existing = self._sessions.get(sid)
        if existing is not None and not existing.finished:
            raise ValueError(f"Session already running: {sid!r}")
        session = CrawlSession(sid, sink=on_progress or self.on_progress)
        self._sessions[sid] = session
        return session

    def get(self, session_id: str) -> Optional[CrawlSession]:
        return self._sessions.get(session_id)

    def sessions(self) -> List[CrawlSession]:
        return list(self._sessions.values())

    def progress(self, session_id: str) -> Optional[CrawlProgress]:
        session = self._sessions.get(session_id)
        return session.progress.snapshot() if session else None

    def is_running(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and session.is_running

    def discard(self, session_id: str) -> None:
        """Forget a finished session.  No-op for unknown or running ids."""
        session = self._sessions.get(session_id)
        if session is not None and session.finished:
            del self._sessions[session_id]

    def sweep(self, ttl: Optional[float] = None) -> int:
        """Forget finished sessions at least *ttl* seconds old.

        Defaults to ``settings.progress_ttl``.  Running sessions are kept.
        Returns the number of sessions removed.
        """
        ttl = settings.progress_ttl if ttl is None else ttl
        expired = [
            sid for sid, session in self._sessions.items()
            if session.finished and session.age >= ttl
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            print(f"[CRAWL] swept {len(expired)} finished session(s)")
        return len(expired)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------
    async def run(
        self,
        directories: Optional[Iterable[str]] = None,
        urls: Optional[Iterable[str]] = None,
        max_studios: Optional[int] = None,
        session_id: Optional[str] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> CrawlSession:
        """Run a whole session in the caller's task and return it."""
        session = self.create_session(session_id, on_progress)
        return await self.execute(session, directories, urls, max_studios)

    def start(
        self,
        directories: Optional[Iterable[str]] = None,
        urls: Optional[Iterable[str]] = None,
        max_studios: Optional[int] = None,
        session_id: Optional[str] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> CrawlSession:
        """Launch a session as a background task and return its handle."""
        session = self.create_session(session_id, on_progress)
        session.task = asyncio.get_running_loop().create_task(
            self.execute(session, directories, urls, max_studios)
        )
        session.task.add_done_callback(_report_task_failure)
        return session

    async def execute(
        self,
        session: CrawlSession,
        directories: Optional[Iterable[str]] = None,
        urls: Optional[Iterable[str]] = None,
        max_studios: Optional[int] = None,
    ) -> CrawlSession:
        """Drive *session* through discovery (unless *urls* is given) and crawl.

        Unexpected exceptions mark the session ``error`` and are re-raised.
        """
        limit = settings.default_max_studios if max_studios is None else max_studios
        progress = session.progress
        print(f"[CRAWL] session {session.id} started")

        try:
            session.emit()
            if urls is None:
                seeds = list(DEFAULT_DIRECTORIES if directories is None else directories)
                discovered = await self._discover(session, seeds)
            else:
                seeds = []
                discovered = dedupe(urls)

            session.discovered_urls = discovered
            progress.discovered_urls = len(discovered)
            selected = discovered[:max(limit, 0)]

            if session.is_running:
                progress.total_urls = len(seeds) + len(selected)
                session.emit()
                await self._crawl(session, selected)

            self._finish(session)
        except Exception as exc:
            progress.status = CrawlStatus.ERROR
            progress.current_url = None
            session.emit()
            print(f"[CRAWL] ✗ session {session.id} failed: {exc}")
            raise
        finally:
            session._finished.set()
        return session

    async def stop(self, session_id: str) -> Optional[CrawlSession]:
        """Gracefully stop a running session.

        Flips the status to ``stopping``, fires the session's cancel token,
        waits up to ``grace_period`` for the run loop to exit, then marks
        the session ``stopped``.  Returns ``None`` for unknown ids; a
        session that is not running is returned untouched.
        """
        session = self._sessions.get(session_id)
        if session is None or not session.is_running:
            return session

        print(f"[STOP] stopping session {session_id} …")
        session.progress.status = CrawlStatus.STOPPING
        session.emit()
        session.token.cancel()

        if not await session.wait(self.grace_period):
            print(f"[STOP] session {session_id} still unwinding after {self.grace_period}s")

        session.progress.status = CrawlStatus.STOPPED
        session.progress.current_url = None
        session.emit()
        progress = session.progress
        print(f"[STOP] session {session_id} stopped at {progress.processed_urls}/{progress.total_urls}")
        return session

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    async def _discover(self, session: CrawlSession, seeds: List[str]) -> List[str]:
        progress = session.progress
        progress.total_urls = len(seeds)
        session.emit()
        found: List[str] = []

        def on_start(seed: str) -> None:
            progress.current_url = seed
            session.emit()

        def on_success(seed: str, urls: List[str]) -> None:
            found.extend(urls)
            progress.processed_urls += 1
            progress.successful_crawls += 1
            progress.discovered_urls = len(dedupe(found))
            session.emit()

        def on_failure(seed: str, exc: Exception) -> None:
            session.record_failure(seed, str(exc) or type(exc).__name__)

        runner: BatchRunner[str, List[str]] = BatchRunner(
            self.discovery_policy, session.token, lambda: session.is_running
        )
        await runner.run(seeds, self.discoverer.discover_seed, on_start, on_success, on_failure)
        unique = dedupe(found)
        print(f"[CRAWL] discovered {len(unique)} unique studio URL(s)")
        return unique

    async def _crawl(self, session: CrawlSession, urls: List[str]) -> None:
        progress = session.progress
        results = session.results

        def on_start(url: str) -> None:
            progress.current_url = url
            session.emit()

        def on_success(url: str, result: StudioCrawlResult) -> None:
            if not result.success or result.studio is None:
                session.record_failure(url, result.error or "Unknown error")
                return
            results.studios.append(result.studio)
            results.artists.extend(result.artists)
            progress.studios_found += 1
            progress.artists_found += len(result.artists)
            progress.successful_crawls += 1
            progress.processed_urls += 1
            session.emit()

        def on_failure(url: str, exc: Exception) -> None:
            session.record_failure(url, str(exc) or type(exc).__name__)

        runner: BatchRunner[str, StudioCrawlResult] = BatchRunner(
            self.crawl_policy, session.token, lambda: session.is_running
        )
        await runner.run(urls, self.studio_crawler.crawl, on_start, on_success, on_failure)

    def _finish(self, session: CrawlSession) -> None:
        progress = session.progress
        if progress.status is CrawlStatus.RUNNING:
            progress.status = CrawlStatus.COMPLETED
        elif progress.status is CrawlStatus.STOPPING:
            progress.status = CrawlStatus.STOPPED
        progress.current_url = None
        session.emit()
        print(
            f"[CRAWL] session {session.id} {progress.status.value}. "
            f"Studios: {len(session.results.studios)}, "
            f"Artists: {len(session.results.artists)}, "
            f"Errors: {len(session.results.errors)}"
        )


def _report_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        print(f"[CRAWL] background session failed: {exc!r}")


async def run_crawl(
    directories: Optional[Iterable[str]] = None,
    max_studios: Optional[int] = None,
    on_progress: Optional[ProgressSink] = None,
) -> CrawlSession:
    """Convenience wrapper: one session on a fresh scheduler."""
    return await CrawlScheduler(on_progress=on_progress).run(
        directories=directories, max_studios=max_studios
    )
