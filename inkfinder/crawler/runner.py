"""One rate-limited, cancellable batch loop shared by every crawl path.

Both the scheduler's discovery phase and its crawl phase (and therefore
the HTTP route, which drives the scheduler) go through
:class:`BatchRunner`; they differ only in the :class:`BatchPolicy` they
pass in.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from inkfinder.config import settings
from inkfinder.crawler.control import CancelToken, CrawlAborted
from inkfinder.crawler.fetcher import Fetcher

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchPolicy:
    """Rate-limit / retry / concurrency knobs for one batch."""

    per_item_delay: float = 1.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    max_concurrency: int = 1

    @classmethod
    def from_settings(cls, per_item_delay: Optional[float] = None) -> BatchPolicy:
        return cls(
            per_item_delay=settings.request_delay if per_item_delay is None else per_item_delay,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
            max_concurrency=settings.max_concurrency,
        )

    def build_fetcher(self) -> Fetcher:
        return Fetcher(max_retries=self.max_retries, retry_base_delay=self.retry_base_delay)


class BatchRunner(Generic[T, R]):
    """Run ``work(item, token)`` over items, ``max_concurrency`` at a time.

    Before each window ``should_continue()`` is consulted; between windows
    the runner sleeps ``per_item_delay`` (woken early by cancellation).
    Every unit of work is raced against the token.  Callbacks fire in item
    order after a window completes, so observers never see interleaved
    updates.
    """

    def __init__(
        self,
        policy: BatchPolicy,
        token: CancelToken,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> None:
        if policy.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.policy = policy
        self.token = token
        self._should_continue = should_continue or (lambda: not token.cancelled)

    async def run(
        self,
        items: Iterable[T],
        work: Callable[[T, CancelToken], Awaitable[R]],
        on_start: Optional[Callable[[T], None]] = None,
        on_success: Optional[Callable[[T, R], None]] = None,
        on_failure: Optional[Callable[[T, Exception], None]] = None,
    ) -> bool:
        """Process *items*; return ``False`` if stopped before the end."""
        pending: List[T] = list(items)
        size = self.policy.max_concurrency

        for offset in range(0, len(pending), size):
            if not self._should_continue():
                return False

            window = pending[offset:offset + size]
            for item in window:
                if on_start:
                    on_start(item)

            outcomes = await asyncio.gather(
                *(self.token.guard(work(item, self.token), str(item)) for item in window),
                return_exceptions=True,
            )

            aborted = False
            for item, outcome in zip(window, outcomes):
                if isinstance(outcome, CrawlAborted):
                    aborted = True
                elif isinstance(outcome, Exception):
                    if on_failure:
                        on_failure(item, outcome)
                elif isinstance(outcome, BaseException):
                    raise outcome
                elif on_success:
                    on_success(item, outcome)
            if aborted:
                return False

            more = offset + size < len(pending)
            if more and self._should_continue():
                if await self.token.sleep(self.policy.per_item_delay):
                    return False
        return True
