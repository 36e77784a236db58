"""Cancellation and failure signalling shared by every crawler component."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")


class FetchError(Exception):
    """A fetch that failed for good (non-2xx or transport error after retries)."""


class CrawlAborted(Exception):
    """Raised when a :class:`CancelToken` fires during a unit of work."""


class CancelToken:
    """Cooperative cancellation handle shared by one crawl session.

    ``cancel()`` wakes every :meth:`sleep` and makes every :meth:`guard`
    abandon the awaitable it is racing.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self, what: str = "") -> None:
        if self.cancelled:
            raise CrawlAborted(f"Crawl was aborted{': ' + what if what else ''}")

    async def sleep(self, delay: float) -> bool:
        """Sleep for *delay* seconds or until cancelled.

        Returns ``True`` if the token fired while sleeping.
        """
        if delay <= 0 or self.cancelled:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def guard(self, awaitable: Awaitable[T], what: str = "") -> T:
        """Await *awaitable*, abandoning it as soon as the token fires.

        Raises:
            CrawlAborted: If the token fired first.  The abandoned task is
                cancelled and awaited before this returns.
        """
        if self.cancelled and asyncio.iscoroutine(awaitable):
            awaitable.close()
        self.raise_if_cancelled(what)
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        # Let the abandoned request unwind before reporting the abort.
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise CrawlAborted(f"Crawl was aborted{': ' + what if what else ''}")
