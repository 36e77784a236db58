"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (``app.state.db``),
creates the progress store (``app.state.progress_store``), the crawl
scheduler (``app.state.scheduler``) and a background task that sweeps
expired progress records and finished sessions.  On shutdown it stops
any running sessions, cancels the sweeper and closes the connection.

Routers
-------
    /api/crawl   synchronous and background crawls, stop, progress
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inkfinder.config import settings
from inkfinder.crawler.runner import BatchPolicy
from inkfinder.crawler.scheduler import CrawlScheduler
from inkfinder.db import get_connection, init_db
from inkfinder.progress import ProgressStore, sweep_forever

from inkfinder.api.routers import crawl as crawl_router


def default_scheduler() -> CrawlScheduler:
    """Scheduler with the HTTP route's rate limits (directory / studio delays)."""
    return CrawlScheduler(
        discovery_policy=BatchPolicy.from_settings(settings.directory_delay),
        crawl_policy=BatchPolicy.from_settings(settings.api_studio_delay),
    )


def create_app(
    scheduler: Optional[CrawlScheduler] = None,
    progress_store: Optional[ProgressStore] = None,
    db_path: Optional[Path] = None,
) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Args:
        scheduler: Crawl scheduler to serve.  Built by
            :func:`default_scheduler` on startup when omitted.
        progress_store: Progress store to serve.  A fresh one when omitted.
        db_path: Override the SQLite path (``":memory:"`` in tests).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        conn = get_connection(db_path)
        init_db(conn)
        app.state.db = conn
        app.state.progress_store = progress_store or ProgressStore()
        app.state.scheduler = scheduler or default_scheduler()
        sweeper = asyncio.create_task(
            sweep_forever(app.state.progress_store, scheduler=app.state.scheduler)
        )
        try:
            yield
        finally:
            for session in app.state.scheduler.sessions():
                if session.is_running:
                    await app.state.scheduler.stop(session.id)
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            conn.close()

    app = FastAPI(
        title="Ink Finder API",
        description=(
            "Crawler backend for the Ink Finder tattoo directory. "
            "Discovers studio pages from directory sites, extracts studio and "
            "artist records, and reports progress for each crawl session."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(crawl_router.router, prefix="/api/crawl", tags=["crawl"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn inkfinder.api.app:app --reload
app = create_app()
