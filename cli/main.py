"""Ink Finder CLI: entry-point for crawler and database operations.

Usage:
    python cli/main.py --help

Commands:
    db init     create the SQLite schema
    discover    list studio URLs found on directory pages
    scrape      fetch one page and print what the extractor finds
    crawl       run a full discovery + crawl session
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from inkfinder.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import json
from typing import List, Optional

import typer

from inkfinder.config import settings
from inkfinder.crawler.control import FetchError
from inkfinder.crawler.discovery import DirectoryDiscoverer
from inkfinder.crawler.extractor import extract_artist_data, extract_studio_data
from inkfinder.crawler.fetcher import Fetcher
from inkfinder.crawler.models import CrawlProgress
from inkfinder.crawler.scheduler import CrawlScheduler
from inkfinder.crawler.sites import DEFAULT_DIRECTORIES
from inkfinder.db import SqliteGateway, get_connection, init_db, persist_results

app = typer.Typer(
    name="inkfinder",
    help="Ink Finder crawler CLI.",
    no_args_is_help=True,
)

# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Crawler commands
# ---------------------------------------------------------------------------
@app.command("discover")
def discover(
    directory: Optional[List[str]] = typer.Option(
        None, "--directory", "-d", help="Directory URL (repeatable). Defaults to the built-in list."
    ),
) -> None:
    """Fetch directory pages and print the studio URLs they link to."""
    seeds = directory or DEFAULT_DIRECTORIES
    typer.echo(f"[discover] {len(seeds)} seed(s) …")
    urls = asyncio.run(DirectoryDiscoverer().discover(seeds))
    if not urls:
        typer.echo("[discover] No studio URLs found.")
        return
    for url in urls:
        typer.echo(f"  {url}")


@app.command("scrape")
def scrape(
    url: str = typer.Option(..., help="Studio or artist page URL."),
    artist_page: bool = typer.Option(
        False, "--artist-page", help="Treat the page as a single artist's page."
    ),
) -> None:
    """Fetch one page and print the extracted records as JSON."""
    typer.echo(f"[scrape] Fetching {url!r} …")
    try:
        raw = asyncio.run(Fetcher().fetch(url))
    except FetchError as exc:
        typer.echo(f"[scrape] ✗ {exc}")
        raise typer.Exit(1)

    typer.echo(f"[scrape] HTTP {raw.status_code}, extracting …")
    if artist_page:
        payload = {"artist": extract_artist_data(raw.html, url).to_dict()}
    else:
        studio, artists = extract_studio_data(raw.html, url)
        payload = {"studio": studio.to_dict(), "artists": [a.to_dict() for a in artists]}
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("crawl")
def crawl(
    directory: Optional[List[str]] = typer.Option(
        None, "--directory", "-d", help="Directory URL (repeatable)."
    ),
    url: Optional[List[str]] = typer.Option(
        None, "--url", "-u", help="Studio URL to crawl directly, skipping discovery (repeatable)."
    ),
    max_studios: int = typer.Option(
        settings.default_max_studios, "--max-studios", "-n", help="Maximum studios to crawl."
    ),
    save: bool = typer.Option(False, "--save", help="Persist results to the database."),
) -> None:
    """Run a discovery + crawl session and print a summary."""

    seen: set[str] = set()

    def report(progress: CrawlProgress) -> None:
        if progress.current_url and progress.current_url not in seen:
            seen.add(progress.current_url)
            typer.echo(
                f"[crawl] {progress.processed_urls}/{progress.total_urls} "
                f"{progress.status.value}: {progress.current_url}"
            )

    scheduler = CrawlScheduler(on_progress=report)
    try:
        session = asyncio.run(
            scheduler.run(directories=directory or None, urls=url or None, max_studios=max_studios)
        )
    except Exception as exc:
        typer.echo(f"[crawl] ✗ {exc}")
        raise typer.Exit(1)
    results = session.results

    typer.echo("")
    typer.echo(f"[crawl] Session  : {session.id} ({session.status.value})")
    typer.echo(f"[crawl] Discovered: {len(session.discovered_urls)}")
    typer.echo(f"[crawl] Studios  : {len(results.studios)}")
    typer.echo(f"[crawl] Artists  : {len(results.artists)}")
    typer.echo(f"[crawl] Errors   : {len(results.errors)}")
    for studio in results.studios:
        typer.echo(f"  {studio.id}  {studio.name_en or studio.name_ja!r}  {studio.website}")
    for error in results.errors:
        typer.echo(f"  ✗ {error.url}: {error.error}")

    if save:
        conn = get_connection()
        init_db(conn)
        try:
            studios, artists = persist_results(SqliteGateway(conn), results)
        finally:
            conn.close()
        typer.echo(f"[crawl] Saved {studios} studio(s) and {artists} artist(s) to {settings.db_path}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    typer.echo(f"[serve] http://{host}:{port}/api/crawl")
    uvicorn.run("inkfinder.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
