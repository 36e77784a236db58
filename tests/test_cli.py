"""Tests for the Typer CLI.

HTTP is mocked with ``respx``; the workspace (and therefore the SQLite
file) is redirected to ``tmp_path``.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx
from conftest import DIRECTORY_HTML, DIRECTORY_URL, STUDIO_HTML, STUDIO_URLS
from typer.testing import CliRunner

from cli.main import app
from inkfinder.db import get_connection, init_db
from inkfinder.db.studios import list_studios

runner = CliRunner()


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Fresh workspace and no real delays for each test."""
    monkeypatch.setattr("inkfinder.config.settings.workspace_dir", tmp_path)
    monkeypatch.setattr("inkfinder.config.settings.request_delay", 0.0)
    monkeypatch.setattr("inkfinder.config.settings.directory_delay", 0.0)
    monkeypatch.setattr("inkfinder.config.settings.retry_base_delay", 0.0)
    monkeypatch.setattr("inkfinder.config.settings.max_retries", 0)
    return tmp_path


def test_db_init(workspace) -> None:
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0
    assert "Database ready" in result.stdout
    assert (workspace / "inkfinder.db").exists()


@respx.mock
def test_discover() -> None:
    respx.get(DIRECTORY_URL).mock(return_value=httpx.Response(200, text=DIRECTORY_HTML))
    result = runner.invoke(app, ["discover", "--directory", DIRECTORY_URL])
    assert result.exit_code == 0
    for url in STUDIO_URLS:
        assert url in result.stdout


@respx.mock
def test_scrape_prints_json() -> None:
    url = STUDIO_URLS[0]
    respx.get(url).mock(return_value=httpx.Response(200, text=STUDIO_HTML))
    result = runner.invoke(app, ["scrape", "--url", url])
    assert result.exit_code == 0
    payload = json.loads(result.stdout[result.stdout.index("{"):])
    assert payload["studio"]["name_en"] == "Red Dragon Tattoo"
    assert len(payload["artists"]) == 2


@respx.mock
def test_scrape_artist_page() -> None:
    url = "https://hana.example/"
    respx.get(url).mock(return_value=httpx.Response(200, text="<h1>Hana Kimura</h1>"))
    result = runner.invoke(app, ["scrape", "--url", url, "--artist-page"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout[result.stdout.index("{"):])
    assert payload["artist"]["name_en"] == "Hana Kimura"


@respx.mock
def test_scrape_failure_exits_nonzero() -> None:
    url = "https://gone.example/"
    respx.get(url).mock(return_value=httpx.Response(500))
    result = runner.invoke(app, ["scrape", "--url", url])
    assert result.exit_code == 1
    assert "HTTP 500" in result.stdout


@respx.mock
def test_crawl_and_save() -> None:
    respx.get(DIRECTORY_URL).mock(return_value=httpx.Response(200, text=DIRECTORY_HTML))
    for url in STUDIO_URLS:
        respx.get(url).mock(return_value=httpx.Response(200, text=STUDIO_HTML))

    result = runner.invoke(
        app, ["crawl", "--directory", DIRECTORY_URL, "--max-studios", "2", "--save"]
    )
    assert result.exit_code == 0
    assert "Studios  : 2" in result.stdout
    assert "(completed)" in result.stdout
    assert "Saved 2 studio(s) and 4 artist(s)" in result.stdout

    conn = get_connection()
    init_db(conn)
    try:
        assert len(list_studios(conn)) == 2
    finally:
        conn.close()


@respx.mock
def test_crawl_direct_urls() -> None:
    url = STUDIO_URLS[0]
    respx.get(url).mock(return_value=httpx.Response(200, text=STUDIO_HTML))
    result = runner.invoke(app, ["crawl", "--url", url])
    assert result.exit_code == 0
    assert "Discovered: 1" in result.stdout
    assert "Errors   : 0" in result.stdout


def test_crawl_failure_exits_nonzero(monkeypatch) -> None:
    async def boom(self, session, seeds):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr("inkfinder.crawler.scheduler.CrawlScheduler._discover", boom)
    result = runner.invoke(app, ["crawl", "--directory", DIRECTORY_URL])
    assert result.exit_code == 1
    assert "[crawl] ✗ disk on fire" in result.stdout
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_serve_hands_app_to_uvicorn(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr("uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs)))
    result = runner.invoke(app, ["serve", "--port", "9001"])
    assert result.exit_code == 0
    assert calls == [("inkfinder.api.app:app", {"host": "127.0.0.1", "port": 9001, "reload": False})]
