"""Persistence boundary for crawl results.

The crawler never talks to a database itself; callers that want results
kept hand them to a :class:`PersistenceGateway`.
"""

from __future__ import annotations

import sqlite3
from typing import Dict, Protocol, Tuple

from inkfinder.crawler.models import CrawlResults, ExtractedArtist, ExtractedStudio
from inkfinder.db.artists import save_artist
from inkfinder.db.studios import save_studio


class PersistenceGateway(Protocol):
    def save_studio(self, studio: ExtractedStudio) -> ExtractedStudio: ...

    def save_artist(self, artist: ExtractedArtist) -> ExtractedArtist: ...


class SqliteGateway:
    """:class:`PersistenceGateway` backed by the local SQLite database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def save_studio(self, studio: ExtractedStudio) -> ExtractedStudio:
        return save_studio(self.conn, studio)

    def save_artist(self, artist: ExtractedArtist) -> ExtractedArtist:
        return save_artist(self.conn, artist)


def persist_results(gateway: PersistenceGateway, results: CrawlResults) -> Tuple[int, int]:
    """Save every studio, then every artist, from one crawl.

    Studios are saved first so artists can reference them.  When the
    gateway hands back a studio under a different id (an existing row for
    the same website), the artists that pointed at the session id are
    re-pointed at the stored one.

    Returns:
        ``(studios_saved, artists_saved)``.
    """
    id_map: Dict[str, str] = {}
    for studio in results.studios:
        minted = studio.id
        stored = gateway.save_studio(studio)
        id_map[minted] = stored.id

    for artist in results.artists:
        if artist.studio_id is not None:
            artist.studio_id = id_map.get(artist.studio_id)
        gateway.save_artist(artist)

    print(f"[DB] ✓ saved {len(results.studios)} studio(s), {len(results.artists)} artist(s)")
    return len(results.studios), len(results.artists)
