"""CRUD operations for the ``artists`` table."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional

from inkfinder.crawler.models import ExtractedArtist, utc_now_iso


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_artist(row: sqlite3.Row) -> ExtractedArtist:
    data = json.loads(row["data"] or "{}")
    data.update(
        id=row["id"],
        studio_id=row["studio_id"],
        name_ja=row["name_ja"],
        name_en=row["name_en"],
        location=row["location"],
        website_url=row["website_url"],
        data_source=row["data_source"],
        created_at=row["created_at"],
        last_updated=row["last_updated"],
    )
    return ExtractedArtist.from_dict(data)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def save_artist(conn: sqlite3.Connection, artist: ExtractedArtist) -> ExtractedArtist:
    """Insert or replace *artist* by id and return the stored record.

    Raises:
        sqlite3.IntegrityError: If ``studio_id`` names a studio that has
            not been saved.
    """
    with conn:
        conn.execute(
            """
            INSERT INTO artists (
                id, studio_id, name_ja, name_en, location, website_url,
                data_source, data, created_at, last_updated
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                studio_id = excluded.studio_id,
                name_ja = excluded.name_ja,
                name_en = excluded.name_en,
                location = excluded.location,
                website_url = excluded.website_url,
                data_source = excluded.data_source,
                data = excluded.data,
                last_updated = excluded.last_updated
            """,
            (
                artist.id,
                artist.studio_id,
                artist.name_ja,
                artist.name_en,
                artist.location,
                artist.website_url,
                artist.data_source,
                json.dumps(artist.to_dict(), ensure_ascii=False),
                artist.created_at,
                artist.last_updated,
            ),
        )
    return get_artist(conn, artist.id)  # type: ignore[return-value]


def get_artist(conn: sqlite3.Connection, artist_id: str) -> Optional[ExtractedArtist]:
    """Fetch a single artist.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM artists WHERE id = ?", (artist_id,)).fetchone()
    return _row_to_artist(row) if row else None


def list_artists(
    conn: sqlite3.Connection,
    studio_id: Optional[str] = None,
    location: Optional[str] = None,
) -> list[ExtractedArtist]:
    """Return artists, newest first, filtered by studio and/or location."""
    clauses: list[str] = []
    params: list[Any] = []
    if studio_id:
        clauses.append("studio_id = ?")
        params.append(studio_id)
    if location:
        clauses.append("location = ?")
        params.append(location)
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM artists{where} ORDER BY created_at DESC", params  # noqa: S608
    ).fetchall()
    return [_row_to_artist(r) for r in rows]


def update_artist(conn: sqlite3.Connection, artist_id: str, **kwargs: Any) -> ExtractedArtist:
    """Update fields on an artist; ``last_updated`` is always refreshed.

    Raises:
        ValueError: If ``artist_id`` does not exist or a field is unknown.
    """
    artist = get_artist(conn, artist_id)
    if artist is None:
        raise ValueError(f"Artist not found: {artist_id!r}")

    data = artist.to_dict()
    for key, value in kwargs.items():
        if key not in data or key in ("id", "created_at"):
            raise ValueError(f"Cannot update field {key!r}")
        data[key] = value
    data["last_updated"] = utc_now_iso()
    return save_artist(conn, ExtractedArtist.from_dict(data))


def delete_artist(conn: sqlite3.Connection, artist_id: str) -> None:
    """Delete an artist.  No-op if it does not exist."""
    with conn:
        conn.execute("DELETE FROM artists WHERE id = ?", (artist_id,))
