"""CRUD operations for the ``studios`` table.

Indexed columns are stored as real columns; the full record lives in the
``data`` JSON blob so new fields never need a migration.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Optional

from inkfinder.crawler.models import ExtractedStudio


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_studio(row: sqlite3.Row) -> ExtractedStudio:
    data = json.loads(row["data"] or "{}")
    data.update(
        id=row["id"],
        name_ja=row["name_ja"],
        name_en=row["name_en"],
        location=row["location"],
        website=row["website"],
        created_at=row["created_at"],
    )
    return ExtractedStudio.from_dict(data)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def save_studio(conn: sqlite3.Connection, studio: ExtractedStudio) -> ExtractedStudio:
    """Insert *studio*, or refresh the row that already has its website.

    A studio is identified by its ``website``: re-crawling the same site
    updates the existing row and keeps its original id and ``created_at``.

    Returns:
        The stored studio (with the surviving id).
    """
    existing = find_studio_by_website(conn, studio.website)
    if existing is not None:
        studio.id = existing.id
        studio.created_at = existing.created_at

    with conn:
        conn.execute(
            """
            INSERT INTO studios (id, name_ja, name_en, location, website, data, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name_ja = excluded.name_ja,
                name_en = excluded.name_en,
                location = excluded.location,
                data = excluded.data
            """,
            (
                studio.id,
                studio.name_ja,
                studio.name_en,
                studio.location,
                studio.website,
                json.dumps(studio.to_dict(), ensure_ascii=False),
                studio.created_at,
            ),
        )
    return get_studio(conn, studio.id)  # type: ignore[return-value]


def get_studio(conn: sqlite3.Connection, studio_id: str) -> Optional[ExtractedStudio]:
    """Fetch a single studio.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM studios WHERE id = ?", (studio_id,)).fetchone()
    return _row_to_studio(row) if row else None


def find_studio_by_website(conn: sqlite3.Connection, website: str) -> Optional[ExtractedStudio]:
    row = conn.execute("SELECT * FROM studios WHERE website = ?", (website,)).fetchone()
    return _row_to_studio(row) if row else None


def list_studios(
    conn: sqlite3.Connection,
    location: Optional[str] = None,
) -> list[ExtractedStudio]:
    """Return all studios, newest first, optionally filtered by ``location``."""
    if location:
        rows = conn.execute(
            "SELECT * FROM studios WHERE location = ? ORDER BY created_at DESC",
            (location,),
        ).fetchall()
    else:
        rows = conn.execute("SELECT * FROM studios ORDER BY created_at DESC").fetchall()
    return [_row_to_studio(r) for r in rows]


def delete_studio(conn: sqlite3.Connection, studio_id: str) -> None:
    """Delete a studio; its artists keep their rows with ``studio_id`` cleared."""
    with conn:
        conn.execute("DELETE FROM studios WHERE id = ?", (studio_id,))
