"""In-memory crawl progress keyed by session id."""

from inkfinder.progress.store import ProgressStore, sweep_forever

__all__ = ["ProgressStore", "sweep_forever"]
