"""Centralised settings for the Ink Finder crawler backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

_CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("INKFINDER_WORKSPACE", Path.home() / ".inkfinder_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "inkfinder.db"

    @property
    def schema_path(self) -> Path:
        """Path to the bundled DDL script."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Fetcher
    # ------------------------------------------------------------------
    user_agent: str = field(
        default_factory=lambda: os.environ.get("CRAWL_USER_AGENT", _CHROME_UA)
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_REQUEST_TIMEOUT", "10.0"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_RETRIES", "3"))
    )
    retry_base_delay: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_RETRY_BASE_DELAY", "1.0"))
    )

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------
    request_delay: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_REQUEST_DELAY", "1.0"))
    )
    directory_delay: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_DIRECTORY_DELAY", "2.0"))
    )
    api_studio_delay: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_API_STUDIO_DELAY", "3.0"))
    )
    max_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_CONCURRENCY", "1"))
    )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    stop_grace_period: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_STOP_GRACE_PERIOD", "1.0"))
    )
    default_max_studios: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_DEFAULT_MAX_STUDIOS", "5"))
    )

    # ------------------------------------------------------------------
    # Progress store
    # ------------------------------------------------------------------
    progress_ttl: float = field(
        default_factory=lambda: float(os.environ.get("PROGRESS_TTL_SECONDS", "3600"))
    )
    progress_sweep_interval: float = field(
        default_factory=lambda: float(os.environ.get("PROGRESS_SWEEP_INTERVAL", "3600"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton; import this everywhere:
#   from inkfinder.config import settings
settings = Settings()
