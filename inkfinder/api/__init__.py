"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from inkfinder.api import app

    uvicorn inkfinder.api:app --reload
"""

from inkfinder.api.app import app

__all__ = ["app"]
