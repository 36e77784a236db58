"""Crawl endpoints.

Routes
------
POST /api/crawl             Run discovery + crawl inside the request
POST /api/crawl/start       Launch a background session              → 202
POST /api/crawl/stop        Stop a session by id
GET  /api/crawl/sessions    Progress of every registered session
GET  /api/crawl/progress    ?sessionId=ID → stored progress record
POST /api/crawl/progress    Upsert a full progress record

Progress records use camelCase keys on the wire.
"""

from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from inkfinder.crawler.models import CrawlError, CrawlProgress, CrawlStatus
from inkfinder.crawler.scheduler import CrawlScheduler, CrawlSession
from inkfinder.db import SqliteGateway, persist_results
from inkfinder.progress import ProgressStore

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CrawlRequest(CamelModel):
    directories: Optional[List[str]] = None
    urls: Optional[List[str]] = None
    max_studios: Optional[int] = Field(default=None, ge=0)
    session_id: Optional[str] = None
    persist: bool = False


class StopRequest(CamelModel):
    session_id: str


class CrawlErrorModel(CamelModel):
    url: str
    error: str
    timestamp: str


class ProgressModel(CamelModel):
    session_id: str
    total_urls: int = 0
    processed_urls: int = 0
    successful_crawls: int = 0
    failed_crawls: int = 0
    current_url: Optional[str] = None
    status: CrawlStatus = CrawlStatus.IDLE
    start_time: str
    estimated_time_remaining: Optional[float] = None
    studios_found: int = 0
    artists_found: int = 0
    discovered_urls: int = 0
    errors: List[CrawlErrorModel] = Field(default_factory=list)

    @classmethod
    def from_progress(cls, progress: CrawlProgress) -> ProgressModel:
        return cls.model_validate(progress.to_dict())

    def to_progress(self) -> CrawlProgress:
        values = self.model_dump(exclude={"errors"})
        return CrawlProgress(
            **values,
            errors=[CrawlError(**e.model_dump()) for e in self.errors],
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _progress_payload(progress: CrawlProgress) -> dict[str, Any]:
    return ProgressModel.from_progress(progress).model_dump(by_alias=True, mode="json")


def _session_payload(session: CrawlSession) -> dict[str, Any]:
    results = session.results
    return {
        "success": True,
        "sessionId": session.id,
        "status": session.status.value,
        "studios": [s.to_dict() for s in results.studios],
        "artists": [a.to_dict() for a in results.artists],
        "errors": [{"url": e.url, "error": e.error, "timestamp": e.timestamp} for e in results.errors],
        "discoveredUrls": list(session.discovered_urls),
    }


def _scheduler(request: Request) -> CrawlScheduler:
    return request.app.state.scheduler


def _store(request: Request) -> ProgressStore:
    return request.app.state.progress_store


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("")
async def crawl_endpoint(body: CrawlRequest, request: Request) -> Any:
    """Discover studio URLs from *directories* and crawl up to *maxStudios*.

    Progress is published to the progress store under the session id as
    the crawl runs.  With ``persist`` set, results are written to the
    database before the response is built, so the ids in the response are
    the stored ones.  The session leaves the scheduler once the request is
    done; its progress record stays in the store until the TTL sweep.
    """
    scheduler = _scheduler(request)
    store = _store(request)
    try:
        session = scheduler.create_session(body.session_id, on_progress=store.put)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    try:
        await scheduler.execute(
            session,
            directories=body.directories,
            urls=body.urls,
            max_studios=body.max_studios,
        )
        saved = None
        if body.persist:
            studios, artists = persist_results(SqliteGateway(request.app.state.db), session.results)
            saved = {"studios": studios, "artists": artists}
        payload = _session_payload(session)
        if saved is not None:
            payload["saved"] = saved
    except Exception as exc:
        print(f"[CRAWL] ✗ /api/crawl failed: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    finally:
        scheduler.discard(session.id)
    return payload


@router.post("/start", status_code=202)
async def start_crawl_endpoint(body: CrawlRequest, request: Request) -> dict[str, Any]:
    """Launch a crawl session in the background and return its id."""
    if body.persist:
        raise HTTPException(status_code=400, detail="persist is only supported by POST /api/crawl")
    store = _store(request)
    try:
        session = _scheduler(request).start(
            directories=body.directories,
            urls=body.urls,
            max_studios=body.max_studios,
            session_id=body.session_id,
            on_progress=store.put,
        )
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"success": True, "sessionId": session.id}


@router.post("/stop")
async def stop_crawl_endpoint(body: StopRequest, request: Request) -> dict[str, Any]:
    """Gracefully stop a session.  404 if the session id is unknown."""
    session = await _scheduler(request).stop(body.session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {body.session_id}")
    return {"success": True, "progress": _progress_payload(session.progress)}


@router.get("/sessions")
def list_sessions_endpoint(request: Request) -> List[dict[str, Any]]:
    return [_progress_payload(s.progress) for s in _scheduler(request).sessions()]


@router.get("/progress")
def get_progress_endpoint(
    request: Request,
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
) -> dict[str, Any]:
    """Return the stored progress for a session (404 if absent or expired)."""
    if not session_id:
        raise HTTPException(status_code=400, detail="sessionId is required")
    progress = _store(request).get(session_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Progress not found")
    return _progress_payload(progress)


@router.post("/progress")
def put_progress_endpoint(body: ProgressModel, request: Request) -> dict[str, Any]:
    """Upsert a full progress record."""
    _store(request).put(body.to_progress())
    return {"success": True}
