from __future__ import annotations

import os
import time
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware
from pydantic import BaseModel

from core import CAPTURE_METHOD, scrape_playlist
import logging

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(logging.INFO)

SERVICE_NAME = "spotify-playlist-scraper"


# =========================
# Pydantic models
# =========================

class ScrapePlaylistBody(BaseModel):
    model_config = {"extra": "ignore"}

    # Untyped so shape errors reach the scrape input guard and come back as 400
    playlistUrl: Any = None
    cookies: Any = None


class TrackModel(BaseModel):
    trackId: str
    isrc: Optional[str] = None
    name: str
    artists: List[str]
    album: Optional[str] = None
    albumArt: Optional[str] = None
    addedAt: str
    popularity: Optional[int] = None
    durationMs: Optional[int] = None
    spotifyUrl: str


class PlaylistMetaModel(BaseModel):
    name: Optional[str] = None
    curator: Optional[str] = None
    followers: Optional[int] = None
    imageUrl: Optional[str] = None
    totalTracks: Optional[int] = None


class ScrapeResponse(BaseModel):
    success: bool
    tracks: List[TrackModel]
    totalCaptured: int
    method: str = CAPTURE_METHOD
    duration: float
    memoryUsed: Optional[float] = None
    playlist: Optional[PlaylistMetaModel] = None


# =========================
# FastAPI app & middleware
# =========================

app = FastAPI(
    title="Spotify Playlist Scraper",
    version="1.0.0",
)

# Add GZip middleware for response compression (large track lists)
app.add_middleware(GZipMiddleware, minimum_size=1000)

MAX_BODY_BYTES = 25 * 1024 * 1024


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method in ("POST", "PUT", "PATCH"):
            content_length = request.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > MAX_BODY_BYTES:
                logger.warning(f"[RequestSizeLimit] Rejected oversized request: {content_length} bytes from {request.client}")
                return JSONResponse(
                    status_code=413,
                    content={"success": False, "error": "Request body too large (max 25MB)"},
                )
        return await call_next(request)


app.add_middleware(RequestSizeLimitMiddleware)

default_origins = [
    "http://localhost:3000",
    "http://localhost:5000",
]

env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",") if o.strip()]
else:
    origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def _invalid_body(request: Request, exc: RequestValidationError):
    logger.warning(f"[scrape-playlist] invalid request body: {exc.errors()}")
    return JSONResponse(status_code=400, content={"success": False, "error": "Request body must be a JSON object"})


@app.on_event("startup")
def _log_startup():
    logger.info(f"{SERVICE_NAME}: startup event triggered")


# =========================
# Health check
# =========================

@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    return {
        "ok": True,
        "status": "ok",
        "service": SERVICE_NAME,
        "build_commit": os.getenv("RENDER_GIT_COMMIT", "local")[:7],
    }


@app.get("/", tags=["system"])
def root() -> Dict[str, Any]:
    return {"ok": True, "status": "ok"}


# =========================
# Core helpers
# =========================

def _sanitize_url(raw: Any) -> Any:
    """
    Basic server-side URL sanitization: trim whitespace, strip surrounding
    angle brackets and surrounding single/double quotes.
    """
    if not raw or not isinstance(raw, str):
        return raw
    s = raw.strip()
    if s.startswith('<') and s.endswith('>'):
        s = s[1:-1].strip()
    s = s.strip('\'"')
    return s


_STATUS_BY_OUTCOME = {"input": 400, "auth": 403, "internal": 500}


def result_to_response(result) -> JSONResponse:
    """Map a ScrapeResult onto the HTTP contract."""
    if result.success:
        body = ScrapeResponse(
            success=True,
            tracks=result.tracks,
            totalCaptured=result.total_captured,
            duration=result.duration_seconds,
            memoryUsed=result.memory_mb,
            playlist=result.playlist or None,
        ).model_dump()
        return JSONResponse(status_code=200, content=body)

    status = _STATUS_BY_OUTCOME.get(result.outcome, 500)
    content: Dict[str, Any] = {"success": False, "error": result.error or "Scraping failed"}
    if status != 400:
        content.update({"tracks": [], "totalCaptured": 0})
    if status == 500:
        content.update({"duration": result.duration_seconds, "memoryUsed": result.memory_mb})
    return JSONResponse(status_code=status, content=content)


# =========================
# Endpoints
# =========================

@app.post("/scrape-playlist", response_model=ScrapeResponse)
async def scrape_playlist_endpoint(body: ScrapePlaylistBody):
    """
    Capture every track of a playlist page.
    {
      "playlistUrl": "https://open.spotify.com/playlist/...",
      "cookies": [{"name": "sp_dc", "value": "...", "domain": ".spotify.com", "path": "/"}]
    }
    """
    t0_total = time.time()
    clean_url = _sanitize_url(body.playlistUrl)
    logger.info(
        f"[scrape-playlist] raw_url={body.playlistUrl} clean_url={clean_url} "
        f"cookies={len(body.cookies) if isinstance(body.cookies, list) else type(body.cookies).__name__}"
    )

    result = await scrape_playlist(clean_url, body.cookies)

    total_ms = (time.time() - t0_total) * 1000
    timings = (result.meta or {}).get("timings", {})
    logger.info(
        f"[PERF] outcome={result.outcome} tracks={result.total_captured} "
        f"offsets={len((result.meta or {}).get('offsets', []))} "
        f"goto_ms={timings.get('goto_ms', 0)} scroll_ms={timings.get('scroll_ms', 0)} "
        f"duration_s={result.duration_seconds} memory_mb={result.memory_mb} total_api_ms={total_ms:.1f}"
    )
    if not result.success:
        logger.error(f"[scrape-playlist] failed for clean_url={clean_url}: {result.error}")
    return result_to_response(result)


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
