# apps/overlay/app/main.py
#
# IMDB RATINGS OVERLAY SERVICE
#
# Endpoints:
#   GET /overlay?posterUrl=&rating=&position=   poster + rating badge -> PNG
#   GET /manifest.json, /catalog/..., /meta/... Stremio addon (addon.py)
#   GET /health                                 liveness probe
#   GET /                                       basic ping
#
# /overlay CONTRACT (clients build these URLs, keep it stable):
#   - posterUrl and rating are required; missing/empty -> 400 plain text
#     "Missing required parameters", checked before any network I/O.
#   - position: only "bottom-left" moves the badge; anything else, including
#     typos, is top-left.
#   - source fetch / decode / PNG encode failures -> 500 plain text
#     "Error processing image: <cause>". Never a partial PNG.
#   - success -> image/png, Cache-Control: public, max-age=86400.
#     That header is a hint for CDNs/clients; this service recomputes every
#     request and keeps nothing between requests.
#
# ENV (see config.py):
#   PORT, RENDER_EXTERNAL_URL, OMDB_API_KEY, CINEMETA_BASE_URL, CORS_ORIGINS,
#   IMAGE_FETCH_TIMEOUT, BADGE_FONT_PATH, CATALOG_RATING_BADGES

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from apps.overlay.app.addon import router as addon_router
from apps.overlay.app.compositor import (
    CACHE_CONTROL,
    PNG_MEDIA_TYPE,
    OverlayError,
    OverlayRequest,
    render_overlay,
)
from apps.overlay.app.config import Settings, get_settings, settings
from apps.overlay.app.fetch import build_http_client, fetch_poster, get_http_client

VERSION = "1.0.0"
SERVICE = "ratings-overlay"

# -----------------------------------------------------------------------------
# logging
# -----------------------------------------------------------------------------

log = logging.getLogger("ratings_overlay.api")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)

# -----------------------------------------------------------------------------
# FastAPI app + shared HTTP client
# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.http = build_http_client(timeout=settings.image_fetch_timeout)
    log.info("IMDB Ratings addon running at %s", settings.public_base_url)
    log.info("Add this URL in Stremio: %s/manifest.json", settings.public_base_url)
    try:
        yield
    finally:
        await app.state.http.aclose()


app = FastAPI(
    title="IMDB Ratings Overlay",
    version=VERSION,
    description=(
        "Stremio addon that shows IMDb ratings.\n"
        "/overlay draws a rating badge onto a poster and returns a PNG."
    ),
    lifespan=lifespan,
)

_cors = settings.cors_origins.strip()
if _cors == "*":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in _cors.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

app.include_router(addon_router)

# -----------------------------------------------------------------------------
# Error handlers
# -----------------------------------------------------------------------------

class ErrorBody(BaseModel):
    ok: bool = False
    status: int
    error: str
    message: str


def _json_error(status_code: int, err: str, msg: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorBody(status=status_code, error=err, message=msg).model_dump(),
    )


@app.exception_handler(OverlayError)
async def overlay_exc_handler(request: Request, exc: OverlayError):
    if exc.status_code >= 500:
        log.error("Error processing image (%s): %s", request.url.path, exc, exc_info=exc.__cause__)
    return PlainTextResponse(exc.public_message(), status_code=exc.status_code)


@app.exception_handler(HTTPException)
async def http_exc_handler(_: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else json.dumps(exc.detail)
    return _json_error(exc.status_code, "http_error", detail)


@app.exception_handler(Exception)
async def unhandled_exc_handler(_: Request, exc: Exception):
    log.exception("unhandled error: %s", exc)
    return _json_error(500, exc.__class__.__name__, "Internal server error")

# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@app.get("/health")
def health(settings: Settings = Depends(get_settings)):
    """Liveness probe. No upstream checks; the service has no backing store."""
    return {"status": "ok", "service": SERVICE, "env": settings.env, "version": VERSION}


@app.get("/")
def root(settings: Settings = Depends(get_settings)):
    """Basic ping."""
    return {
        "ok": True,
        "service": SERVICE,
        "version": VERSION,
        "manifest": f"{settings.public_base_url}/manifest.json",
    }


@app.get(
    "/overlay",
    summary="Poster with rating badge (PNG)",
    response_class=Response,
    responses={200: {"content": {PNG_MEDIA_TYPE: {}}}},
)
async def overlay(
    poster_url: Optional[str] = Query(None, alias="posterUrl", description="Absolute poster URL (URL-encoded)"),
    rating: Optional[str] = Query(None, description="Rating text, rendered verbatim after a star"),
    position: Optional[str] = Query("top-left", description="top-left | bottom-left"),
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    req = OverlayRequest.from_query(poster_url, rating, position)

    data = await fetch_poster(client, req.poster_url)
    png = await run_in_threadpool(
        render_overlay, data, req.rating, req.position, settings.badge_font_path
    )

    return Response(
        content=png,
        media_type=PNG_MEDIA_TYPE,
        headers={"Cache-Control": CACHE_CONTROL},
    )


def run() -> None:
    import uvicorn

    uvicorn.run("apps.overlay.app.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
