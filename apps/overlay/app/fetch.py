# apps/overlay/app/fetch.py
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx
from fastapi import Request

from apps.overlay.app.compositor import ImageLoadError

log = logging.getLogger("ratings_overlay.fetch")

USER_AGENT = "ratings-overlay/1.0"
ACCEPT_IMAGE = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"


def build_http_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """One pooled client for the whole process (posters + collaborator APIs)."""
    kwargs = {}
    if timeout is not None:
        kwargs["timeout"] = httpx.Timeout(timeout)
    return httpx.AsyncClient(
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=50),
        **kwargs,
    )


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def _check_source_url(raw: str) -> str:
    url = raw.strip()
    p = urlparse(url)
    if p.scheme not in {"http", "https"} or not p.netloc:
        raise ImageLoadError(f"not an absolute http(s) URL: {url!r}")
    return url


async def fetch_poster(client: httpx.AsyncClient, poster_url: str) -> bytes:
    """
    GET the poster bytes. One attempt, no retry; any transport error or
    non-2xx status becomes ImageLoadError.
    """
    url = _check_source_url(poster_url)
    try:
        r = await client.get(url, headers={"Accept": ACCEPT_IMAGE})
        r.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ImageLoadError(f"upstream returned {e.response.status_code} for {url}") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ImageLoadError(f"{type(e).__name__}: {e}") from e

    log.debug("fetched %s (%d bytes, %s)", url, len(r.content), r.headers.get("Content-Type", "-"))
    return r.content
