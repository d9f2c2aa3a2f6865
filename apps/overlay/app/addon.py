# apps/overlay/app/addon.py
#
# Stremio addon surface:
#   GET /manifest.json
#   GET /catalog/{type}/{id}.json   Cinemeta catalog, names starred, posters badged
#   GET /meta/{type}/{id}.json      Cinemeta meta enriched with OMDb data
#
# Handlers never fail the request: upstream trouble is logged and answered
# with an empty result ({"metas": []} / {"meta": null}), which Stremio
# renders as "nothing here" instead of an error page.

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends

from apps.overlay.app.cinemeta import CinemetaClient, CinemetaError, imdb_id_of
from apps.overlay.app.compositor import Position
from apps.overlay.app.config import Settings, get_settings
from apps.overlay.app.fetch import get_http_client
from apps.overlay.app.omdb import OmdbClient, OmdbRecord

log = logging.getLogger("ratings_overlay.addon")

router = APIRouter(tags=["addon"])

ADDON_ID = "org.imdbratings"
ADDON_VERSION = "1.0.0"
ADDON_NAME = "IMDB Ratings Overlay"
ADDON_DESCRIPTION = "Displays IMDB ratings directly in Stremio"

NAME_PREFIX = "★ "


# ── Dependencies ─────────────────────────────────────────────────────────────
def get_omdb(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> OmdbClient:
    return OmdbClient(client, api_key=settings.omdb_api_key, base_url=settings.omdb_base_url)


def get_cinemeta(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> CinemetaClient:
    return CinemetaClient(client, base_url=settings.cinemeta_base_url)


# ── Helpers ──────────────────────────────────────────────────────────────────
def build_manifest(settings: Settings) -> Dict[str, Any]:
    base = settings.public_base_url
    return {
        "id": ADDON_ID,
        "version": ADDON_VERSION,
        "name": ADDON_NAME,
        "description": ADDON_DESCRIPTION,
        "resources": ["catalog", "meta"],
        "types": ["movie", "series"],
        "catalogs": [],
        "background": f"{base}/background.jpg",
        "logo": f"{base}/logo.png",
        "contactEmail": settings.contact_email,
    }


def overlay_url(base_url: str, poster_url: str, rating: str, position: Position = Position.TOP_LEFT) -> str:
    q = {"posterUrl": poster_url, "rating": rating}
    if position is not Position.TOP_LEFT:
        q["position"] = position.value
    return f"{base_url}/overlay?{urlencode(q)}"


async def _badge_poster(meta: Dict[str, Any], omdb: OmdbClient, base_url: str) -> None:
    poster = meta.get("poster")
    imdb_id = imdb_id_of(meta)
    if not poster or not imdb_id:
        return
    rating = await omdb.rating_for(imdb_id)
    if rating:
        meta["poster"] = overlay_url(base_url, poster, rating)


def enrich_meta(meta: Dict[str, Any], record: OmdbRecord) -> Dict[str, Any]:
    """Fold an OMDb record into a Cinemeta meta dict (in place)."""
    if not record.rating:
        return meta

    meta["name"] = f"{meta.get('name', '')} (IMDb: {record.rating})"

    description = meta.get("description")
    if description and record.plot:
        description = f"{description}\n\nIMDb: {record.rating}/10 ({record.imdb_votes} votes)"
        if record.director and record.director not in description:
            description += f"\nDirector: {record.director}"
        if record.actors and record.actors not in description:
            description += f"\nStars: {record.actors}"
        meta["description"] = description

    return meta


# ── Endpoints ────────────────────────────────────────────────────────────────
@router.get("/manifest.json")
def manifest(settings: Settings = Depends(get_settings)):
    return build_manifest(settings)


@router.get("/catalog/{type_}/{catalog_id}.json")
async def catalog(
    type_: str,
    catalog_id: str,
    cinemeta: CinemetaClient = Depends(get_cinemeta),
    omdb: OmdbClient = Depends(get_omdb),
    settings: Settings = Depends(get_settings),
):
    try:
        metas: List[Dict[str, Any]] = await cinemeta.catalog(type_, catalog_id)
    except CinemetaError as e:
        log.error("Error in catalog handler (%s/%s): %s", type_, catalog_id, e)
        return {"metas": []}

    for meta in metas:
        meta["name"] = f"{NAME_PREFIX}{meta.get('name', '')}"

    if settings.catalog_rating_badges:
        await asyncio.gather(*(_badge_poster(m, omdb, settings.public_base_url) for m in metas))

    return {"metas": metas}


@router.get("/meta/{type_}/{meta_id}.json")
async def meta(
    type_: str,
    meta_id: str,
    cinemeta: CinemetaClient = Depends(get_cinemeta),
    omdb: OmdbClient = Depends(get_omdb),
):
    try:
        item: Optional[Dict[str, Any]] = await cinemeta.meta(type_, meta_id)
    except CinemetaError as e:
        log.error("Error in meta handler (%s/%s): %s", type_, meta_id, e)
        return {"meta": None}

    if item is None:
        return {"meta": None}

    imdb_id = imdb_id_of(item)
    if imdb_id:
        record = await omdb.lookup(imdb_id)
        if record is not None:
            enrich_meta(item, record)

    return {"meta": item}
