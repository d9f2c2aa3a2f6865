# apps/overlay/app/cinemeta.py
#
# Catalog / metadata source: Stremio's Cinemeta addon.
#   {base}/catalog/{type}/{id}.json -> {"metas": [ {id, name, poster, ...}, ... ]}
#   {base}/meta/{type}/{id}.json    -> {"meta": {id, imdb_id?, name, description?, ...}}
#
# Only transport + shape checks live here. Rewriting names/posters is the
# addon router's job.

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

log = logging.getLogger("ratings_overlay.cinemeta")


class CinemetaError(Exception):
    pass


class CinemetaClient:
    def __init__(self, client: httpx.AsyncClient, base_url: str = "https://v3-cinemeta.strem.io"):
        self._client = client
        self._base_url = base_url.rstrip("/")

    def _url(self, resource: str, type_: str, id_: str) -> str:
        return f"{self._base_url}/{resource}/{quote(type_, safe='')}/{quote(id_, safe='')}.json"

    async def _get_json(self, url: str) -> Dict[str, Any]:
        try:
            r = await self._client.get(url, headers={"Accept": "application/json"})
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CinemetaError(f"{type(e).__name__}: {e}") from e
        if not isinstance(data, dict):
            raise CinemetaError(f"unexpected payload from {url}")
        return data

    async def catalog(self, type_: str, id_: str) -> List[Dict[str, Any]]:
        data = await self._get_json(self._url("catalog", type_, id_))
        metas = data.get("metas")
        if not isinstance(metas, list):
            raise CinemetaError("catalog response has no 'metas' list")
        return [m for m in metas if isinstance(m, dict)]

    async def meta(self, type_: str, id_: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(self._url("meta", type_, id_))
        meta = data.get("meta")
        return meta if isinstance(meta, dict) else None


def imdb_id_of(meta: Dict[str, Any]) -> Optional[str]:
    """imdb_id/imdbId if present, else the meta id when it looks like tt..."""
    for key in ("imdb_id", "imdbId"):
        val = meta.get(key)
        if isinstance(val, str) and val:
            return val
    mid = meta.get("id")
    if isinstance(mid, str) and mid.startswith("tt"):
        return mid
    return None
