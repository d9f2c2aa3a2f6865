# apps/overlay/app/omdb.py
#
# Ratings lookup against OMDb (http://www.omdbapi.com/?i=<imdb id>&apikey=...).
#
# Contract for callers:
#   - lookup() returns an OmdbRecord, or None when OMDb has nothing for the id
#     (Response == "False") or could not be reached. It never raises.
#   - OMDb uses the literal "N/A" for missing fields; those become None.
#   - record.rating is None -> "no badge", pass the poster through untouched.

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

log = logging.getLogger("ratings_overlay.omdb")

NOT_AVAILABLE = "N/A"


class OmdbRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    imdb_rating: Optional[str] = Field(default=None, alias="imdbRating")
    imdb_votes: Optional[str] = Field(default=None, alias="imdbVotes")
    plot: Optional[str] = Field(default=None, alias="Plot")
    director: Optional[str] = Field(default=None, alias="Director")
    actors: Optional[str] = Field(default=None, alias="Actors")
    year: Optional[str] = Field(default=None, alias="Year")

    @field_validator("*", mode="before")
    @classmethod
    def _na_to_none(cls, v):
        if isinstance(v, str) and (v.strip() == NOT_AVAILABLE or not v.strip()):
            return None
        return v

    @property
    def rating(self) -> Optional[str]:
        return self.imdb_rating


class OmdbClient:
    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str = "http://www.omdbapi.com/"):
        self._client = client
        self._api_key = api_key
        self._base_url = base_url

    async def lookup(self, imdb_id: str) -> Optional[OmdbRecord]:
        if not imdb_id:
            return None
        if not self._api_key:
            log.warning("OMDB_API_KEY not set; skipping rating lookup for %s", imdb_id)
            return None

        try:
            r = await self._client.get(self._base_url, params={"i": imdb_id, "apikey": self._api_key})
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.error("Error fetching IMDb data for %s: %s", imdb_id, e)
            return None

        if not isinstance(data, dict):
            log.error("OMDb returned non-object for %s", imdb_id)
            return None
        if data.get("Response") == "False":
            log.error("OMDb API error for %s: %s", imdb_id, data.get("Error"))
            return None

        try:
            return OmdbRecord.model_validate(data)
        except ValidationError as e:
            log.error("Unexpected OMDb payload for %s: %s", imdb_id, e)
            return None

    async def rating_for(self, imdb_id: str) -> Optional[str]:
        record = await self.lookup(imdb_id)
        return record.rating if record else None
