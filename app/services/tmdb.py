"""Utilities for resolving metadata from The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import Settings
from ..models import ContentType

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w780"


@dataclass(slots=True)
class TMDBDetails:
    """Normalized view of a TMDB movie or TV show record."""

    tmdb_id: str
    title: str | None
    overview: str | None
    poster_path: str | None
    backdrop_path: str | None
    year: int | None
    imdb_id: str | None

    @property
    def poster(self) -> str | None:
        return TMDBClient._build_image_url(self.poster_path, POSTER_BASE_URL)

    @property
    def background(self) -> str | None:
        return TMDBClient._build_image_url(self.backdrop_path, BACKDROP_BASE_URL)


class TMDBClient:
    """Client for the handful of TMDB endpoints needed to find trailers.

    Every lookup degrades to ``None`` (or an empty list) when TMDB is
    unreachable, answers with an error, or no API key is configured.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    @property
    def configured(self) -> bool:
        return bool(self._settings.tmdb_api_key)

    async def find_native_id(
        self, external_id: str, *, content_type: ContentType
    ) -> str | None:
        """Map an IMDb id onto the TMDB id of a movie or show."""

        payload = await self._get(
            f"/find/{external_id}", params={"external_source": "imdb_id"}
        )
        if payload is None:
            return None
        result_key = "movie_results" if content_type == "movie" else "tv_results"
        results = payload.get(result_key) or []
        if not isinstance(results, list) or not results:
            logger.info("TMDB has no %s match for %s", content_type, external_id)
            return None
        first = results[0]
        if not isinstance(first, dict) or first.get("id") is None:
            return None
        return str(first["id"])

    async def fetch_details(
        self, tmdb_id: str, *, content_type: ContentType
    ) -> TMDBDetails | None:
        """Fetch the title record, including external ids for shows."""

        endpoint = f"/{self._kind(content_type)}/{tmdb_id}"
        payload = await self._get(
            endpoint, params={"append_to_response": "external_ids"}
        )
        if payload is None:
            return None
        external = payload.get("external_ids") or {}
        return TMDBDetails(
            tmdb_id=str(payload.get("id") or tmdb_id),
            title=payload.get("title") or payload.get("name"),
            overview=payload.get("overview") or None,
            poster_path=payload.get("poster_path"),
            backdrop_path=payload.get("backdrop_path"),
            year=self._extract_year(payload, content_type),
            imdb_id=payload.get("imdb_id") or external.get("imdb_id"),
        )

    async def fetch_title(
        self, tmdb_id: str, *, content_type: ContentType
    ) -> str | None:
        details = await self.fetch_details(tmdb_id, content_type=content_type)
        if details is None:
            return None
        return details.title

    async def fetch_videos(
        self, tmdb_id: str, *, content_type: ContentType
    ) -> list[dict[str, Any]]:
        """Return the raw ``videos`` listing attached to a title."""

        payload = await self._get(f"/{self._kind(content_type)}/{tmdb_id}/videos")
        if payload is None:
            return []
        results = payload.get("results") or []
        if not isinstance(results, list):
            return []
        return [video for video in results if isinstance(video, dict)]

    async def _get(
        self, endpoint: str, *, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        if not self.configured:
            logger.info("TMDB API key missing, skipping lookup of %s", endpoint)
            return None

        query = {"api_key": self._settings.tmdb_api_key}
        if params:
            query.update(params)
        try:
            response = await self._client.get(endpoint, params=query)
        except httpx.HTTPError as exc:
            logger.warning("TMDB request to %s failed: %s", endpoint, exc)
            return None
        if response.status_code >= 400:
            logger.warning(
                "TMDB request to %s failed with status %s",
                endpoint,
                response.status_code,
            )
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("TMDB returned invalid JSON for %s", endpoint)
            return None
        if not isinstance(payload, dict):
            return None
        return payload

    @staticmethod
    def _kind(content_type: ContentType) -> str:
        return "movie" if content_type == "movie" else "tv"

    @staticmethod
    def _extract_year(result: dict[str, Any], content_type: str) -> int | None:
        date_key = "release_date" if content_type == "movie" else "first_air_date"
        date_value = result.get(date_key)
        if not isinstance(date_value, str) or len(date_value) < 4:
            return None
        try:
            return int(date_value[:4])
        except ValueError:
            return None

    @staticmethod
    def _build_image_url(path: str | None, base_url: str) -> str | None:
        if not path:
            return None
        if path.startswith("http"):
            return path
        return f"{base_url}{path}"
