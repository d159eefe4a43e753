"""Strategies for locating a trailer video for a resolved title."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Protocol, Sequence

from ..config import BackendDescriptor, Settings
from ..models import CanonicalMovieRef
from ..utils import collapse_whitespace
from .backends import StreamBackendClient
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


class TrailerStrategy(Protocol):
    """Something that can map a title reference onto a video id."""

    name: str

    async def locate(self, ref: CanonicalMovieRef) -> str | None:
        ...


def select_trailer_key(
    videos: Iterable[dict[str, Any]], *, platform: str = "YouTube"
) -> str | None:
    """Pick a trailer key, preferring official uploads over the first match."""

    trailers = [
        video
        for video in videos
        if video.get("type") == "Trailer"
        and video.get("site") == platform
        and video.get("key")
    ]
    for video in trailers:
        name = str(video.get("name") or "")
        if video.get("official") or "official" in name.lower():
            return str(video["key"])
    if trailers:
        return str(trailers[0]["key"])
    return None


def build_search_query(term: str) -> str:
    return f"{collapse_whitespace(term)} official trailer"


class ProviderCrossReference:
    """Read the trailer straight from TMDB's ``videos`` listing."""

    name = "tmdb"

    def __init__(self, tmdb: TMDBClient, *, platform: str = "YouTube"):
        self._tmdb = tmdb
        self._platform = platform

    async def locate(self, ref: CanonicalMovieRef) -> str | None:
        if not ref.native_id:
            return None
        videos = await self._tmdb.fetch_videos(
            ref.native_id, content_type=ref.content_type
        )
        return select_trailer_key(videos, platform=self._platform)


class PlatformSearch:
    """Search the mirrors for ``"<title> official trailer"``."""

    name = "search"

    def __init__(
        self,
        backend_client: StreamBackendClient,
        backends: Sequence[BackendDescriptor],
        *,
        timeout: float = 5.0,
    ):
        self._client = backend_client
        self._backends = tuple(backends)
        self._timeout = timeout

    async def locate(self, ref: CanonicalMovieRef) -> str | None:
        term = ref.search_term
        if not term:
            return None
        query = build_search_query(term)
        for backend in self._backends:
            timeout = backend.timeout or self._timeout
            try:
                video_id = await asyncio.wait_for(
                    self._client.search(backend, query), timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Search for %r via %s timed out after %.1fs",
                    query,
                    backend.url,
                    timeout,
                )
                continue
            if video_id:
                return video_id
        return None


class TrailerLocator:
    """Try each configured strategy in order; the first hit wins."""

    def __init__(self, strategies: Sequence[TrailerStrategy]):
        self._strategies = tuple(strategies)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        tmdb: TMDBClient,
        backend_client: StreamBackendClient,
    ) -> "TrailerLocator":
        available: dict[str, TrailerStrategy] = {
            "tmdb": ProviderCrossReference(tmdb, platform=settings.video_platform),
            "search": PlatformSearch(
                backend_client,
                settings.stream_backends,
                timeout=settings.backend_timeout,
            ),
        }
        return cls([available[name] for name in settings.trailer_strategies])

    @property
    def strategy_names(self) -> tuple[str, ...]:
        return tuple(strategy.name for strategy in self._strategies)

    async def locate(self, ref: CanonicalMovieRef) -> str | None:
        for strategy in self._strategies:
            video_id = await strategy.locate(ref)
            if video_id:
                logger.info(
                    "Trailer %s found for %s via %s",
                    video_id,
                    ref.native_id or ref.external_id,
                    strategy.name,
                )
                return video_id
        logger.info("No trailer found for %s", ref.native_id or ref.external_id)
        return None
