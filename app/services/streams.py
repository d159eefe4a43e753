"""Resolve a trailer video id into ranked, playable streams across mirrors."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from ..config import BackendDescriptor, Settings
from ..models import BehaviorHints, StreamDescriptor
from ..utils import QUALITY_RE, host_matches, is_secure_url, parse_quality_rank
from .backends import RawStream, StreamBackendClient

logger = logging.getLogger(__name__)

PLAYABLE_CONTAINERS = frozenset({"mp4", "m4v", "mov", "hls"})
WEB_PLAYER_URL = "https://www.youtube.com/watch?v={video_id}"
TRAILER_TITLE = "Official Trailer"


@dataclass(slots=True)
class StreamCandidate:
    """A normalized stream that can be filtered, ranked and emitted."""

    quality_label: str
    quality_rank: int
    url: str
    is_direct_playable: bool
    adaptive: bool = False
    backend_index: int = 0


class StreamResolver:
    """Query every configured mirror at once and merge what comes back.

    Mirrors are awaited settle-all: a slow mirror never prevents the others
    from contributing, and a failed mirror simply contributes nothing. When
    nothing playable survives, a single web-player link is returned instead
    (unless ``EMPTY_FALLBACK`` is disabled).
    """

    def __init__(self, settings: Settings, backend_client: StreamBackendClient):
        self._settings = settings
        self._backends = backend_client

    async def resolve(
        self,
        video_id: str,
        backends: Sequence[BackendDescriptor] | None = None,
    ) -> list[StreamDescriptor]:
        descriptors = await self.collect(video_id, backends)
        if descriptors:
            return descriptors
        return self.fallback(video_id)

    async def collect(
        self,
        video_id: str,
        backends: Sequence[BackendDescriptor] | None = None,
    ) -> list[StreamDescriptor]:
        """Return only real streams from the mirrors, never the fallback."""

        configured = tuple(
            backends if backends is not None else self._settings.stream_backends
        )
        results = await self._fan_out(video_id, configured)
        descriptors = self.rank(results, source=self._settings.source_tag)
        if descriptors:
            logger.info(
                "Resolved %d stream(s) for %s from %d backend(s)",
                len(descriptors),
                video_id,
                len(configured),
            )
        return descriptors

    def rank(
        self, results: Sequence[Sequence[RawStream]], *, source: str
    ) -> list[StreamDescriptor]:
        """Filter, rank and cap raw streams grouped by declaration order."""

        ranked = self._rank(self._filter(self._merge(results)))
        return [self._to_descriptor(candidate, source=source) for candidate in ranked]

    def fallback(self, video_id: str) -> list[StreamDescriptor]:
        """Return the web player link, or nothing when the fallback is disabled."""

        if not self._settings.empty_fallback:
            logger.info("No playable stream for %s", video_id)
            return []
        logger.info("No playable stream for %s, using web player fallback", video_id)
        return [self._fallback_descriptor(video_id)]

    async def _fan_out(
        self, video_id: str, backends: tuple[BackendDescriptor, ...]
    ) -> list[list[RawStream]]:
        tasks = [
            asyncio.create_task(self._fetch_with_timeout(backend, video_id))
            for backend in backends
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        collected: list[list[RawStream]] = []
        for backend, result in zip(backends, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Stream backend %s failed for %s (%s): %s",
                    backend.url,
                    video_id,
                    result.__class__.__name__,
                    result,
                )
                collected.append([])
                continue
            collected.append(result)
        return collected

    async def _fetch_with_timeout(
        self, backend: BackendDescriptor, video_id: str
    ) -> list[RawStream]:
        timeout = backend.timeout or self._settings.backend_timeout
        return await asyncio.wait_for(
            self._backends.fetch_streams(backend, video_id), timeout=timeout
        )

    def _merge(
        self, results: Sequence[Sequence[RawStream]]
    ) -> list[StreamCandidate]:
        candidates: list[StreamCandidate] = []
        for index, streams in enumerate(results):
            for raw in streams:
                if not self._is_playable(raw):
                    continue
                candidates.append(self._to_candidate(raw, index))
        return candidates

    @staticmethod
    def _is_playable(raw: RawStream) -> bool:
        if raw.video_only:
            return False
        if raw.container is not None and raw.container not in PLAYABLE_CONTAINERS:
            return False
        return is_secure_url(raw.url)

    @staticmethod
    def _to_candidate(raw: RawStream, backend_index: int) -> StreamCandidate:
        if raw.adaptive:
            return StreamCandidate(
                quality_label="HLS",
                quality_rank=0,
                url=raw.url,
                is_direct_playable=True,
                adaptive=True,
                backend_index=backend_index,
            )
        match = QUALITY_RE.search(raw.quality_label or "")
        label = f"{match.group(1)}p" if match else (raw.quality_label or "")
        return StreamCandidate(
            quality_label=label,
            quality_rank=parse_quality_rank(raw.quality_label),
            url=raw.url,
            is_direct_playable=True,
            backend_index=backend_index,
        )

    def _filter(self, candidates: list[StreamCandidate]) -> list[StreamCandidate]:
        labelled = [
            candidate
            for candidate in candidates
            if candidate.adaptive or candidate.quality_rank > 0
        ]
        short_lived = self._settings.short_lived_hosts
        if not short_lived:
            return labelled
        durable = [
            candidate
            for candidate in labelled
            if not host_matches(candidate.url, short_lived)
        ]
        return durable or labelled

    def _rank(self, candidates: list[StreamCandidate]) -> list[StreamCandidate]:
        adaptive = next((candidate for candidate in candidates if candidate.adaptive), None)

        discrete: list[StreamCandidate] = []
        seen_ranks: set[int] = set()
        for candidate in candidates:
            if candidate.adaptive or candidate.quality_rank in seen_ranks:
                continue
            seen_ranks.add(candidate.quality_rank)
            discrete.append(candidate)
        # sorted() is stable, so equal ranks keep backend declaration order.
        discrete = sorted(discrete, key=lambda candidate: candidate.quality_rank, reverse=True)
        if self._settings.max_streams is not None:
            discrete = discrete[: self._settings.max_streams]

        if adaptive is None:
            return discrete
        return [adaptive, *discrete]

    def _to_descriptor(
        self, candidate: StreamCandidate, *, source: str
    ) -> StreamDescriptor:
        return StreamDescriptor(
            name=f"Trailer ({candidate.quality_label})",
            title=TRAILER_TITLE,
            url=candidate.url,
            source=source,
            behavior_hints=BehaviorHints(
                not_web_ready=candidate.adaptive,
                binge_group=f"trailer-{candidate.quality_label.lower()}",
                ios_supports=candidate.is_direct_playable,
            ),
        )

    def _fallback_descriptor(self, video_id: str) -> StreamDescriptor:
        platform = self._settings.video_platform
        return StreamDescriptor(
            name=f"Trailer ({platform})",
            title=TRAILER_TITLE,
            url=WEB_PLAYER_URL.format(video_id=video_id),
            source=self._settings.source_tag,
            behavior_hints=BehaviorHints(
                not_web_ready=True,
                binge_group=f"trailer-{self._settings.source_tag}",
                ios_supports=False,
            ),
        )
