"""HTTP client for Invidious- and Piped-compatible video mirrors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urljoin

import httpx

from ..config import BackendDescriptor
from ..utils import extract_video_id

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RawStream:
    """A stream exactly as one mirror described it, before filtering."""

    url: str
    quality_label: str | None = None
    container: str | None = None
    adaptive: bool = False
    video_only: bool = False


_CONTAINER_ALIASES = {
    "mpeg_4": "mp4",
    "mpeg-4": "mp4",
    "v3gpp": "3gpp",
    "3gp": "3gpp",
    "x-mpegurl": "hls",
    "vnd.apple.mpegurl": "hls",
    "m3u8": "hls",
}


def _normalize_container(value: Any) -> str | None:
    """Reduce mime types and Piped format names to a bare container name."""

    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip().lower()
    if "/" in text:
        text = text.split(";", 1)[0].split("/", 1)[1].strip()
    return _CONTAINER_ALIASES.get(text, text)


def _absolute(base_url: str, url: Any) -> str | None:
    if not isinstance(url, str) or not url.strip():
        return None
    return urljoin(f"{base_url}/", url.strip())


def parse_invidious_streams(
    payload: dict[str, Any], base_url: str
) -> list[RawStream]:
    """Parse ``/api/v1/videos/{id}``: an HLS master plus muxed format streams."""

    streams: list[RawStream] = []
    hls_url = _absolute(base_url, payload.get("hlsUrl"))
    if hls_url:
        streams.append(
            RawStream(url=hls_url, quality_label="HLS", container="hls", adaptive=True)
        )

    for entry in payload.get("formatStreams") or []:
        if not isinstance(entry, dict):
            continue
        url = _absolute(base_url, entry.get("url"))
        if not url:
            continue
        streams.append(
            RawStream(
                url=url,
                quality_label=entry.get("qualityLabel") or entry.get("resolution"),
                container=_normalize_container(
                    entry.get("container") or entry.get("type")
                ),
            )
        )
    return streams


def parse_piped_streams(payload: dict[str, Any], base_url: str) -> list[RawStream]:
    """Parse ``/streams/{id}``: discrete video streams only."""

    streams: list[RawStream] = []
    for entry in payload.get("videoStreams") or []:
        if not isinstance(entry, dict):
            continue
        url = _absolute(base_url, entry.get("url"))
        if not url:
            continue
        streams.append(
            RawStream(
                url=url,
                quality_label=entry.get("qualityLabel") or entry.get("quality"),
                container=_normalize_container(
                    entry.get("format") or entry.get("mimeType")
                ),
                video_only=bool(entry.get("videoOnly")),
            )
        )
    return streams


def parse_invidious_search(payload: Any) -> str | None:
    if not isinstance(payload, list):
        return None
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        if entry.get("type", "video") != "video":
            continue
        video_id = entry.get("videoId")
        if isinstance(video_id, str) and video_id:
            return video_id
    return None


def parse_piped_search(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for entry in payload.get("items") or []:
        if not isinstance(entry, dict):
            continue
        if entry.get("type", "stream") != "stream":
            continue
        video_id = extract_video_id(entry.get("url"))
        if video_id:
            return video_id
    return None


StreamParser = Callable[[dict[str, Any], str], list[RawStream]]
SearchParser = Callable[[Any], "str | None"]

STREAM_PARSERS: dict[str, StreamParser] = {
    "invidious": parse_invidious_streams,
    "piped": parse_piped_streams,
}
SEARCH_PARSERS: dict[str, SearchParser] = {
    "invidious": parse_invidious_search,
    "piped": parse_piped_search,
}


class StreamBackendClient:
    """Speaks each mirror's dialect and normalizes its answers."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def fetch_streams(
        self, backend: BackendDescriptor, video_id: str
    ) -> list[RawStream]:
        """Return the streams one mirror offers for ``video_id``.

        HTTP failures propagate so the caller can decide how to account for
        the mirror.
        """

        if backend.shape == "invidious":
            url = f"{backend.url}/api/v1/videos/{video_id}"
            params = {"local": "true"}
        else:
            url = f"{backend.url}/streams/{video_id}"
            params = {}
        response = await self._client.get(url, params=params)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected payload from {backend.url}")
        return STREAM_PARSERS[backend.shape](payload, backend.url)

    async def search(self, backend: BackendDescriptor, query: str) -> str | None:
        """Return the first video id a mirror's search yields, if any."""

        if backend.shape == "invidious":
            url = f"{backend.url}/api/v1/search"
            params = {"q": query, "type": "video"}
        else:
            url = f"{backend.url}/search"
            params = {"q": query, "filter": "videos"}
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Search for %r via %s failed: %s", query, backend.url, exc)
            return None
        return SEARCH_PARSERS[backend.shape](payload)
