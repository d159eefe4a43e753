"""Optional Vimeo trailer source, used when the YouTube mirrors come up empty."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..config import Settings
from .backends import RawStream

logger = logging.getLogger(__name__)


def _quality_label(entry: dict[str, Any]) -> str | None:
    rendition = entry.get("rendition")
    if isinstance(rendition, str) and rendition.strip():
        return rendition.strip()
    height = entry.get("height")
    if isinstance(height, int) and height > 0:
        return f"{height}p"
    return None


def parse_vimeo_video(video: dict[str, Any]) -> list[RawStream]:
    """Collect direct mp4 files and the HLS playlist of one Vimeo video."""

    streams: list[RawStream] = []
    play = video.get("play") if isinstance(video.get("play"), dict) else {}
    files = list(video.get("files") or []) + list(play.get("progressive") or [])
    for entry in files:
        if not isinstance(entry, dict):
            continue
        mime = str(entry.get("type") or entry.get("mime") or "").lower()
        link = entry.get("link")
        if mime != "video/mp4" or not isinstance(link, str) or not link:
            continue
        streams.append(
            RawStream(url=link, quality_label=_quality_label(entry), container="mp4")
        )

    hls = play.get("hls") if isinstance(play.get("hls"), dict) else {}
    hls_link = hls.get("link")
    if isinstance(hls_link, str) and hls_link:
        streams.append(
            RawStream(url=hls_link, quality_label="HLS", container="hls", adaptive=True)
        )
    return streams


class VimeoClient:
    """Search Vimeo for a title's trailer and return its playable files."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    @property
    def configured(self) -> bool:
        return bool(self._settings.vimeo_api_key)

    async def fetch_streams(self, title: str) -> list[RawStream]:
        if not self.configured:
            return []
        try:
            payload = await asyncio.wait_for(
                self._search(title), timeout=self._settings.backend_timeout
            )
        except (httpx.HTTPError, ValueError, asyncio.TimeoutError) as exc:
            logger.warning(
                "Vimeo search for %r failed (%s): %s",
                title,
                exc.__class__.__name__,
                exc,
            )
            return []

        videos = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(videos, list) or not videos or not isinstance(videos[0], dict):
            logger.info("Vimeo has no trailer for %r", title)
            return []
        return parse_vimeo_video(videos[0])

    async def _search(self, title: str) -> Any:
        base_url = str(self._settings.vimeo_api_url).rstrip("/")
        response = await self._client.get(
            f"{base_url}/videos",
            params={"query": title, "filter": "trailer"},
            headers={"Authorization": f"Bearer {self._settings.vimeo_api_key}"},
        )
        response.raise_for_status()
        return response.json()
