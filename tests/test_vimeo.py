"""Tests for the optional Vimeo trailer source."""

from __future__ import annotations

import httpx
import pytest

from app.services.vimeo import VimeoClient, parse_vimeo_video

VIMEO_VIDEO = {
    "link": "https://vimeo.com/76979871",
    "files": [
        {"type": "video/mp4", "rendition": "720p", "link": "https://player.vimeo.com/720.mp4"},
        {"type": "video/webm", "rendition": "1080p", "link": "https://player.vimeo.com/1080.webm"},
        {"type": "video/mp4", "height": 360, "link": "https://player.vimeo.com/360.mp4"},
    ],
    "play": {"hls": {"link": "https://player.vimeo.com/master.m3u8"}},
}


def test_parse_vimeo_video_prefers_mp4_files_and_hls() -> None:
    streams = parse_vimeo_video(VIMEO_VIDEO)

    assert [(stream.url, stream.quality_label) for stream in streams] == [
        ("https://player.vimeo.com/720.mp4", "720p"),
        ("https://player.vimeo.com/360.mp4", "360p"),
        ("https://player.vimeo.com/master.m3u8", "HLS"),
    ]
    assert streams[-1].adaptive is True


def test_parse_vimeo_video_without_playable_files() -> None:
    assert parse_vimeo_video({"link": "https://vimeo.com/1"}) == []


@pytest.mark.anyio("asyncio")
async def test_fetch_streams_sends_bearer_token(make_settings) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": [VIMEO_VIDEO]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = VimeoClient(make_settings(VIMEO_API_KEY="vimeo-token"), http_client)
        streams = await client.fetch_streams("The Answer")

    assert len(streams) == 3
    assert requests[0].url.host == "api.vimeo.com"
    assert requests[0].url.path == "/videos"
    assert requests[0].url.params["query"] == "The Answer"
    assert requests[0].headers["Authorization"] == "Bearer vimeo-token"


@pytest.mark.anyio("asyncio")
async def test_fetch_streams_contains_failures(make_settings) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "unauthorized"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = VimeoClient(make_settings(VIMEO_API_KEY="bad-token"), http_client)
        assert await client.fetch_streams("The Answer") == []


@pytest.mark.anyio("asyncio")
async def test_unconfigured_client_makes_no_requests(make_settings) -> None:
    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("Vimeo should not be contacted without a key")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = VimeoClient(make_settings(), http_client)
        assert client.configured is False
        assert await client.fetch_streams("The Answer") == []
