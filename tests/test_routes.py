"""End-to-end tests for the HTTP surface with faked upstreams."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import register_routes
from app.services.trailer_service import TrailerService

TMDB_BASE_URL = "https://api.tmdb.example/3"


class FakeUpstreams:
    """Serves TMDB, Vimeo and one Invidious and one Piped mirror from memory."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.find: dict[str, Any] = {"movie_results": [{"id": 42}], "tv_results": []}
        self.videos: list[dict[str, Any]] = [
            {"site": "YouTube", "type": "Trailer", "official": True, "name": "Trailer", "key": "abc123"}
        ]
        self.invidious: dict[str, Any] = {
            "formatStreams": [
                {"url": "https://inv.example.com/480.mp4", "qualityLabel": "480p", "container": "mp4"}
            ]
        }
        self.piped: dict[str, Any] = {
            "videoStreams": [
                {"url": "https://proxy.example.com/480.mp4", "quality": "480p", "format": "MPEG_4"}
            ]
        }
        self.search: dict[str, Any] = {"items": []}
        self.vimeo: dict[str, Any] = {
            "data": [
                {
                    "files": [
                        {"type": "video/mp4", "rendition": "720p", "link": "https://player.vimeo.com/720.mp4"}
                    ],
                    "play": {"hls": {"link": "https://player.vimeo.com/master.m3u8"}},
                }
            ]
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path
        if host == "api.tmdb.example":
            if path.startswith("/3/find/"):
                return httpx.Response(200, json=self.find)
            if path == "/3/movie/42":
                return httpx.Response(
                    200,
                    json={
                        "id": 42,
                        "title": "The Answer",
                        "overview": "Deep Thought computes.",
                        "release_date": "2005-04-28",
                        "poster_path": "/answer.jpg",
                        "imdb_id": "tt1234567",
                    },
                )
            if path == "/3/movie/42/videos":
                return httpx.Response(200, json={"results": self.videos})
        if host == "inv.example.com" and path.startswith("/api/v1/videos/"):
            return httpx.Response(200, json=self.invidious)
        if host == "piped.example.com" and path.startswith("/streams/"):
            return httpx.Response(200, json=self.piped)
        if host == "api.vimeo.com" and path == "/videos":
            return httpx.Response(200, json=self.vimeo)
        if host == "piped.example.com" and path == "/search":
            return httpx.Response(200, json=self.search)
        return httpx.Response(404, json={"error": "not found"})


def build_client(settings: Settings, upstreams: FakeUpstreams) -> TestClient:
    transport = httpx.MockTransport(upstreams)
    app = FastAPI()
    register_routes(app)
    app.state.settings = settings
    app.state.trailer_service = TrailerService.build(
        settings,
        httpx.AsyncClient(transport=transport, base_url=TMDB_BASE_URL),
        httpx.AsyncClient(transport=transport),
    )
    return TestClient(app)


def test_imdb_id_resolves_to_single_trailer_stream(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(), upstreams) as client:
        response = client.get("/stream/movie/tt1234567.json")

    assert response.status_code == 200
    assert response.json() == {
        "streams": [
            {
                "name": "Trailer (480p)",
                "title": "Official Trailer",
                "url": "https://inv.example.com/480.mp4",
                "type": "trailer",
                "source": "youtube",
                "behaviorHints": {
                    "notWebReady": False,
                    "bingeGroup": "trailer-480p",
                    "ios_supports": True,
                },
            }
        ]
    }
    backend_paths = [
        request.url.path for request in upstreams.requests if request.url.host != "api.tmdb.example"
    ]
    assert sorted(backend_paths) == ["/api/v1/videos/abc123", "/streams/abc123"]


def test_unknown_id_without_search_match_is_empty(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(), upstreams) as client:
        response = client.get("/stream/movie/kitsu:1.json")

    assert response.status_code == 200
    assert response.json() == {"streams": []}


def test_search_strategy_with_no_results_is_empty(make_settings) -> None:
    upstreams = FakeUpstreams()
    upstreams.find = {"movie_results": [], "tv_results": []}

    with build_client(make_settings(), upstreams) as client:
        response = client.get("/stream/movie/tt0000001.json")

    assert response.status_code == 200
    assert response.json() == {"streams": []}
    searched = [request for request in upstreams.requests if request.url.path.endswith("search")]
    assert searched, "the external id should have been searched for"


def test_all_backends_down_returns_fallback(make_settings) -> None:
    upstreams = FakeUpstreams()
    upstreams.invidious = {"error": "blocked"}
    upstreams.piped = {"videoStreams": []}

    with build_client(make_settings(), upstreams) as client:
        response = client.get("/stream/movie/tmdb:42.json")

    streams = response.json()["streams"]
    assert response.status_code == 200
    assert len(streams) == 1
    assert streams[0]["url"] == "https://www.youtube.com/watch?v=abc123"


def test_unsupported_type_is_rejected_before_upstream_calls(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(), upstreams) as client:
        response = client.get("/stream/channel/tt1234567.json")

    assert response.status_code == 400
    assert "Unsupported content type" in response.json()["detail"]
    assert upstreams.requests == []


def test_series_type_can_be_disabled(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(CATALOG_TYPES="movie"), upstreams) as client:
        response = client.get("/stream/series/tt0944947:1:1.json")

    assert response.status_code == 400


def test_unexpected_fault_becomes_500(make_settings) -> None:
    class ExplodingService(TrailerService):
        def __init__(self) -> None:  # pragma: no cover - nothing to initialise
            pass

        async def get_stream_payload(self, content_type: str, raw_id: str):  # type: ignore[override]
            raise RuntimeError("boom")

    app = FastAPI()
    register_routes(app)
    app.state.trailer_service = ExplodingService()

    with TestClient(app) as client:
        response = client.get("/stream/movie/tt1234567.json")

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_meta_includes_trailer(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(), upstreams) as client:
        response = client.get("/meta/movie/tt1234567.json")

    assert response.status_code == 200
    meta = response.json()["meta"]
    assert meta["id"] == "tt1234567"
    assert meta["name"] == "The Answer"
    assert meta["releaseInfo"] == "2005"
    assert meta["poster"] == "https://image.tmdb.org/t/p/w500/answer.jpg"
    assert meta["trailers"] == [{"source": "abc123", "type": "Trailer"}]


def test_meta_requires_tmdb_key(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(TMDB_API_KEY=None), upstreams) as client:
        response = client.get("/meta/movie/tt1234567.json")

    assert response.status_code == 503
    assert response.json() == {"detail": "TMDB_API_KEY is not configured"}
    assert upstreams.requests == []


def test_meta_for_unknown_title_is_404(make_settings) -> None:
    upstreams = FakeUpstreams()
    upstreams.find = {"movie_results": [], "tv_results": []}

    with build_client(make_settings(), upstreams) as client:
        response = client.get("/meta/movie/tt0000001.json")

    assert response.status_code == 404


def test_manifest_and_health(make_settings) -> None:
    with build_client(make_settings(APP_NAME="Trailer Test"), FakeUpstreams()) as client:
        manifest = client.get("/manifest.json")
        root = client.get("/")
        health = client.get("/health")

    assert manifest.status_code == 200
    payload = manifest.json()
    assert payload["name"] == "Trailer Test"
    assert payload["resources"] == ["stream", "meta"]
    assert payload["types"] == ["movie", "series"]
    assert root.json() == payload
    assert health.json() == {"status": "ok"}


def test_vimeo_replaces_fallback_when_mirrors_fail(make_settings) -> None:
    upstreams = FakeUpstreams()
    upstreams.invidious = {"error": "blocked"}
    upstreams.piped = {"videoStreams": []}

    with build_client(make_settings(VIMEO_API_KEY="vimeo-key"), upstreams) as client:
        response = client.get("/stream/movie/tmdb:42.json")

    streams = response.json()["streams"]
    assert response.status_code == 200
    assert [stream["url"] for stream in streams] == [
        "https://player.vimeo.com/master.m3u8",
        "https://player.vimeo.com/720.mp4",
    ]
    assert {stream["source"] for stream in streams} == {"vimeo"}
    vimeo_requests = [request for request in upstreams.requests if request.url.host == "api.vimeo.com"]
    assert vimeo_requests[0].url.params["query"] == "The Answer"
    assert vimeo_requests[0].headers["Authorization"] == "Bearer vimeo-key"


def test_vimeo_skipped_when_mirrors_answer(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(VIMEO_API_KEY="vimeo-key"), upstreams) as client:
        response = client.get("/stream/movie/tmdb:42.json")

    assert response.json()["streams"][0]["source"] == "youtube"
    assert not [request for request in upstreams.requests if request.url.host == "api.vimeo.com"]


def test_empty_vimeo_result_keeps_web_player_fallback(make_settings) -> None:
    upstreams = FakeUpstreams()
    upstreams.invidious = {"error": "blocked"}
    upstreams.piped = {"videoStreams": []}
    upstreams.vimeo = {"data": []}

    with build_client(make_settings(VIMEO_API_KEY="vimeo-key"), upstreams) as client:
        response = client.get("/stream/movie/tmdb:42.json")

    streams = response.json()["streams"]
    assert [stream["url"] for stream in streams] == ["https://www.youtube.com/watch?v=abc123"]


def test_meta_echoes_id_form(make_settings) -> None:
    upstreams = FakeUpstreams()

    with build_client(make_settings(), upstreams) as client:
        bare = client.get("/meta/movie/42.json")
        prefixed = client.get("/meta/movie/tmdb:42.json")

    assert bare.status_code == 200
    assert bare.json()["meta"]["id"] == "42"
    assert prefixed.json()["meta"]["id"] == "tmdb:42"
