"""Entry point for the FastAPI-powered Stremio trailer addon."""

from __future__ import annotations
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .services.trailer_service import (
    ProviderNotConfiguredError,
    TrailerService,
    UnknownTitleError,
    UnsupportedContentTypeError,
)

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

ADDON_ID = "com.trailerio.python"
ADDON_VERSION = "1.0.0"

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(10.0, connect=5.0),
        )
    )
    backend_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.backend_timeout),
            follow_redirects=True,
            headers={"User-Agent": f"{settings.app_name} (trailerio)"},
        )
    )
    fastapi_app.state.trailer_service = TrailerService.build(
        settings, tmdb_http, backend_http
    )
    fastapi_app.state.settings = settings

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Trailer streams for Stremio resolved through TMDB and YouTube mirrors",
        version=ADDON_VERSION,
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_trailer_service(app: FastAPI) -> TrailerService:
    service = getattr(app.state, "trailer_service", None)
    if not isinstance(service, TrailerService):
        raise RuntimeError("Trailer service not initialised")
    return service


def get_app_settings(app: FastAPI) -> Settings:
    configured = getattr(app.state, "settings", None)
    if isinstance(configured, Settings):
        return configured
    return settings


def build_manifest(config: Settings) -> dict[str, Any]:
    return {
        "id": ADDON_ID,
        "version": ADDON_VERSION,
        "name": config.app_name,
        "description": "Official trailers as playable streams.",
        "resources": ["stream", "meta"],
        "types": list(config.catalog_types),
        "catalogs": [],
        "idPrefixes": ["tt", "tmdb:"],
    }


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/health")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/")
    async def root() -> dict[str, Any]:
        return build_manifest(get_app_settings(fastapi_app))

    @fastapi_app.get("/manifest.json")
    async def manifest() -> dict[str, Any]:
        return build_manifest(get_app_settings(fastapi_app))

    @fastapi_app.get("/stream/{content_type}/{item_id}.json")
    async def stream(content_type: str, item_id: str) -> JSONResponse:
        service = get_trailer_service(fastapi_app)
        try:
            payload = await service.get_stream_payload(content_type, item_id)
        except UnsupportedContentTypeError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception:
            logger.exception(
                "Stream resolution failed for %s %s", content_type, item_id
            )
            return JSONResponse(
                {"detail": "Internal server error"}, status_code=500
            )
        return JSONResponse(payload)

    @fastapi_app.get("/meta/{content_type}/{item_id}.json")
    async def meta(content_type: str, item_id: str) -> JSONResponse:
        service = get_trailer_service(fastapi_app)
        try:
            payload = await service.get_meta_payload(content_type, item_id)
        except UnsupportedContentTypeError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ProviderNotConfiguredError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except UnknownTitleError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except Exception:
            logger.exception("Meta lookup failed for %s %s", content_type, item_id)
            return JSONResponse(
                {"detail": "Internal server error"}, status_code=500
            )
        return JSONResponse(payload)


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
