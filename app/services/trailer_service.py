"""High level orchestration for trailer stream and meta requests."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..models import CatalogId, ContentType, StreamDescriptor
from .assembler import assemble
from .backends import StreamBackendClient
from .identifiers import IdentifierResolver
from .streams import StreamResolver
from .tmdb import TMDBClient
from .trailers import TrailerLocator
from .vimeo import VimeoClient

logger = logging.getLogger(__name__)


class UnsupportedContentTypeError(ValueError):
    """Raised when a path asks for a content type the add-on does not serve."""


class ProviderNotConfiguredError(RuntimeError):
    """Raised when a route strictly needs a provider credential that is missing."""


class UnknownTitleError(LookupError):
    """Raised when meta is requested for an id that cannot be resolved."""


class TrailerService:
    """Chain identifier resolution, trailer lookup and stream resolution."""

    def __init__(
        self,
        settings: Settings,
        tmdb: TMDBClient,
        identifiers: IdentifierResolver,
        locator: TrailerLocator,
        resolver: StreamResolver,
        vimeo: VimeoClient | None = None,
    ):
        self._settings = settings
        self._tmdb = tmdb
        self._identifiers = identifiers
        self._locator = locator
        self._resolver = resolver
        self._vimeo = vimeo

    @classmethod
    def build(
        cls,
        settings: Settings,
        tmdb_http: httpx.AsyncClient,
        backend_http: httpx.AsyncClient,
    ) -> "TrailerService":
        """Wire every collaborator from one settings object."""

        tmdb = TMDBClient(settings, tmdb_http)
        backend_client = StreamBackendClient(backend_http)
        return cls(
            settings,
            tmdb,
            IdentifierResolver(settings, tmdb),
            TrailerLocator.from_settings(settings, tmdb, backend_client),
            StreamResolver(settings, backend_client),
            VimeoClient(settings, backend_http),
        )

    def ensure_supported(self, content_type: str) -> ContentType:
        if content_type not in self._settings.catalog_types:
            supported = ", ".join(self._settings.catalog_types)
            raise UnsupportedContentTypeError(
                f"Unsupported content type '{content_type}'; expected one of: {supported}"
            )
        return content_type  # type: ignore[return-value]

    async def get_stream_payload(
        self, content_type: str, raw_id: str
    ) -> dict[str, list[dict[str, object]]]:
        """Return the ``{"streams": [...]}`` payload for a catalog id."""

        resolved_type = self.ensure_supported(content_type)
        catalog_id = CatalogId.parse(raw_id)
        logger.info("Stream request for %s %s", resolved_type, catalog_id.raw)

        ref = await self._identifiers.resolve(catalog_id, content_type=resolved_type)
        if ref is None:
            return assemble([])

        video_id = await self._locator.locate(ref)
        descriptors: list[StreamDescriptor] = []
        if video_id is not None:
            descriptors = await self._resolver.collect(video_id)

        # Vimeo is consulted only when the YouTube mirrors produced nothing.
        if not descriptors and ref.title and self._vimeo and self._vimeo.configured:
            vimeo_streams = await self._vimeo.fetch_streams(ref.title)
            descriptors = self._resolver.rank([vimeo_streams], source="vimeo")

        if not descriptors and video_id is not None:
            descriptors = self._resolver.fallback(video_id)
        return assemble(descriptors)

    async def get_meta_payload(self, content_type: str, raw_id: str) -> dict[str, Any]:
        """Return a ``{"meta": {...}}`` payload built from TMDB details."""

        resolved_type = self.ensure_supported(content_type)
        if not self._tmdb.configured:
            raise ProviderNotConfiguredError("TMDB_API_KEY is not configured")

        catalog_id = CatalogId.parse(raw_id)
        ref = await self._identifiers.resolve(catalog_id, content_type=resolved_type)
        if ref is None or ref.native_id is None:
            raise UnknownTitleError(f"No metadata found for {catalog_id.raw}")

        details = await self._tmdb.fetch_details(
            ref.native_id, content_type=resolved_type
        )
        if details is None:
            raise UnknownTitleError(f"No metadata found for {catalog_id.raw}")

        # Echo the id in the form the client used, minus any episode suffix.
        if catalog_id.kind == "native" and catalog_id.raw.lower().startswith("tmdb:"):
            meta_id = f"tmdb:{catalog_id.value}"
        else:
            meta_id = catalog_id.value
        meta: dict[str, Any] = {
            "id": meta_id,
            "type": resolved_type,
            "name": details.title or ref.search_term or catalog_id.raw,
            "trailers": [],
        }
        if details.overview:
            meta["description"] = details.overview
        if details.year:
            meta["releaseInfo"] = str(details.year)
        if details.poster:
            meta["poster"] = details.poster
        if details.background:
            meta["background"] = details.background
        if details.imdb_id:
            meta["imdb_id"] = details.imdb_id

        video_id = await self._locator.locate(ref)
        if video_id:
            meta["trailers"] = [{"source": video_id, "type": "Trailer"}]
        return {"meta": meta}
