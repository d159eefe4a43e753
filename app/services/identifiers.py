"""Turn catalog identifiers into TMDB references."""

from __future__ import annotations

import logging

from ..config import Settings
from ..models import CanonicalMovieRef, CatalogId, ContentType
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


class IdentifierResolver:
    """Resolve IMDb or TMDB ids to a :class:`CanonicalMovieRef`.

    Returns ``None`` for ids that cannot be mapped. TMDB failures are logged
    by the client and never raised.
    """

    def __init__(self, settings: Settings, tmdb: TMDBClient):
        self._settings = settings
        self._tmdb = tmdb

    async def resolve(
        self, catalog_id: CatalogId, *, content_type: ContentType
    ) -> CanonicalMovieRef | None:
        if catalog_id.kind == "unresolved" or not catalog_id.value:
            logger.info("Unrecognised catalog id %s", catalog_id.raw)
            return None

        external_id: str | None = None
        if catalog_id.kind == "native":
            native_id: str | None = catalog_id.value
        else:
            external_id = catalog_id.value
            native_id = await self._tmdb.find_native_id(
                external_id, content_type=content_type
            )
            logger.info("IMDb id %s resolved to TMDB id %s", external_id, native_id)

        if native_id is None:
            if external_id and self._settings.partial_refs:
                return CanonicalMovieRef(
                    content_type=content_type, external_id=external_id
                )
            return None

        title: str | None = None
        if self._settings.resolve_titles:
            title = await self._tmdb.fetch_title(native_id, content_type=content_type)
        return CanonicalMovieRef(
            content_type=content_type,
            native_id=native_id,
            title=title,
            external_id=external_id,
        )
