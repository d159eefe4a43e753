"""Application configuration models."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Iterable, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .models import ContentType
from .utils import normalize_base_url

CONTENT_TYPES: tuple[str, ...] = get_args(ContentType)

BackendShape = Literal["invidious", "piped"]
TrailerStrategyName = Literal["tmdb", "search"]

BACKEND_SHAPES: tuple[str, ...] = get_args(BackendShape)
TRAILER_STRATEGY_NAMES: tuple[str, ...] = get_args(TrailerStrategyName)


class BackendDescriptor(BaseModel):
    """A configured stream mirror and the response shape it speaks."""

    model_config = ConfigDict(frozen=True)

    url: str
    shape: BackendShape
    timeout: float | None = Field(default=None, gt=0, le=60)

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        normalized = normalize_base_url(value)
        if not normalized or not normalized.startswith(("http://", "https://")):
            raise ValueError("Backend URLs must be absolute http(s) URLs")
        return normalized

    @classmethod
    def from_string(cls, entry: str) -> "BackendDescriptor":
        """Parse a ``shape:url`` entry such as ``piped:https://pipedapi.example``."""

        shape, _, url = entry.partition(":")
        shape = shape.strip().lower()
        if shape not in BACKEND_SHAPES or not url:
            raise ValueError(
                f"Backend entries must look like 'shape:url' with shape in {BACKEND_SHAPES}"
            )
        return cls(url=url.strip(), shape=shape)  # type: ignore[arg-type]


DEFAULT_BACKENDS: tuple[BackendDescriptor, ...] = (
    BackendDescriptor(url="https://inv.nadeko.net", shape="invidious"),
    BackendDescriptor(url="https://pipedapi.kavin.rocks", shape="piped"),
)


def _split_csv(value: object, *, field_name: str) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Iterable):
        return [str(part).strip() for part in value if str(part).strip()]
    raise TypeError(f"{field_name} must be a string or iterable of strings")


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Trailerio", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=10000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )

    stream_backends: Annotated[tuple[BackendDescriptor, ...], NoDecode] = Field(
        default=DEFAULT_BACKENDS, alias="STREAM_BACKENDS"
    )
    backend_timeout: float = Field(
        default=5.0, alias="BACKEND_TIMEOUT", gt=0, le=60
    )
    max_streams: int | None = Field(default=3, alias="MAX_STREAMS", ge=1, le=20)
    empty_fallback: bool = Field(default=True, alias="EMPTY_FALLBACK")

    trailer_strategies: Annotated[tuple[TrailerStrategyName, ...], NoDecode] = Field(
        default=("tmdb", "search"), alias="TRAILER_STRATEGIES"
    )
    resolve_titles: bool = Field(default=True, alias="RESOLVE_TITLES")
    partial_refs: bool = Field(default=True, alias="PARTIAL_REFS")

    short_lived_hosts: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("googlevideo.com",), alias="SHORT_LIVED_HOSTS"
    )
    catalog_types: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("movie", "series"), alias="CATALOG_TYPES"
    )
    # The mirrors only speak YouTube, so trailer keys must be YouTube ids.
    video_platform: Literal["YouTube"] = Field(
        default="YouTube", alias="VIDEO_PLATFORM"
    )

    vimeo_api_key: str | None = Field(default=None, alias="VIMEO_API_KEY")
    vimeo_api_url: HttpUrl = Field(
        default="https://api.vimeo.com", alias="VIMEO_API_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("stream_backends", mode="before")
    @classmethod
    def _parse_stream_backends(cls, value: object) -> tuple[object, ...]:
        """Accept ``shape:url`` lists, JSON arrays or descriptor objects."""

        if value is None:
            return DEFAULT_BACKENDS
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return DEFAULT_BACKENDS
            if stripped.startswith("["):
                value = json.loads(stripped)
            else:
                return tuple(
                    BackendDescriptor.from_string(entry)
                    for entry in _split_csv(stripped, field_name="STREAM_BACKENDS")
                )
        if not isinstance(value, Iterable):
            raise TypeError("STREAM_BACKENDS must be a string or a list of backends")
        parsed: list[object] = []
        for entry in value:
            if isinstance(entry, str):
                parsed.append(BackendDescriptor.from_string(entry))
            else:
                parsed.append(entry)
        return tuple(parsed)

    @field_validator("trailer_strategies", mode="before")
    @classmethod
    def _parse_trailer_strategies(cls, value: object) -> tuple[str, ...]:
        """Normalise the strategy order, dropping duplicates."""

        if value is None:
            return ("tmdb", "search")
        cleaned: list[str] = []
        for entry in _split_csv(value, field_name="TRAILER_STRATEGIES"):
            name = entry.lower()
            if name not in TRAILER_STRATEGY_NAMES:
                raise ValueError("Unknown trailer strategy configured")
            if name not in cleaned:
                cleaned.append(name)
        if not cleaned:
            raise ValueError("At least one trailer strategy must be configured")
        return tuple(cleaned)

    @field_validator("short_lived_hosts", "catalog_types", mode="before")
    @classmethod
    def _parse_lowercase_list(cls, value: object) -> tuple[str, ...]:
        if value is None:
            return ()
        return tuple(
            dict.fromkeys(entry.lower() for entry in _split_csv(value, field_name="value"))
        )

    @field_validator("catalog_types")
    @classmethod
    def _require_catalog_types(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("CATALOG_TYPES must list at least one content type")
        if any(entry not in CONTENT_TYPES for entry in value):
            raise ValueError("Unknown content types configured")
        return value

    @field_validator("max_streams", mode="before")
    @classmethod
    def _blank_max_streams(cls, value: object) -> object:
        """An empty or zero cap disables truncation."""

        if isinstance(value, str) and not value.strip():
            return None
        if value in (0, "0"):
            return None
        return value

    @property
    def source_tag(self) -> str:
        """Provider tag attached to emitted streams."""

        return self.video_platform.strip().lower()

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
