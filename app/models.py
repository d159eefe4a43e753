"""Models describing catalog identifiers, trailer references and stream payloads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ContentType = Literal["movie", "series"]
CatalogIdKind = Literal["external", "native", "unresolved"]

EXTERNAL_ID_RE = re.compile(r"^tt\d+$")
NATIVE_PREFIX = "tmdb:"


@dataclass(frozen=True, slots=True)
class CatalogId:
    """Identifier taken from the request path, tagged by the format it uses."""

    kind: CatalogIdKind
    value: str | None
    raw: str

    @classmethod
    def parse(cls, raw: str) -> "CatalogId":
        """Classify ``raw`` as an IMDb id, a TMDB id or something unknown.

        Stremio appends ``:season:episode`` to series ids; that suffix is
        ignored since trailers are per title.
        """

        text = (raw or "").strip()
        if text.lower().startswith(NATIVE_PREFIX):
            native = text[len(NATIVE_PREFIX):].split(":", 1)[0].strip()
            if native.isdigit():
                return cls(kind="native", value=native, raw=text)
            return cls(kind="unresolved", value=None, raw=text)

        head = text.split(":", 1)[0]
        if EXTERNAL_ID_RE.match(head):
            return cls(kind="external", value=head, raw=text)
        if head.isdigit():
            return cls(kind="native", value=head, raw=text)
        return cls(kind="unresolved", value=None, raw=text)

    @property
    def is_resolvable(self) -> bool:
        return self.kind != "unresolved"


@dataclass(frozen=True, slots=True)
class CanonicalMovieRef:
    """What the identifier resolver learned about a title."""

    content_type: ContentType
    native_id: str | None = None
    title: str | None = None
    external_id: str | None = None

    @property
    def search_term(self) -> str | None:
        """Best free-text handle for platform searches."""

        return self.title or self.external_id


class BehaviorHints(BaseModel):
    """Playback hints understood by the consuming client."""

    model_config = ConfigDict(populate_by_name=True)

    not_web_ready: bool = Field(default=False, serialization_alias="notWebReady")
    binge_group: str = Field(default="trailer", serialization_alias="bingeGroup")
    ios_supports: bool = True


class StreamDescriptor(BaseModel):
    """A single trailer stream returned to the client."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    title: str
    url: str
    media_type: Literal["trailer"] = Field(
        default="trailer", serialization_alias="type"
    )
    source: str
    behavior_hints: BehaviorHints = Field(
        default_factory=BehaviorHints, serialization_alias="behaviorHints"
    )

    def to_wire(self) -> dict[str, object]:
        """Return the Stremio-compatible stream object."""

        return self.model_dump(by_alias=True)
