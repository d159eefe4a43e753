"""Build the stream payload returned to Stremio."""

from __future__ import annotations

from typing import Iterable

from ..models import StreamDescriptor


def assemble(descriptors: Iterable[StreamDescriptor]) -> dict[str, list[dict[str, object]]]:
    """Return ``{"streams": [...]}``; no descriptors still yields an empty array."""

    return {"streams": [descriptor.to_wire() for descriptor in descriptors]}
