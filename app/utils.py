"""Utility helpers for the Trailerio service."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse


QUALITY_RE = re.compile(r"(\d{3,4})p", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")


def parse_quality_rank(label: str | None) -> int:
    """Return the vertical resolution encoded in a label such as ``720p60``.

    Unparsable labels rank 0.
    """

    if not label:
        return 0
    match = QUALITY_RE.search(label)
    if not match:
        return 0
    return int(match.group(1))


def is_secure_url(url: str | None) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme == "https" and bool(parsed.netloc)


def host_matches(url: str, domains: tuple[str, ...] | list[str]) -> bool:
    """Return True if the URL host equals, or is a subdomain of, any domain."""

    host = (urlparse(url).hostname or "").lower()
    if not host:
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


def collapse_whitespace(value: str) -> str:
    return WHITESPACE_RE.sub(" ", value).strip()


def extract_video_id(value: str | None) -> str | None:
    """Pull the ``v`` parameter out of a ``/watch?v=...`` style link."""

    if not value:
        return None
    parsed = urlparse(value)
    candidates = parse_qs(parsed.query).get("v") or []
    video_id = candidates[0].strip() if candidates else ""
    return video_id or None


def normalize_base_url(value: str | None) -> str | None:
    """Strip whitespace, trailing slashes and manifest suffixes from a base URL."""

    if not value:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    normalized = normalized.split("?", 1)[0].rstrip("/")
    lowered = normalized.lower()
    for suffix in ("/manifest.json", "/manifest"):
        if lowered.endswith(suffix):
            normalized = normalized[: -len(suffix)].rstrip("/")
            break
    return normalized or None
