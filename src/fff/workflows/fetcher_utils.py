"""Shared helper functions used by the fetch workflow."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

from yarl import URL

# Characters allowed to survive into an artifact path component.
_UNSAFE_PATH_RUN = re.compile(r"[^a-zA-Z0-9/._-]+")
_HEADER_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def normalize_path(path: str) -> str:
    """Replace each run of filesystem-unfriendly characters with a single ``-``."""

    return _UNSAFE_PATH_RUN.sub("-", path or "")


def parse_request_uri(raw_url: str) -> Optional[URL]:
    """Return the parsed URL, or None unless it is absolute with a scheme and host."""

    raw = (raw_url or "").strip()
    if not raw:
        return None
    try:
        url = URL(raw)
    except (TypeError, ValueError):
        return None
    if not url.scheme or not url.host:
        return None
    return url


def split_header(line: str) -> Optional[Tuple[str, str]]:
    """Split a raw ``Name: Value`` string; None when there is no colon or name."""

    name, sep, value = (line or "").partition(":")
    name = name.strip()
    if not sep or not name:
        return None
    return name, value.strip()


def canonical_header_name(name: str) -> str:
    """Canonical MIME form of a header name: ``content-type`` becomes ``Content-Type``.

    Names that are not valid tokens are returned unchanged.
    """

    if not _HEADER_TOKEN.match(name or ""):
        return name
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def parse_headers(lines: Iterable[str]) -> List[Tuple[str, str]]:
    """Parse raw header strings in order, dropping malformed ones."""

    parsed: List[Tuple[str, str]] = []
    for line in lines:
        pair = split_header(line)
        if pair is not None:
            parsed.append(pair)
    return parsed


__all__ = [
    "normalize_path",
    "parse_request_uri",
    "split_header",
    "parse_headers",
    "canonical_header_name",
]
