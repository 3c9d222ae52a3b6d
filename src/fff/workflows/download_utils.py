"""Artifact persistence: content-addressed paths and the request/response text format."""

from __future__ import annotations

import hashlib
import os
import posixpath
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from ..core.keys import D_CREATE_DIR, D_WRITE_FILE
from .fetch_config import DIR_MODE, FILE_MODE, FetchConfig
from .fetcher_utils import canonical_header_name, normalize_path
from .web_fetch import FetchError, RequestSpec, ResponseRecord


class ArtifactDirError(FetchError):
    prefix = D_CREATE_DIR


class ArtifactWriteError(FetchError):
    prefix = D_WRITE_FILE


def artifact_key(method: str, raw_url: str, body: str, headers: Iterable[str]) -> str:
    """Return the 40-char hex SHA-1 identifying a request's artifact."""

    material = method + raw_url + body + ", ".join(headers)
    return hashlib.sha1(material.encode("utf-8", "surrogateescape")).hexdigest()


def artifact_path(output_dir: str, hostname: str, normalized_path: str, key: str) -> str:
    """Join ``output_dir/hostname/path/key``; URL segments never climb above the host dir."""

    segments = [seg for seg in normalized_path.split("/") if seg not in {"", ".", ".."}]
    return posixpath.normpath(posixpath.join(output_dir, hostname, *segments, key))


def _group_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[str, List[str]]]:
    grouped: Dict[str, List[str]] = {}
    for name, value in headers:
        grouped.setdefault(canonical_header_name(name), []).append(value)
    return list(grouped.items())


def serialize_artifact(spec: RequestSpec, response: ResponseRecord) -> bytes:
    parts: List[str] = [f"{spec.method} {spec.raw_url}\n\n"]
    for header in spec.headers:
        parts.append(f"> {header}\n")
    parts.append("\n")
    if spec.body:
        parts.append(spec.body)
        parts.append("\n\n")
    parts.append(f"< {response.proto} {response.status_line}\n")
    for name, values in _group_headers(response.headers):
        for value in values:
            parts.append(f"< {name}: {value}\n")
    parts.append("\r\n")
    return "".join(parts).encode("utf-8", "surrogateescape") + response.body


def _make_dirs(directory: Path) -> None:
    # mkdir(parents=True) ignores ``mode`` for intermediate directories.
    missing: List[Path] = []
    while not directory.is_dir():
        missing.append(directory)
        if directory.parent == directory:
            break
        directory = directory.parent
    for entry in reversed(missing):
        try:
            entry.mkdir(mode=DIR_MODE)
        except FileExistsError:
            if not entry.is_dir():
                raise


def write_artifact(path: str, content: bytes) -> None:
    """Write the artifact, creating parent directories and replacing any old copy."""

    try:
        _make_dirs(Path(path).parent)
    except OSError as exc:
        raise ArtifactDirError(exc) from exc
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
    except OSError as exc:
        raise ArtifactWriteError(exc) from exc


def persist_response(config: FetchConfig, spec: RequestSpec, response: ResponseRecord) -> str:
    """Persist one exchange and return the artifact path."""

    key = artifact_key(spec.method, spec.raw_url, spec.body, spec.headers)
    path = artifact_path(config.output_dir, spec.hostname, normalize_path(spec.url.path), key)
    write_artifact(path, serialize_artifact(spec, response))
    return path


__all__ = [
    "ArtifactDirError",
    "ArtifactWriteError",
    "artifact_key",
    "artifact_path",
    "serialize_artifact",
    "write_artifact",
    "persist_response",
]
