"""Fetch defaults (timeouts, pool sizes, pacing, paths) and the run configuration.

Centralizes static defaults so the dispatcher and client factory have no
embedded magic numbers. ``FetchConfig`` is built once before dispatch and
shared read-only by every task.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

# Request defaults
DEFAULT_METHOD = "GET"
BODY_METHOD = "POST"
DEFAULT_DELAY_MS = 100
DEFAULT_OUTPUT_DIR = "out"

# Transport defaults (seconds)
REQUEST_TIMEOUT = 10.0
CONNECT_TIMEOUT = 10.0
IDLE_CONN_TIMEOUT = 1.0

# Artifact permissions
DIR_MODE = 0o750
FILE_MODE = 0o644


def effective_method(method: str, body: str) -> str:
    """Return the method to send; a body upgrades the default GET to POST."""

    if body and method == DEFAULT_METHOD:
        return BODY_METHOD
    return method


@dataclass(frozen=True)
class FetchConfig:
    """Immutable settings for one run."""

    method: str = DEFAULT_METHOD
    body: str = ""
    headers: Tuple[str, ...] = ()
    delay_ms: int = DEFAULT_DELAY_MS
    output_dir: str = DEFAULT_OUTPUT_DIR
    save_all: bool = False
    save_statuses: Tuple[int, ...] = ()
    ignore_html: bool = False
    ignore_empty: bool = False
    match: str = ""
    keep_alive: bool = False
    proxy: str = ""
    concurrency: int = 0

    @classmethod
    def build(
        cls,
        *,
        method: str = DEFAULT_METHOD,
        body: str = "",
        headers: Iterable[str] = (),
        save_statuses: Iterable[int] = (),
        **kwargs,
    ) -> "FetchConfig":
        """Freeze repeatable options and resolve the effective method once."""

        return cls(
            method=effective_method(method, body),
            body=body,
            headers=tuple(headers),
            save_statuses=tuple(save_statuses),
            **kwargs,
        )

    @property
    def delay_seconds(self) -> float:
        return max(0, self.delay_ms) / 1000.0
