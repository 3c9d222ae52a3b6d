from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Collection, Optional

from ..core.keys import K_IGNORE_EMPTY, K_IGNORE_HTML, K_MATCH, K_SAVE_ALL, K_SAVE_STATUS

# Servers mislabel content types, so sniff the body instead of trusting headers.
_HTML_MARKER = re.compile(rb"<html", re.IGNORECASE)


@dataclass(frozen=True)
class SaveDecision:
    keep: bool
    reason: Optional[str] = None


def looks_like_html(body: bytes) -> bool:
    return _HTML_MARKER.search(body or b"") is not None


def evaluate_save_decision(
    *,
    status: int,
    body: bytes,
    save_all: bool = False,
    save_statuses: Collection[int] = (),
    ignore_html: bool = False,
    ignore_empty: bool = False,
    match: str = "",
) -> SaveDecision:
    """
    Decide whether a response should be persisted.

    Policies apply in order, each refining the previous verdict:
    save-all / save-status select, ignore-html and ignore-empty veto, and a
    body match forces a save regardless of the vetoes.
    """
    body = body or b""
    reason: Optional[str] = None
    keep = False
    if save_all:
        keep, reason = True, K_SAVE_ALL
    elif save_statuses and status in save_statuses:
        keep, reason = True, K_SAVE_STATUS

    if ignore_html and keep and looks_like_html(body):
        keep, reason = False, K_IGNORE_HTML

    # Unicode spaces (NBSP, NEL) count as blank too.
    if ignore_empty and keep and not body.decode("utf-8", errors="replace").strip():
        keep, reason = False, K_IGNORE_EMPTY

    if match and match.encode("utf-8") in body:
        keep, reason = True, K_MATCH

    return SaveDecision(keep=keep, reason=reason)
