"""Shared keys to avoid magic strings across fff modules."""

from __future__ import annotations

# Diagnostic prefixes (stderr)
D_CREATE_REQUEST = "failed to create request"
D_REQUEST_FAILED = "request failed"
D_READ_BODY = "failed to read body"
D_CREATE_DIR = "failed to create dir"
D_WRITE_FILE = "failed to write file contents"

# Task outcomes
K_SKIPPED = "skipped"
K_REPORTED = "reported"
K_PERSISTED = "persisted"
K_FAILED = "failed"

# Save decision reasons
K_SAVE_ALL = "save_all"
K_SAVE_STATUS = "save_status"
K_IGNORE_HTML = "ignore_html"
K_IGNORE_EMPTY = "ignore_empty"
K_MATCH = "match"
