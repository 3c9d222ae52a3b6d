"""High-level exports for the fetch workflows."""

from .download_utils import persist_response
from .fetch_config import FetchConfig
from .prefilters import SaveDecision, evaluate_save_decision
from .web_fetch import FetchError, HTTPClient, RequestSpec, ResponseRecord, build_request

__all__ = [
    "FetchConfig",
    "FetchError",
    "HTTPClient",
    "RequestSpec",
    "ResponseRecord",
    "SaveDecision",
    "build_request",
    "evaluate_save_decision",
    "persist_response",
]
