from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import aiohttp
from multidict import CIMultiDict
from yarl import URL

from ..core.keys import D_CREATE_REQUEST, D_READ_BODY, D_REQUEST_FAILED
from .fetch_config import CONNECT_TIMEOUT, IDLE_CONN_TIMEOUT, REQUEST_TIMEOUT, FetchConfig
from .fetcher_utils import parse_headers, parse_request_uri

logger = logging.getLogger(__name__)

# RFC 7230 token characters; anything else is not a usable method.
_METHOD_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class FetchError(Exception):
    """A task-local failure reported as ``<prefix>: <cause>``."""

    prefix = "fetch failed"

    def __init__(self, cause: object) -> None:
        super().__init__(_describe(cause))

    @property
    def diagnostic(self) -> str:
        return f"{self.prefix}: {self}"


class RequestBuildError(FetchError):
    prefix = D_CREATE_REQUEST


class RequestError(FetchError):
    prefix = D_REQUEST_FAILED


class BodyReadError(FetchError):
    prefix = D_READ_BODY


def _describe(cause: object) -> str:
    if isinstance(cause, BaseException):
        text = str(cause)
        return text if text else cause.__class__.__name__
    return str(cause)


@dataclass(frozen=True)
class RequestSpec:
    """Everything needed to send one request and to key its artifact."""

    method: str
    raw_url: str
    url: URL
    body: str = ""
    headers: Tuple[str, ...] = ()

    @property
    def hostname(self) -> str:
        return self.url.host or ""

    def header_map(self) -> CIMultiDict:
        # Later duplicates replace earlier ones on the wire; the raw list keeps them all.
        headers: CIMultiDict = CIMultiDict()
        for name, value in parse_headers(self.headers):
            headers[name] = value
        return headers


@dataclass(frozen=True)
class ResponseRecord:
    status: int
    proto: str
    status_line: str
    headers: Tuple[Tuple[str, str], ...] = ()
    body: bytes = b""

    @classmethod
    def from_client_response(cls, resp: aiohttp.ClientResponse, body: bytes) -> "ResponseRecord":
        version = resp.version
        proto = f"HTTP/{version.major}.{version.minor}" if version else "HTTP/1.1"
        status_line = f"{resp.status} {resp.reason or ''}".rstrip()
        return cls(
            status=resp.status,
            proto=proto,
            status_line=status_line,
            headers=tuple(resp.headers.items()),
            body=body,
        )


def build_request(config: FetchConfig, raw_url: str) -> Optional[RequestSpec]:
    """Build the request for one input line.

    Returns None for lines that are not absolute request URIs; bulk URL lists
    are noisy and those lines are skipped without a report. Raises
    ``RequestBuildError`` when the request itself cannot be formed.
    """

    url = parse_request_uri(raw_url)
    if url is None:
        return None
    if not _METHOD_TOKEN.match(config.method or ""):
        raise RequestBuildError(f"invalid method {config.method!r}")
    return RequestSpec(
        method=config.method,
        raw_url=raw_url,
        url=url,
        body=config.body,
        headers=config.headers,
    )


def resolve_proxy(value: str) -> Optional[str]:
    """Return a usable proxy URL, or None so requests go direct."""

    raw = (value or "").strip()
    if not raw:
        return None
    try:
        url = URL(raw)
    except (TypeError, ValueError):
        url = None
    if url is None or not url.scheme or not url.host:
        logger.debug("ignoring unparsable proxy %r; connecting directly", value)
        return None
    return str(url)


class HTTPClient:
    """Process-wide HTTP client shared by every dispatched task.

    TLS verification is off, redirects are never followed and every request
    is bounded by a fixed overall timeout. Without keep-alive each request
    gets a fresh connection.
    """

    def __init__(self, config: FetchConfig) -> None:
        self.config = config
        self.proxy = resolve_proxy(config.proxy)
        self._session: Optional[aiohttp.ClientSession] = None

    def _build_session(self) -> aiohttp.ClientSession:
        connector_kwargs = {"ssl": False, "limit": 0}
        if self.config.keep_alive:
            connector_kwargs["keepalive_timeout"] = IDLE_CONN_TIMEOUT
        else:
            connector_kwargs["force_close"] = True
        connector = aiohttp.TCPConnector(**connector_kwargs)
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT, sock_connect=CONNECT_TIMEOUT)
        return aiohttp.ClientSession(connector=connector, timeout=timeout)

    async def __aenter__(self) -> "HTTPClient":
        self._session = self._build_session()
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("HTTPClient used outside of 'async with'")
        return self._session

    async def send(self, spec: RequestSpec) -> ResponseRecord:
        """Send the request and buffer the whole body."""

        data = spec.body.encode("utf-8") if spec.body else None
        try:
            resp = await self.session.request(
                spec.method,
                spec.url,
                data=data,
                headers=spec.header_map(),
                allow_redirects=False,
                proxy=self.proxy,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise RequestError(exc) from exc
        async with resp:
            try:
                body = await resp.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise BodyReadError(exc) from exc
        return ResponseRecord.from_client_response(resp, body)


__all__ = [
    "FetchError",
    "RequestBuildError",
    "RequestError",
    "BodyReadError",
    "RequestSpec",
    "ResponseRecord",
    "HTTPClient",
    "build_request",
    "resolve_proxy",
]
