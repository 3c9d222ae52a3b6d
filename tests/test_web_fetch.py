import asyncio
import socket

import pytest
from aiohttp import test_utils, web

from fff.workflows.fetch_config import FetchConfig
from fff.workflows.web_fetch import (
    HTTPClient,
    RequestBuildError,
    RequestError,
    build_request,
    resolve_proxy,
)


def _app() -> web.Application:
    async def redirect(request: web.Request) -> web.Response:
        return web.Response(status=302, headers={"Location": "/elsewhere"})

    async def elsewhere(request: web.Request) -> web.Response:
        return web.Response(text="followed")

    async def echo(request: web.Request) -> web.Response:
        body = await request.text()
        tokens = ",".join(request.headers.getall("X-Token", []))
        return web.Response(text=f"{request.method}|{body}|{tokens}")

    app = web.Application()
    app.router.add_get("/redirect", redirect)
    app.router.add_get("/elsewhere", elsewhere)
    app.router.add_route("*", "/echo", echo)
    return app


def _proxy_app() -> web.Application:
    async def proxied(request: web.Request) -> web.Response:
        return web.Response(text=f"proxied {request.host}{request.path}")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", proxied)
    return app


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _send(config: FetchConfig, path: str, app_factory=_app):
    async def run():
        async with test_utils.TestServer(app_factory()) as server:
            spec = build_request(config, f"http://{server.host}:{server.port}{path}")
            async with HTTPClient(config) as client:
                return await client.send(spec)

    return asyncio.run(run())


def test_resolve_proxy():
    assert resolve_proxy("") is None
    assert resolve_proxy("   ") is None
    assert resolve_proxy("not a proxy") is None
    assert resolve_proxy("http://127.0.0.1:8080") == "http://127.0.0.1:8080"


def test_build_request_skips_invalid_urls():
    assert build_request(FetchConfig(), "definitely not a url") is None
    assert build_request(FetchConfig(), "") is None


def test_build_request_rejects_bad_method():
    with pytest.raises(RequestBuildError) as excinfo:
        build_request(FetchConfig(method="BAD METHOD"), "http://example.com/")
    assert excinfo.value.diagnostic.startswith("failed to create request: ")


def test_build_request_carries_shared_config():
    config = FetchConfig.build(body="a=1", headers=["X-Token: 1"])
    spec = build_request(config, "http://example.com/p")
    assert spec.method == "POST"
    assert spec.body == "a=1"
    assert spec.headers == ("X-Token: 1",)
    assert spec.hostname == "example.com"


def test_header_map_last_duplicate_wins():
    config = FetchConfig.build(headers=["X-Token: 1", "x-token: 2", "junk"])
    spec = build_request(config, "http://example.com/")
    headers = spec.header_map()
    assert headers.getall("X-Token") == ["2"]
    assert spec.headers == ("X-Token: 1", "x-token: 2", "junk")


def test_redirects_are_returned_not_followed():
    response = _send(FetchConfig(), "/redirect")
    assert response.status == 302
    assert response.status_line == "302 Found"
    assert ("Location", "/elsewhere") in response.headers
    assert b"followed" not in response.body


def test_body_and_headers_are_sent():
    config = FetchConfig.build(body="a=1", headers=["X-Token: abc"])
    response = _send(config, "/echo")
    assert response.status == 200
    assert response.proto == "HTTP/1.1"
    assert response.body == b"POST|a=1|abc"


def test_unparsable_proxy_falls_back_to_direct():
    response = _send(FetchConfig(proxy="::not a proxy::"), "/echo")
    assert response.status == 200
    assert response.body == b"GET||"


def test_requests_route_through_proxy():
    async def run():
        async with test_utils.TestServer(_proxy_app()) as proxy:
            config = FetchConfig(proxy=f"http://{proxy.host}:{proxy.port}")
            spec = build_request(config, "http://upstream.invalid/some/path")
            async with HTTPClient(config) as client:
                return await client.send(spec)

    response = asyncio.run(run())
    assert response.status == 200
    assert response.body == b"proxied upstream.invalid/some/path"


def test_connection_failure_raises_request_error():
    async def run():
        config = FetchConfig()
        spec = build_request(config, f"http://127.0.0.1:{_closed_port()}/")
        async with HTTPClient(config) as client:
            await client.send(spec)

    with pytest.raises(RequestError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.diagnostic.startswith("request failed: ")


def test_session_configuration():
    async def run(keep_alive: bool):
        async with HTTPClient(FetchConfig(keep_alive=keep_alive)) as client:
            session = client.session
            return session.connector.force_close, session.timeout.total

    assert asyncio.run(run(False)) == (True, 10.0)
    assert asyncio.run(run(True)) == (False, 10.0)


def test_session_requires_context_manager():
    with pytest.raises(RuntimeError):
        HTTPClient(FetchConfig()).session
