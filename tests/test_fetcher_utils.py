from fff.workflows.fetcher_utils import (
    canonical_header_name,
    normalize_path,
    parse_headers,
    parse_request_uri,
    split_header,
)


def test_normalize_path_collapses_unsafe_runs():
    assert normalize_path("/a b!!c") == "/a-b-c"


def test_normalize_path_keeps_safe_characters():
    assert normalize_path("/static/app-1.2_min.js") == "/static/app-1.2_min.js"
    assert normalize_path("/") == "/"
    assert normalize_path("") == ""


def test_normalize_path_replaces_unicode_and_percent():
    assert normalize_path("/café/%2e%2e/x") == "/caf-/-2e-2e/x"


def test_parse_request_uri_accepts_absolute_urls():
    url = parse_request_uri("https://Example.com:8443/a?b=c")
    assert url is not None
    assert url.host.lower() == "example.com"
    assert url.path == "/a"


def test_parse_request_uri_rejects_junk():
    assert parse_request_uri("") is None
    assert parse_request_uri("not a url") is None
    assert parse_request_uri("example.com/path") is None
    assert parse_request_uri("/just/a/path") is None


def test_split_header():
    assert split_header("X-Token: abc") == ("X-Token", "abc")
    assert split_header("X-Empty:") == ("X-Empty", "")
    assert split_header("Host: a:b") == ("Host", "a:b")
    assert split_header("no colon here") is None
    assert split_header(": value") is None


def test_parse_headers_keeps_order_and_drops_malformed():
    parsed = parse_headers(["A: 1", "broken", "B: 2", "A: 3"])
    assert parsed == [("A", "1"), ("B", "2"), ("A", "3")]


def test_canonical_header_name():
    assert canonical_header_name("content-type") == "Content-Type"
    assert canonical_header_name("X-FORWARDED-FOR") == "X-Forwarded-For"
    assert canonical_header_name("etag") == "Etag"
    assert canonical_header_name("bad header") == "bad header"
