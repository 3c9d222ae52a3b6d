from fff.workflows.fetch_config import FetchConfig, effective_method


def test_body_upgrades_default_get_to_post():
    assert effective_method("GET", "a=1") == "POST"


def test_explicit_method_is_kept_with_body():
    assert effective_method("PUT", "a=1") == "PUT"


def test_get_without_body_stays_get():
    assert effective_method("GET", "") == "GET"


def test_build_freezes_repeatable_options():
    headers = ["A: 1", "A: 1"]
    statuses = [200, 302]
    config = FetchConfig.build(body="x", headers=headers, save_statuses=statuses, delay_ms=5)
    headers.append("B: 2")
    assert config.method == "POST"
    assert config.headers == ("A: 1", "A: 1")
    assert config.save_statuses == (200, 302)
    assert config.delay_seconds == 0.005


def test_defaults():
    config = FetchConfig()
    assert config.method == "GET"
    assert config.delay_ms == 100
    assert config.output_dir == "out"
    assert config.concurrency == 0
