from __future__ import annotations

import pytest

from inferload.config import ConfigError, FramingType, build_config

BODY = '{"inputs": "hi", "stream": true, "parameters": {"seed": 3}}'


def test_build_config_parses_body_and_stream_flag() -> None:
    config = build_config("http://localhost:8080/generate_stream", 40, 20, BODY)
    assert config.requests == 40
    assert config.concurrency == 20
    assert config.stream is True
    assert config.body["parameters"] == {"seed": 3}
    assert config.body_text == BODY
    assert config.framing is FramingType.RAW


def test_concurrency_above_request_count_is_clamped() -> None:
    config = build_config("http://localhost:8080/", 5, 50, "{}")
    assert config.concurrency == 5


@pytest.mark.parametrize("body", ["{not json", "", "[1, 2]", '"text"'])
def test_invalid_body_template_is_fatal(body: str) -> None:
    with pytest.raises(ConfigError):
        build_config("http://localhost:8080/", 1, 1, body)


@pytest.mark.parametrize("url", ["", "   ", "localhost:8080", "ftp://host/x", "http://", "not a url"])
def test_invalid_url_is_fatal(url: str) -> None:
    with pytest.raises(ConfigError):
        build_config(url, 1, 1, "{}")


@pytest.mark.parametrize(("requests", "concurrency"), [(0, 1), (-3, 1), (1, 0), (5, -1)])
def test_non_positive_counts_are_fatal(requests: int, concurrency: int) -> None:
    with pytest.raises(ConfigError):
        build_config("http://localhost:8080/", requests, concurrency, "{}")


def test_headers_and_framing_options() -> None:
    config = build_config(
        "https://api.example.com/v1/generate",
        2,
        1,
        "{}",
        framing="sse",
        headers=["Authorization: Bearer abc", "X-Trace:  1 "],
    )
    assert config.framing is FramingType.SSE
    assert config.headers == {"Authorization": "Bearer abc", "X-Trace": "1"}
    assert config.stream is False


def test_bad_header_and_framing_are_fatal() -> None:
    with pytest.raises(ConfigError):
        build_config("http://localhost/", 1, 1, "{}", headers=["no-colon"])
    with pytest.raises(ConfigError):
        build_config("http://localhost/", 1, 1, "{}", framing="websocket")


def test_metadata_round_trips_run_parameters() -> None:
    config = build_config("http://localhost/", 3, 2, BODY, notes="baseline", vary_seed=True)
    meta = config.to_metadata()
    assert meta["requests"] == 3
    assert meta["stream"] is True
    assert meta["vary_seed"] is True
    assert meta["notes"] == "baseline"
