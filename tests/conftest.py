from __future__ import annotations

import pytest

from inferload.config import LoadTestConfig, build_config


class FakeClock:
    """Manually advanced stand-in for ``time.perf_counter``."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_config(
    requests: int = 10,
    concurrency: int = 2,
    body: str = '{"inputs": "hello", "stream": false, "parameters": {"max_new_tokens": 8}}',
    **kwargs: object,
) -> LoadTestConfig:
    return build_config("http://inference.test/generate", requests, concurrency, body, **kwargs)
