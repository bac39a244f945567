from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping

import httpx

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Fatal configuration problem detected before any request is dispatched."""


class FramingType(str, Enum):
    RAW = "raw"
    NDJSON = "ndjson"
    SSE = "sse"


@dataclass(frozen=True, slots=True)
class LoadTestConfig:
    url: str
    requests: int
    concurrency: int
    body_text: str
    body: Mapping[str, Any]
    print_response: bool = False
    timeout_sec: float = 60.0
    grace_sec: float = 5.0
    framing: FramingType = FramingType.RAW
    vary_seed: bool = False
    headers: Mapping[str, str] = field(default_factory=dict)
    run_id: str | None = None
    notes: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def stream(self) -> bool:
        return self.body.get("stream") is True

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "url": self.url,
            "requests": self.requests,
            "concurrency": self.concurrency,
            "stream": self.stream,
            "body": dict(self.body),
            "print_response": self.print_response,
            "timeout_sec": self.timeout_sec,
            "grace_sec": self.grace_sec,
            "framing": self.framing.value,
            "vary_seed": self.vary_seed,
            "headers": dict(self.headers),
            "notes": self.notes,
        }


def build_config(
    url: str,
    requests: int,
    concurrency: int,
    body_text: str,
    *,
    print_response: bool = False,
    timeout_sec: float = 60.0,
    grace_sec: float = 5.0,
    framing: FramingType | str = FramingType.RAW,
    vary_seed: bool = False,
    headers: Iterable[str] | Mapping[str, str] = (),
    run_id: str | None = None,
    notes: str = "",
) -> LoadTestConfig:
    _validate_url(url)
    if requests < 1:
        msg = f"Request count must be positive, got {requests}"
        raise ConfigError(msg)
    if concurrency < 1:
        msg = f"Concurrency must be positive, got {concurrency}"
        raise ConfigError(msg)
    if concurrency > requests:
        logger.warning("Concurrency %d exceeds request count %d; clamping", concurrency, requests)
        concurrency = requests
    if timeout_sec <= 0:
        msg = f"Timeout must be positive, got {timeout_sec}"
        raise ConfigError(msg)
    if grace_sec < 0:
        msg = f"Grace period must not be negative, got {grace_sec}"
        raise ConfigError(msg)
    try:
        framing = FramingType(framing)
    except ValueError as exc:
        msg = f"Unsupported framing: {framing}"
        raise ConfigError(msg) from exc
    return LoadTestConfig(
        url=url,
        requests=requests,
        concurrency=concurrency,
        body_text=body_text,
        body=parse_body_template(body_text),
        print_response=print_response,
        timeout_sec=timeout_sec,
        grace_sec=grace_sec,
        framing=framing,
        vary_seed=vary_seed,
        headers=parse_headers(headers),
        run_id=run_id,
        notes=notes,
    )


def parse_body_template(body_text: str) -> Mapping[str, Any]:
    try:
        body = json.loads(body_text)
    except json.JSONDecodeError as exc:
        msg = f"Body template is not valid JSON: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(body, dict):
        msg = "Body template must be a JSON object"
        raise ConfigError(msg)
    return body


def parse_headers(headers: Iterable[str] | Mapping[str, str]) -> Mapping[str, str]:
    if isinstance(headers, Mapping):
        return dict(headers)
    parsed: dict[str, str] = {}
    for raw in headers:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            msg = f"Header must look like 'Name: value', got {raw!r}"
            raise ConfigError(msg)
        parsed[name.strip()] = value.strip()
    return parsed


def _validate_url(url: str) -> None:
    if not url or not url.strip():
        msg = "Target URL must not be empty"
        raise ConfigError(msg)
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        msg = f"Invalid target URL {url!r}: {exc}"
        raise ConfigError(msg) from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        msg = f"Target URL must be an absolute http(s) URL, got {url!r}"
        raise ConfigError(msg)
