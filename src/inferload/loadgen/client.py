from __future__ import annotations

import copy
import json
import logging

import httpx

from inferload.config import LoadTestConfig
from inferload.loadgen.stream import Clock, StreamConsumer
from inferload.metrics import OutcomeState, RequestOutcome, TransportErrorKind

logger = logging.getLogger(__name__)

_DNS_MARKERS = ("name or service not known", "nodename nor servname", "getaddrinfo", "name resolution")


def build_body(config: LoadTestConfig, index: int) -> bytes:
    if not config.vary_seed:
        return config.body_text.encode("utf-8")
    body = copy.deepcopy(dict(config.body))
    params = body.get("parameters")
    if not isinstance(params, dict):
        params = {}
        body["parameters"] = params
    base_seed = params.get("seed")
    if not isinstance(base_seed, int) or isinstance(base_seed, bool):
        base_seed = 0
    params["seed"] = base_seed + index
    return json.dumps(body).encode("utf-8")


def request_headers(config: LoadTestConfig) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    headers.update(config.headers)
    return headers


def classify_transport_error(exc: httpx.HTTPError) -> TransportErrorKind:
    if isinstance(exc, httpx.TimeoutException):
        return TransportErrorKind.TIMEOUT
    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if any(marker in text for marker in _DNS_MARKERS):
            return TransportErrorKind.DNS
        return TransportErrorKind.CONNECT
    if isinstance(exc, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
        return TransportErrorKind.RESET
    return TransportErrorKind.OTHER


async def send_attempt(
    client: httpx.AsyncClient,
    config: LoadTestConfig,
    index: int,
    consumer: StreamConsumer,
    clock: Clock,
) -> RequestOutcome:
    """Run one attempt for slot ``index`` and classify how it ended."""
    content = build_body(config, index)
    headers = request_headers(config)
    dispatched_at = clock()
    try:
        async with client.stream("POST", config.url, content=content, headers=headers) as response:
            if not response.is_success:
                await response.aread()
                return RequestOutcome(
                    index=index,
                    dispatched_at=dispatched_at,
                    completed_at=clock(),
                    state=OutcomeState.HTTP_ERROR,
                    status_code=response.status_code,
                    bytes_received=len(response.content),
                    text=response.text if config.print_response else None,
                )
            if config.stream:
                result = await consumer.consume(response)
            else:
                result = await consumer.read_all(response)
            return RequestOutcome(
                index=index,
                dispatched_at=dispatched_at,
                completed_at=result.completed_at,
                state=OutcomeState.STREAM_ERROR if result.error else OutcomeState.SUCCESS,
                status_code=response.status_code,
                error_kind=result.error,
                first_byte_at=result.first_byte_at,
                bytes_received=result.bytes_received,
                frames_received=result.frames_received,
                text=result.text,
            )
    except httpx.HTTPError as exc:
        kind = classify_transport_error(exc)
        logger.debug("Attempt %d failed with %s: %s", index, kind.value, exc)
    return RequestOutcome(
        index=index,
        dispatched_at=dispatched_at,
        completed_at=clock(),
        state=OutcomeState.TRANSPORT_ERROR,
        error_kind=kind,
    )
