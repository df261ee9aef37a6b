"""Shared utilities for talking to external collaborators and joining their reads."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, MutableMapping

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential

DEFAULT_TIMEOUT_SECONDS = 10.0
_DEFAULT_WAIT = wait_exponential(min=0.25, max=2)
_DEFAULT_STOP = stop_after_attempt(3)

logger = logging.getLogger(__name__)


Headers = Mapping[str, str] | None
Params = Mapping[str, Any] | None
Data = MutableMapping[str, Any] | bytes | str | None
JsonData = Any

Operation = Callable[[], Awaitable[Any]]
Fallback = Callable[[str, BaseException], Any]


class JsonRpcError(RuntimeError):
    """Raised when a JSON-RPC endpoint answers with an ``error`` member."""

    def __init__(self, method: str, error: Any) -> None:
        self.method = method
        self.error = error
        message = error.get("message") if isinstance(error, Mapping) else error
        super().__init__(f"JSON-RPC call {method} failed: {message}")


@retry(wait=_DEFAULT_WAIT, stop=_DEFAULT_STOP, reraise=True)
async def fetch_json(
    url: str,
    *,
    headers: Headers = None,
    params: Params = None,
    method: str = "GET",
    data: Data = None,
    json: JsonData = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    """Execute an HTTP request and return the decoded JSON payload.

    Retries with exponential backoff when transient failures occur. Callers that
    need a hard upper bound wrap the call in ``asyncio.wait_for`` (see
    ``bounded_fan_out``); the retry loop is cancelled with it.
    """

    request_method = method.upper()
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.request(
            request_method,
            url,
            headers=headers,
            params=params,
            data=data,
            json=json,
        )

    response.raise_for_status()
    return response.json()


async def rpc_call(
    url: str,
    method: str,
    params: list[Any] | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    """Issue a single JSON-RPC 2.0 request and return its ``result`` member.

    Not retried: a failing ledger read is substituted locally instead.
    """

    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []}
    if client is not None:
        response = await client.post(url, json=payload, timeout=timeout)
    else:
        async with httpx.AsyncClient(timeout=timeout) as owned:
            response = await owned.post(url, json=payload)

    response.raise_for_status()
    body = response.json()
    if not isinstance(body, Mapping):
        raise JsonRpcError(method, "malformed response body")
    if body.get("error") is not None:
        raise JsonRpcError(method, body["error"])
    return body.get("result")


@dataclass
class FanOutResult:
    """Outcome of ``bounded_fan_out``: one value per key plus the keys that fell back."""

    values: dict[str, Any] = field(default_factory=dict)
    failures: dict[str, BaseException] = field(default_factory=dict)

    @property
    def failed_keys(self) -> list[str]:
        return sorted(self.failures)

    @property
    def complete(self) -> bool:
        return not self.failures


async def bounded_fan_out(
    operations: Mapping[str, Operation],
    timeout: float,
    fallback: Fallback,
) -> FanOutResult:
    """Run every operation concurrently, each raced against ``timeout`` seconds.

    The reads are joined with all-settled semantics: a slow or broken operation
    never blocks or discards the others. Each failed key is replaced by
    ``fallback(key, exc)`` and recorded in ``FanOutResult.failures``.
    """

    keys = list(operations)
    outcomes = await asyncio.gather(
        *(asyncio.wait_for(operations[key](), timeout) for key in keys),
        return_exceptions=True,
    )

    result = FanOutResult()
    for key, outcome in zip(keys, outcomes):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.TimeoutError):
                logger.warning("%s did not answer within %.1fs; using fallback.", key, timeout)
            else:
                logger.warning("%s failed (%s); using fallback.", key, outcome)
            result.failures[key] = outcome
            result.values[key] = fallback(key, outcome)
        else:
            result.values[key] = outcome
    return result


__all__ = [
    "fetch_json",
    "rpc_call",
    "bounded_fan_out",
    "FanOutResult",
    "JsonRpcError",
    "DEFAULT_TIMEOUT_SECONDS",
]
