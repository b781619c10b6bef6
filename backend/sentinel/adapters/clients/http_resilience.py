# sentinel/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx

from ...config import settings

log = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


@dataclass
class _Circuit:
    fails: int = 0
    opened_at: float | None = None
    last_call: float = 0.0


# one breaker per upstream host so a dead provider does not starve the others
_CIRCUITS: dict[str, _Circuit] = {}
_LOCKS: dict[str, asyncio.Lock] = {}


def _host(url: str) -> str:
    return urlsplit(url).netloc or url


def _circuit(host: str) -> _Circuit:
    return _CIRCUITS.setdefault(host, _Circuit())


def circuit_is_open(url: str, now: float | None = None) -> bool:
    c = _circuit(_host(url))
    if c.opened_at is None:
        return False
    now = time.monotonic() if now is None else now
    if (now - c.opened_at) >= float(settings.HTTP_CIRCUIT_RESET_S):
        # half-open: let the next call probe the upstream
        c.opened_at = None
        c.fails = 0
        return False
    return True


def _record(host: str, ok: bool) -> None:
    c = _circuit(host)
    if ok:
        c.fails = 0
        c.opened_at = None
        return
    c.fails += 1
    if c.fails >= int(settings.HTTP_CIRCUIT_FAIL_THRESHOLD):
        c.opened_at = time.monotonic()
        log.warning("circuit opened for %s after %d failures", host, c.fails)


async def _pace(host: str) -> None:
    """Per-host minimum gap between calls."""
    rps = float(settings.HTTP_RATE_LIMIT_RPS)
    if rps <= 0:
        return
    lock = _LOCKS.setdefault(host, asyncio.Lock())
    async with lock:
        c = _circuit(host)
        wait = (c.last_call + 1.0 / rps) - time.monotonic()
        if wait > 0:
            await asyncio.sleep(wait)
        c.last_call = time.monotonic()


async def resilient_request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any | None = None,
    timeout_s: float | None = None,
) -> httpx.Response:
    """
    Bounded outbound call: every attempt has a timeout, retries back off
    exponentially, and an open circuit fails fast instead of waiting.
    """
    host = _host(url)
    if circuit_is_open(url):
        raise httpx.HTTPError(f"circuit_open: refusing external call to {host}")

    timeout = httpx.Timeout(float(timeout_s or settings.HTTP_TIMEOUT_S))
    max_retries = int(settings.HTTP_MAX_RETRIES)
    backoff = float(settings.HTTP_BACKOFF_BASE_S)

    last_exc: Exception | None = None
    for attempt in range(max_retries + 1):
        await _pace(host)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.request(method, url, headers=headers, params=params, json=json)

            if resp.status_code in RETRYABLE_STATUS:
                raise httpx.HTTPStatusError("retryable_status", request=resp.request, response=resp)

            resp.raise_for_status()
            _record(host, ok=True)
            return resp
        except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError) as e:
            last_exc = e
            _record(host, ok=False)
            if isinstance(e, httpx.HTTPStatusError) and e.response.status_code not in RETRYABLE_STATUS:
                break
            if attempt >= max_retries:
                break
            await asyncio.sleep(min(5.0, backoff * (2**attempt)))

    assert last_exc is not None
    raise last_exc
