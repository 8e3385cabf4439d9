"""HTTP retry for feed requests.

Only transient failures are retried: connection/timeouts and the status codes
in ``RETRYABLE_STATUS_CODES``. A 4xx (bad access code, unknown vessel name)
fails immediately since retrying cannot fix it.

Usage:
    from ferrywatch.utils.http_retry import retry_request

    resp = retry_request(client.get, url, params={"apiaccesscode": code})
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

_RETRYABLE_EXCEPTIONS = (httpx.ConnectError, httpx.TimeoutException, OSError)

# Location polling runs every few seconds, so keep the default backoff short.
DEFAULT_DELAYS: tuple[float, ...] = (1, 3, 8)


def retry_request(
    request_fn: Callable[..., httpx.Response],
    *args: Any,
    delays: Sequence[float] | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Call ``request_fn(*args, **kwargs)`` and retry transient failures.

    Args:
        request_fn: Bound client method such as ``client.get``.
        delays: Sleep before each retry, in seconds. ``len(delays)`` is the
            number of retries after the first attempt.

    Returns:
        The first response with status < 400.

    Raises:
        httpx.HTTPStatusError: Non-retryable status, or retryable status on
            the last attempt.
        httpx.TransportError: Network failure on the last attempt.
    """
    delays = tuple(DEFAULT_DELAYS if delays is None else delays)
    attempts = len(delays) + 1

    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1
        try:
            resp = request_fn(*args, **kwargs)
        except _RETRYABLE_EXCEPTIONS as exc:
            if last_attempt:
                raise
            delay = delays[attempt]
            logger.warning(
                "%s for %s, retrying in %.1fs (attempt %d/%d)",
                type(exc).__name__, _url_for_log(args), delay, attempt + 1, attempts,
            )
            time.sleep(delay)
            continue

        if resp.status_code < 400:
            return resp
        if resp.status_code not in RETRYABLE_STATUS_CODES or last_attempt:
            resp.raise_for_status()

        delay = _retry_after(resp, delays[attempt])
        logger.warning(
            "HTTP %d from %s, retrying in %.1fs (attempt %d/%d)",
            resp.status_code, _url_for_log(args), delay, attempt + 1, attempts,
        )
        time.sleep(delay)

    raise RuntimeError("retry_request exhausted retries without result")


def _retry_after(resp: httpx.Response, default: float) -> float:
    """Honour a numeric Retry-After header on 429, never waiting less than default."""
    if resp.status_code != 429:
        return default
    header = resp.headers.get("Retry-After")
    if not header:
        return default
    try:
        return max(default, float(header))
    except ValueError:
        return default


def _url_for_log(args: tuple) -> str:
    if args and isinstance(args[0], (str, httpx.URL)):
        return str(args[0]).split("?", 1)[0][:120]
    return "<unknown>"
