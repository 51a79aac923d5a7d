"""HTTP utilities providing retry/backoff semantics for idempotent requests."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


class RetryConfig:
    def __init__(self, *, attempts: int = 2, backoff_seconds: float = 0.5) -> None:
        self.attempts = max(1, attempts)
        self.backoff_seconds = backoff_seconds


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` again on transport failures only.

    HTTP error statuses are returned to the caller untouched so it can read the
    error body; only connection problems and timeouts are retried.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None

    while attempt < config.attempts:
        try:
            return await func(*args, **kwargs)
        except httpx.TransportError as exc:
            last_exception = exc
            attempt += 1
            if attempt >= config.attempts:
                break
            logger.debug("Retrying request after transport error", extra={"attempt": attempt})
            await asyncio.sleep(config.backoff_seconds * attempt)

    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RetryConfig", "request_with_retry"]
