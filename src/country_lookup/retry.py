from __future__ import annotations

"""Retry policy for remote fetches.

Attempts move through ``attempting(n) -> succeeded | exhausted``. Retryable
failures wait a backoff delay before the next attempt while ``n < max_retries``;
non-retryable failures exhaust immediately. At most ``max_retries + 1`` attempts
are made.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
import logging

from country_lookup.config import RuntimeConfig
from country_lookup.models import Record
from country_lookup.sources.base import RemoteSource
from country_lookup.sources.common import FetchError, TransientFetchError


LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_retries: int = 2
    delay_seconds: float = 0.3
    backoff_multiplier: float = 1.0

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> RetryPolicy:
        return cls(
            max_retries=max(0, config.max_retries),
            delay_seconds=max(0.0, config.retry_delay_seconds),
            backoff_multiplier=max(1.0, config.retry_backoff_multiplier),
        )

    def delay_for(self, attempt: int) -> float:
        return self.delay_seconds * (self.backoff_multiplier**attempt)

    def should_retry(self, error: FetchError, attempt: int) -> bool:
        return error.retryable and attempt < self.max_retries


class RetryExhaustedError(RuntimeError):
    def __init__(self, last_error: FetchError, attempts: int) -> None:
        super().__init__(f"Fetch failed after {attempts} attempt(s): {last_error.description}")
        self.last_error = last_error
        self.attempts = attempts

    @property
    def description(self) -> str:
        return self.last_error.description


def _as_fetch_error(exc: Exception) -> FetchError:
    if isinstance(exc, FetchError):
        return exc
    return TransientFetchError(f"Unexpected fetch failure: {exc}")


async def fetch_with_retry(
    source: RemoteSource,
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
) -> Sequence[Record]:
    """Run ``source.fetch`` in a worker thread under ``policy``.

    Returns the decoded records, or raises RetryExhaustedError.
    """
    total = policy.max_retries + 1
    for attempt in range(total):
        try:
            return await asyncio.to_thread(source.fetch)
        except Exception as exc:  # noqa: BLE001
            error = _as_fetch_error(exc)
            if not policy.should_retry(error, attempt):
                LOGGER.warning("Fetch exhausted on attempt %d/%d: %s", attempt + 1, total, error.description)
                raise RetryExhaustedError(error, attempt + 1) from exc
            delay = policy.delay_for(attempt)
            LOGGER.warning(
                "Fetch attempt %d/%d failed (%s); retrying in %.2fs",
                attempt + 1,
                total,
                error.description,
                delay,
            )
            await sleep(delay)
    raise RuntimeError("unreachable")
