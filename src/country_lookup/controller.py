from __future__ import annotations

"""Retrieval controller: owns the country list, its filtered view and load state.

All state lives on a single asyncio event loop. The loop that first calls
``load()`` or ``set_search_text()`` becomes the owner; calls from any other
running loop are rejected. Suspension happens only while fetching, during
retry backoff, and while a debounce timer is pending, so every state change is
applied in one synchronous step.
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import hashlib
import logging
import os
import random
from typing import Any, Generic, TypeVar

from country_lookup.config import DEFAULT_CONFIG, RuntimeConfig
from country_lookup.models import Record
from country_lookup.retry import RetryExhaustedError, RetryPolicy, Sleep, fetch_with_retry
from country_lookup.sources.base import FallbackSource, RemoteSource
from country_lookup.sources.fallback import FALLBACK_SENTINEL
from country_lookup.tracing import traceable


LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ORIGIN_LIVE = "live"
ORIGIN_FALLBACK = "fallback"


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LoadStatus:
    state: LoadState
    message: str | None = None

    @classmethod
    def idle(cls) -> LoadStatus:
        return cls(LoadState.IDLE)

    @classmethod
    def loading(cls) -> LoadStatus:
        return cls(LoadState.LOADING)

    @classmethod
    def loaded(cls) -> LoadStatus:
        return cls(LoadState.LOADED)

    @classmethod
    def error(cls, message: str) -> LoadStatus:
        return cls(LoadState.ERROR, message)

    def __str__(self) -> str:
        return f"{self.state.value}({self.message})" if self.message else self.state.value


@dataclass(frozen=True, slots=True)
class ViewSnapshot:
    """Read-only copy of controller state handed to subscribers."""

    records: tuple[Record, ...]
    filtered: tuple[Record, ...]
    search_text: str
    status: LoadStatus
    origin: str | None
    picked: Record | None = None

    def to_dict(self) -> dict:
        return {
            "records": [r.to_dict() for r in self.records],
            "filtered": [r.to_dict() for r in self.filtered],
            "search_text": self.search_text,
            "status": self.status.state.value,
            "status_message": self.status.message,
            "origin": self.origin,
            "picked": self.picked.to_dict() if self.picked else None,
        }


class Signal(Generic[T]):
    """Notification channel with at most one subscriber.

    Connecting a new callback replaces the previous one.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._callback: Callable[[T], Any] | None = None

    @property
    def connected(self) -> bool:
        return self._callback is not None

    def connect(self, callback: Callable[[T], Any]) -> None:
        self._callback = callback

    def disconnect(self) -> None:
        self._callback = None

    def emit(self, value: T) -> None:
        if self._callback is not None:
            self._callback(value)


def _build_pick_rng() -> random.Random:
    seed_override = os.getenv("COUNTRY_LOOKUP_RANDOM_SEED")
    if seed_override:
        digest = hashlib.sha256(f"{seed_override}:pick".encode("utf-8")).hexdigest()[:16]
        return random.Random(int(digest, 16))
    return random.SystemRandom()


class RetrievalController:
    """Fetch-with-retry, fallback, debounced search and random pick over one record set."""

    def __init__(
        self,
        remote: RemoteSource,
        fallback: FallbackSource,
        config: RuntimeConfig = DEFAULT_CONFIG,
        *,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._remote = remote
        self._fallback = fallback
        self._policy = RetryPolicy.from_config(config)
        self._debounce_seconds = max(0.0, config.search_debounce_seconds)
        self._rng = rng or _build_pick_rng()
        self._sleep = sleep

        self._records: tuple[Record, ...] = ()
        self._filtered: tuple[Record, ...] = ()
        self._search_text = ""
        self._status = LoadStatus.idle()
        self._origin: str | None = None
        self._picked: Record | None = None

        self._generation = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None

        self.updated: Signal[ViewSnapshot] = Signal("updated")
        self.failed: Signal[str] = Signal("failed")
        self.status_changed: Signal[LoadStatus] = Signal("status_changed")

    @property
    def records(self) -> tuple[Record, ...]:
        return self._records

    @property
    def filtered(self) -> tuple[Record, ...]:
        return self._filtered

    @property
    def status(self) -> LoadStatus:
        return self._status

    @property
    def origin(self) -> str | None:
        return self._origin

    @property
    def search_text(self) -> str:
        return self._search_text

    @search_text.setter
    def search_text(self, value: str) -> None:
        self.set_search_text(value)

    @property
    def has_pending_search(self) -> bool:
        return self._debounce_handle is not None

    def snapshot(self) -> ViewSnapshot:
        return ViewSnapshot(
            records=self._records,
            filtered=self._filtered,
            search_text=self._search_text,
            status=self._status,
            origin=self._origin,
            picked=self._picked,
        )

    def _owner_loop(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self._loop is None or self._loop.is_closed():
            self._loop = loop
        elif self._loop is not loop:
            raise RuntimeError("RetrievalController is bound to a different event loop")
        return loop

    def _set_status(self, status: LoadStatus) -> None:
        self._status = status
        self.status_changed.emit(status)

    def _search(self, query: str) -> tuple[Record, ...]:
        if not query:
            return self._records
        return tuple(r for r in self._records if r.matches(query))

    def _commit(self, records: Sequence[Record], origin: str) -> None:
        self._records = tuple(records)
        self._origin = origin
        self._picked = None
        self._filtered = self._search(self._search_text)

    @traceable(name="controller_load", run_type="chain")
    async def load(self) -> ViewSnapshot | None:
        """Fetch the list, falling back to bundled data once retries are exhausted.

        A newer call supersedes this one: results of a superseded call are
        discarded and ``None`` is returned.
        """
        self._owner_loop()
        self._generation += 1
        generation = self._generation
        self._set_status(LoadStatus.loading())

        try:
            records = await fetch_with_retry(self._remote, self._policy, sleep=self._sleep)
        except RetryExhaustedError as exc:
            if generation != self._generation:
                LOGGER.info("Discarding failure from superseded load (generation %d)", generation)
                return None
            return self._apply_fallback(generation, f"Fetch failed: {exc.description}")

        if generation != self._generation:
            LOGGER.info("Discarding result from superseded load (generation %d)", generation)
            return None

        self._commit(records, ORIGIN_LIVE)
        self._set_status(LoadStatus.loaded())
        LOGGER.info("Loaded %d live records", len(self._records))
        snapshot = self.snapshot()
        self.updated.emit(snapshot)
        return snapshot

    def _apply_fallback(self, generation: int, message: str) -> ViewSnapshot | None:
        self._set_status(LoadStatus.error(message))
        try:
            self.failed.emit(message)
        finally:
            # Fallback data is stored even when the error subscriber raises.
            if generation == self._generation:
                records = list(self._fallback.load_fallback()) or [FALLBACK_SENTINEL]
                self._commit(records, ORIGIN_FALLBACK)
                LOGGER.warning("Using %d fallback records after: %s", len(self._records), message)
        if generation != self._generation:
            # A subscriber started a newer load from the error callback.
            return None

        snapshot = self.snapshot()
        self.updated.emit(snapshot)
        return snapshot

    def set_search_text(self, text: str) -> None:
        """Record the query and (re)start the debounce timer.

        Any pending filter is cancelled before it runs, so a burst of edits
        produces a single filter pass once the quiet period elapses.
        """
        loop = self._owner_loop()
        self._search_text = text or ""
        self._cancel_pending_search()
        self._debounce_handle = loop.call_later(self._debounce_seconds, self._run_search, self._search_text)
        LOGGER.debug("Search scheduled in %.2fs for %r", self._debounce_seconds, self._search_text)

    def _cancel_pending_search(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _run_search(self, query: str) -> None:
        self._debounce_handle = None
        self._picked = None
        self._filtered = self._search(query)
        self.updated.emit(self.snapshot())

    def flush_search(self) -> bool:
        """Run a pending debounced filter now. Returns False when none was pending."""
        if self._debounce_handle is None:
            return False
        self._cancel_pending_search()
        self._run_search(self._search_text)
        return True

    def pick_random(self) -> Record | None:
        if not self._records:
            return None
        choice = self._rng.choice(self._records)
        self._picked = choice
        self._filtered = (choice,)
        self.updated.emit(self.snapshot())
        return choice

    def reset_filter(self) -> None:
        """Drop any random pick and reapply the current search text."""
        self._cancel_pending_search()
        self._picked = None
        self._filtered = self._search(self._search_text)
        self.updated.emit(self.snapshot())

    def close(self) -> None:
        self._cancel_pending_search()
