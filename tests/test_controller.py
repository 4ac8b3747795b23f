from __future__ import annotations

import asyncio
from dataclasses import replace
import random
import threading
from typing import Any

import pytest

from country_lookup.config import RuntimeConfig
from country_lookup.controller import (
    LoadState,
    LoadStatus,
    RetrievalController,
    Signal,
    ViewSnapshot,
)
from country_lookup.models import Record
from country_lookup.sources import FALLBACK_SENTINEL
from country_lookup.sources.common import DecodeFailureError, HttpStatusError


ALPHA = Record("Alpha", "R", "A1", "FirstCity")
BETA = Record("Beta", "R", "B2", "SecondCity")
FALLBACKLAND = Record("Fallbackland", "FB", "FB", "Fallback")

DEBOUNCE = 0.02
SETTLE = 0.15
TEST_CONFIG = RuntimeConfig(
    endpoint_url="https://example.com/countries.json",
    retry_delay_seconds=0.0,
    search_debounce_seconds=DEBOUNCE,
)


class _StubRemote:
    def __init__(self, records: list[Record]) -> None:
        self.records = records
        self.calls = 0

    def fetch(self) -> list[Record]:
        self.calls += 1
        return list(self.records)


class _FailingRemote:
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    def fetch(self) -> list[Record]:
        self.calls += 1
        raise self.error


class _StubFallback:
    def __init__(self, records: list[Record] | None = None) -> None:
        self.records = [FALLBACKLAND] if records is None else records
        self.calls = 0

    def load_fallback(self) -> list[Record]:
        self.calls += 1
        return list(self.records)


def _controller(remote: Any, fallback: Any | None = None, **kwargs: Any) -> RetrievalController:
    return RetrievalController(remote, fallback or _StubFallback(), TEST_CONFIG, **kwargs)


def test_initial_state_is_idle_and_empty() -> None:
    controller = _controller(_StubRemote([ALPHA]))

    assert controller.status == LoadStatus.idle()
    assert controller.records == ()
    assert controller.filtered == ()
    assert controller.origin is None


def test_successful_load_sets_records_and_filtered_in_order() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]))
    updates: list[ViewSnapshot] = []
    statuses: list[LoadStatus] = []
    controller.updated.connect(updates.append)
    controller.status_changed.connect(statuses.append)

    snapshot = asyncio.run(controller.load())

    assert controller.records == (ALPHA, BETA)
    assert controller.filtered == (ALPHA, BETA)
    assert controller.origin == "live"
    assert [s.state for s in statuses] == [LoadState.LOADING, LoadState.LOADED]
    assert len(updates) == 1
    assert updates[0] == snapshot
    assert isinstance(snapshot.filtered, tuple)


def test_exhausted_load_notifies_error_before_fallback_update() -> None:
    remote = _FailingRemote(HttpStatusError(500))
    fallback = _StubFallback()
    controller = _controller(remote, fallback)
    events: list[str] = []
    controller.status_changed.connect(lambda status: events.append(f"status:{status.state.value}"))
    controller.failed.connect(lambda message: events.append("failed"))
    controller.updated.connect(lambda snapshot: events.append("updated"))

    asyncio.run(controller.load())

    assert remote.calls == 3
    assert fallback.calls == 1
    assert events == ["status:loading", "status:error", "failed", "updated"]
    assert controller.records == (FALLBACKLAND,)
    assert controller.filtered == controller.records
    assert controller.origin == "fallback"
    assert controller.status.state is LoadState.ERROR
    assert "500" in (controller.status.message or "")


def test_error_message_is_human_readable() -> None:
    controller = _controller(_FailingRemote(DecodeFailureError("unexpected token")))
    messages: list[str] = []
    controller.failed.connect(messages.append)

    asyncio.run(controller.load())

    assert messages == ["Fetch failed: Could not decode country list: unexpected token"]


def test_non_retryable_failure_falls_back_after_one_attempt() -> None:
    remote = _FailingRemote(DecodeFailureError("bad"))
    controller = _controller(remote)

    asyncio.run(controller.load())

    assert remote.calls == 1
    assert controller.records == (FALLBACKLAND,)


def test_fallback_is_stored_even_when_error_subscriber_raises() -> None:
    controller = _controller(_FailingRemote(HttpStatusError(500)))
    updates: list[ViewSnapshot] = []

    def broken_subscriber(message: str) -> None:
        raise RuntimeError("subscriber blew up")

    controller.failed.connect(broken_subscriber)
    controller.updated.connect(updates.append)

    with pytest.raises(RuntimeError, match="subscriber blew up"):
        asyncio.run(controller.load())

    assert controller.records == (FALLBACKLAND,)
    assert controller.filtered == (FALLBACKLAND,)
    assert controller.origin == "fallback"
    assert controller.status.state is LoadState.ERROR
    assert updates == []


def test_empty_fallback_still_leaves_one_entry() -> None:
    controller = _controller(_FailingRemote(HttpStatusError(500)), _StubFallback([]))

    asyncio.run(controller.load())

    assert controller.records == (FALLBACK_SENTINEL,)
    assert controller.filtered == (FALLBACK_SENTINEL,)


def test_search_filters_by_name_or_capital_after_debounce() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]))

    async def scenario() -> None:
        await controller.load()
        controller.set_search_text("Second")
        assert controller.filtered == (ALPHA, BETA)
        await asyncio.sleep(SETTLE)
        assert controller.filtered == (BETA,)

        controller.search_text = "alpha"
        await asyncio.sleep(SETTLE)
        assert controller.filtered == (ALPHA,)

        controller.search_text = "CITY"
        await asyncio.sleep(SETTLE)
        assert controller.filtered == (ALPHA, BETA)

        controller.search_text = ""
        await asyncio.sleep(SETTLE)
        assert controller.filtered == (ALPHA, BETA)

    asyncio.run(scenario())


def test_rapid_search_edits_run_a_single_filter_with_last_value() -> None:
    config = replace(TEST_CONFIG, search_debounce_seconds=0.2)
    controller = RetrievalController(_StubRemote([ALPHA, BETA]), _StubFallback(), config)
    updates: list[ViewSnapshot] = []

    async def scenario() -> None:
        await controller.load()
        controller.updated.connect(updates.append)
        for text in ("F", "Fi", "Fir", "Firs", "Sec"):
            controller.set_search_text(text)
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.5)

    asyncio.run(scenario())

    assert len(updates) == 1
    assert updates[0].search_text == "Sec"
    assert updates[0].filtered == (BETA,)


def test_flush_search_runs_pending_filter_immediately() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]))
    updates: list[ViewSnapshot] = []

    async def scenario() -> None:
        await controller.load()
        controller.updated.connect(updates.append)
        assert controller.flush_search() is False
        controller.set_search_text("beta")
        assert controller.has_pending_search
        assert controller.flush_search() is True
        assert controller.filtered == (BETA,)
        await asyncio.sleep(SETTLE)

    asyncio.run(scenario())

    assert len(updates) == 1


def test_set_search_text_requires_running_loop() -> None:
    controller = _controller(_StubRemote([ALPHA]))

    with pytest.raises(RuntimeError):
        controller.set_search_text("x")


def test_pick_random_overrides_filtered_view() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]), rng=random.Random(7))
    asyncio.run(controller.load())
    updates: list[ViewSnapshot] = []
    controller.updated.connect(updates.append)

    picked = controller.pick_random()

    assert picked in (ALPHA, BETA)
    assert controller.filtered == (picked,)
    assert controller.records == (ALPHA, BETA)
    assert len(updates) == 1
    assert updates[0].picked == picked


def test_pick_random_on_empty_set_returns_none_and_keeps_state() -> None:
    controller = _controller(_StubRemote([ALPHA]))
    updates: list[ViewSnapshot] = []
    controller.updated.connect(updates.append)

    assert controller.pick_random() is None
    assert controller.filtered == ()
    assert updates == []


def test_pick_random_is_reproducible_with_seed(monkeypatch: Any) -> None:
    monkeypatch.setenv("COUNTRY_LOOKUP_RANDOM_SEED", "seed-123")
    records = [Record(f"Country{i}", "R", f"C{i}", f"Cap{i}") for i in range(20)]

    picks = []
    for _ in range(2):
        controller = _controller(_StubRemote(records))
        asyncio.run(controller.load())
        picks.append([controller.pick_random() for _ in range(5)])

    assert picks[0] == picks[1]


def test_search_change_clears_random_pick() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]), rng=random.Random(1))

    async def scenario() -> None:
        await controller.load()
        controller.pick_random()
        assert len(controller.filtered) == 1
        controller.set_search_text("")
        await asyncio.sleep(SETTLE)

    asyncio.run(scenario())

    assert controller.filtered == (ALPHA, BETA)
    assert controller.snapshot().picked is None


def test_reset_filter_reapplies_current_search_text() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]), rng=random.Random(3))

    async def scenario() -> None:
        await controller.load()
        controller.set_search_text("first")
        await asyncio.sleep(SETTLE)
        controller.pick_random()

    asyncio.run(scenario())
    controller.reset_filter()

    assert controller.filtered == (ALPHA,)


def test_reset_filter_without_search_restores_full_set() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]), rng=random.Random(3))
    asyncio.run(controller.load())
    controller.pick_random()

    controller.reset_filter()

    assert controller.filtered == (ALPHA, BETA)


def test_reload_preserves_search_text_and_reapplies_it() -> None:
    remote = _StubRemote([ALPHA, BETA])
    controller = _controller(remote)

    async def scenario() -> None:
        await controller.load()
        controller.set_search_text("second")
        await asyncio.sleep(SETTLE)
        remote.records = [BETA, Record("Gamma", "R", "G3", "SecondTown"), ALPHA]
        await controller.load()

    asyncio.run(scenario())

    assert controller.search_text == "second"
    assert controller.records == (BETA, Record("Gamma", "R", "G3", "SecondTown"), ALPHA)
    assert controller.filtered == (BETA, Record("Gamma", "R", "G3", "SecondTown"))


def test_superseded_load_does_not_overwrite_newer_result() -> None:
    old = [Record("Old", "R", "OL", "OldCity")]
    new = [ALPHA, BETA]

    class _GatedRemote:
        def __init__(self) -> None:
            self.calls = 0
            self.started = threading.Event()
            self.release = threading.Event()

        def fetch(self) -> list[Record]:
            self.calls += 1
            if self.calls == 1:
                self.started.set()
                self.release.wait(5)
                return old
            return new

    remote = _GatedRemote()
    controller = _controller(remote)
    updates: list[ViewSnapshot] = []
    controller.updated.connect(updates.append)

    async def scenario() -> tuple[Any, Any]:
        first = asyncio.create_task(controller.load())
        while not remote.started.is_set():
            await asyncio.sleep(0.001)
        second = await controller.load()
        remote.release.set()
        return await first, second

    first_result, second_result = asyncio.run(scenario())

    assert first_result is None
    assert second_result is not None
    assert controller.records == (ALPHA, BETA)
    assert controller.status.state is LoadState.LOADED
    assert len(updates) == 1


def test_superseded_failure_does_not_trigger_fallback() -> None:
    class _GatedFailingRemote:
        def __init__(self) -> None:
            self.calls = 0
            self.started = threading.Event()
            self.release = threading.Event()

        def fetch(self) -> list[Record]:
            self.calls += 1
            if self.calls == 1:
                self.started.set()
                self.release.wait(5)
                raise DecodeFailureError("late failure")
            return [ALPHA]

    remote = _GatedFailingRemote()
    fallback = _StubFallback()
    controller = _controller(remote, fallback)
    failures: list[str] = []
    controller.failed.connect(failures.append)

    async def scenario() -> None:
        first = asyncio.create_task(controller.load())
        while not remote.started.is_set():
            await asyncio.sleep(0.001)
        await controller.load()
        remote.release.set()
        await first

    asyncio.run(scenario())

    assert failures == []
    assert fallback.calls == 0
    assert controller.records == (ALPHA,)


def test_end_to_end_success_then_search() -> None:
    controller = _controller(_StubRemote([ALPHA, BETA]))

    async def scenario() -> None:
        await controller.load()
        assert controller.filtered == (ALPHA, BETA)
        controller.set_search_text("Second")
        await asyncio.sleep(SETTLE)

    asyncio.run(scenario())

    assert controller.filtered == (BETA,)


def test_signal_keeps_only_latest_subscriber() -> None:
    signal: Signal[int] = Signal("demo")
    first: list[int] = []
    second: list[int] = []

    signal.connect(first.append)
    signal.connect(second.append)
    signal.emit(1)
    signal.disconnect()
    signal.emit(2)

    assert first == []
    assert second == [1]
    assert signal.connected is False
