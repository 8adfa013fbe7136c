from __future__ import annotations

import asyncio

import pytest

from fakes import make_candidate
from location_mcp.core.models import Candidate, Provider, Query
from location_mcp.services.debounce import DebounceScheduler


class GatedSuggestions:
    """Fetches that only complete when the test opens their gate."""

    min_chars = 3

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._gates: dict[str, asyncio.Event] = {}

    def gate(self, text: str) -> asyncio.Event:
        return self._gates.setdefault(text, asyncio.Event())

    async def fetch_suggestions(self, query: Query) -> list[Candidate]:
        self.calls.append(query.trimmed)
        await self.gate(query.trimmed).wait()
        return [make_candidate(Provider.SECONDARY, f"{query.trimmed} resultado")]


class InstantSuggestions:
    min_chars = 3

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def fetch_suggestions(self, query: Query) -> list[Candidate]:
        self.calls.append(query.trimmed)
        return [make_candidate(Provider.SECONDARY, f"{query.trimmed} resultado")]


async def _until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.001)


@pytest.mark.asyncio
async def test_stale_completion_is_dropped():
    stub = GatedSuggestions()
    scheduler = DebounceScheduler(stub, delay_ms=0)

    scheduler.on_query_change("Av A")
    assert scheduler.current_token == 1
    await _until(lambda: stub.calls == ["Av A"])

    scheduler.on_query_change("Av B")
    assert scheduler.current_token == 2
    await _until(lambda: stub.calls == ["Av A", "Av B"])

    stub.gate("Av B").set()
    await _until(lambda: not scheduler.loading)
    assert [c.label for c in scheduler.results] == ["Av B resultado"]

    # the older request finishes last and must not overwrite anything
    stub.gate("Av A").set()
    await scheduler.wait_idle()
    assert [c.label for c in scheduler.results] == ["Av B resultado"]
    assert scheduler.loading is False


@pytest.mark.asyncio
async def test_rapid_typing_fires_once_with_latest_text():
    stub = InstantSuggestions()
    scheduler = DebounceScheduler(stub, delay_ms=30)

    for text in ("Las", "Las F", "Las Flo", "Las Flores"):
        scheduler.on_query_change(text)
    assert scheduler.loading is True
    assert scheduler.pending is True

    await scheduler.wait_idle()
    assert stub.calls == ["Las Flores"]
    assert scheduler.current_token == 4
    assert [c.label for c in scheduler.results] == ["Las Flores resultado"]
    assert scheduler.loading is False


@pytest.mark.asyncio
async def test_short_query_clears_synchronously_without_new_token():
    stub = InstantSuggestions()
    scheduler = DebounceScheduler(stub, delay_ms=0)

    scheduler.on_query_change("Parque")
    await scheduler.wait_idle()
    assert scheduler.results

    scheduler.on_query_change("Pa")
    assert scheduler.results == []
    assert scheduler.loading is False
    assert scheduler.pending is False
    assert scheduler.current_token == 1
    assert stub.calls == ["Parque"]


@pytest.mark.asyncio
async def test_short_query_cancels_pending_timer():
    stub = InstantSuggestions()
    scheduler = DebounceScheduler(stub, delay_ms=20)

    scheduler.on_query_change("Parque")
    scheduler.on_query_change("P")
    await scheduler.wait_idle()
    await asyncio.sleep(0.05)
    assert stub.calls == []
    assert scheduler.results == []


@pytest.mark.asyncio
async def test_applied_result_resets_highlight():
    stub = InstantSuggestions()
    scheduler = DebounceScheduler(stub, delay_ms=0)
    scheduler.highlighted_index = 2

    scheduler.on_query_change("Parque")
    await scheduler.wait_idle()
    assert scheduler.highlighted_index is None


@pytest.mark.asyncio
async def test_cancel_makes_in_flight_result_stale():
    stub = GatedSuggestions()
    scheduler = DebounceScheduler(stub, delay_ms=0)

    scheduler.on_query_change("Parque")
    await _until(lambda: stub.calls == ["Parque"])
    scheduler.cancel()

    stub.gate("Parque").set()
    await scheduler.wait_idle()
    assert scheduler.results == []
    assert scheduler.loading is False


@pytest.mark.asyncio
async def test_on_change_is_called_for_visible_updates():
    stub = InstantSuggestions()
    changes: list[tuple[bool, int]] = []

    def record() -> None:
        changes.append((scheduler.loading, len(scheduler.results)))

    scheduler = DebounceScheduler(stub, delay_ms=0, on_change=record)

    scheduler.on_query_change("Parque")
    await scheduler.wait_idle()
    assert changes == [(True, 0), (False, 1)]


class BrokenSuggestions:
    min_chars = 3

    async def fetch_suggestions(self, query: Query) -> list[Candidate]:
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_failed_fetch_clears_loading():
    scheduler = DebounceScheduler(BrokenSuggestions(), delay_ms=0)
    scheduler.results = [make_candidate(Provider.SECONDARY, "Parque anterior")]

    scheduler.on_query_change("Parque")
    assert scheduler.loading is True
    await scheduler.wait_idle()

    assert scheduler.loading is False
    assert scheduler.results == []
