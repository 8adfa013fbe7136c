from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from location_mcp.core.models import Candidate, Query
from location_mcp.core.text import parse_query
from location_mcp.services.suggestion_service import SuggestionService

log = logging.getLogger(__name__)

DEBOUNCE_MS = 350


class DebounceScheduler:
    """
    Trailing-edge debounce in front of SuggestionService.

    Every accepted keystroke bumps ``current_token``; a finished fetch is
    applied only if its token is still current. Superseded fetches are left to
    finish and their results are dropped.
    """

    def __init__(
        self,
        suggestions: SuggestionService,
        *,
        delay_ms: int = DEBOUNCE_MS,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._suggestions = suggestions
        self._delay = delay_ms / 1000
        self._on_change = on_change

        self.current_token = 0
        self.results: list[Candidate] = []
        self.loading = False
        self.highlighted_index: int | None = None

        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def on_query_change(self, text: str) -> Query:
        query = parse_query(text)
        self._cancel_timer()

        if len(query.trimmed) < self._suggestions.min_chars:
            self.results = []
            self.loading = False
            self._notify()
            return query

        self.current_token += 1
        token = self.current_token
        self.loading = True
        self._timer = asyncio.get_running_loop().create_task(self._fire_later(query, token))
        self._notify()
        return query

    def cancel(self) -> None:
        """Drop the pending timer and hide the list. In-flight fetches become stale."""
        self._cancel_timer()
        self.current_token += 1
        self.results = []
        self.loading = False
        self.highlighted_index = None
        self._notify()

    async def wait_idle(self) -> None:
        """Wait for the pending timer and every in-flight fetch to settle."""
        while self.pending or self._inflight:
            waiters = [t for t in (self._timer, *self._inflight) if t is not None and not t.done()]
            if not waiters:
                break
            await asyncio.gather(*waiters, return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _fire_later(self, query: Query, token: int) -> None:
        await asyncio.sleep(self._delay)
        # hand the fetch its own task so cancelling the timer never cancels network I/O
        task = asyncio.get_running_loop().create_task(self._fetch(query, token))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _fetch(self, query: Query, token: int) -> None:
        try:
            results = await self._suggestions.fetch_suggestions(query)
        except Exception:
            log.exception("Suggestion fetch failed for %r", query.trimmed)
            results = []
        if token != self.current_token:
            log.debug("Dropping stale suggestions for %r (token %d, current %d)", query.trimmed, token, self.current_token)
            return
        self.results = results
        self.loading = False
        self.highlighted_index = None
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
