from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from location_mcp.core.models import Candidate, GeolocationFailure, SavedLocation, SelectionPayload
from location_mcp.services.debounce import DEBOUNCE_MS, DebounceScheduler
from location_mcp.services.selection_service import SelectionService
from location_mcp.services.suggestion_service import SuggestionService

log = logging.getLogger(__name__)

STATUS_SECONDARY_ONLY = "Búsqueda con OpenStreetMap (sin clave de Mapbox configurada)."


class PickerState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    SUGGESTING = "suggesting"
    SUGGESTED = "suggested"


class LocationPicker:
    """
    One location-picking control: typeahead, map clicks, "use my location",
    "search" and saved-location markers, all ending in ``on_select``.
    """

    def __init__(
        self,
        *,
        suggestions: SuggestionService,
        selection: SelectionService,
        primary_enabled: bool,
        debounce_ms: int = DEBOUNCE_MS,
        on_select: Callable[[SelectionPayload], None] | None = None,
        on_saved_location_select: Callable[[SavedLocation], None] | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._on_change = on_change
        self._scheduler = DebounceScheduler(suggestions, delay_ms=debounce_ms, on_change=self._notify)
        self._selection = selection
        self._on_select = on_select
        self._on_saved_location_select = on_saved_location_select

        self.query = ""
        self.status = "" if primary_enabled else STATUS_SECONDARY_ONLY
        # bumped by every selection action; an async action only emits if still current
        self._selection_token = 0

    # -----------------------
    # Typeahead
    # -----------------------
    @property
    def suggestions(self) -> list[Candidate]:
        return self._scheduler.results

    @property
    def loading(self) -> bool:
        return self._scheduler.loading

    @property
    def highlighted_index(self) -> int | None:
        return self._scheduler.highlighted_index

    @property
    def scheduler(self) -> DebounceScheduler:
        return self._scheduler

    @property
    def state(self) -> PickerState:
        if self._scheduler.pending:
            return PickerState.DEBOUNCING
        if self._scheduler.loading:
            return PickerState.SUGGESTING
        if self._scheduler.results:
            return PickerState.SUGGESTED
        return PickerState.IDLE

    def set_query(self, text: str) -> None:
        self.query = text
        self._scheduler.on_query_change(text)

    def move_highlight(self, step: int) -> int | None:
        """Keyboard up/down: cycle through the visible suggestions."""
        results = self._scheduler.results
        if not results:
            self._scheduler.highlighted_index = None
            return None
        current = self._scheduler.highlighted_index
        if current is None:
            nxt = 0 if step > 0 else len(results) - 1
        else:
            nxt = (current + step) % len(results)
        self._scheduler.highlighted_index = nxt
        self._notify()
        return nxt

    def choose_highlighted(self) -> SelectionPayload | None:
        index = self._scheduler.highlighted_index
        results = self._scheduler.results
        if index is None or not (0 <= index < len(results)):
            return None
        return self.choose(results[index])

    def choose(self, candidate: Candidate) -> SelectionPayload:
        self._selection_token += 1
        payload = self._selection.select_from_suggestion(candidate)
        self.query = candidate.label
        self._scheduler.cancel()
        self.status = "Dirección seleccionada."
        self._emit(payload)
        return payload

    def dismiss(self) -> None:
        """Escape or blur: close the list."""
        self._scheduler.cancel()

    # -----------------------
    # Explicit actions
    # -----------------------
    async def click_map(self, lat: float, lng: float) -> SelectionPayload:
        """
        Resolve a map click. When a newer selection started meanwhile, the
        payload is still returned but not emitted.
        """
        token = self._next_selection_token()
        self.status = "Obteniendo dirección..."
        self._notify()
        payload = await self._selection.select_from_map_click(lat, lng)
        if not self._is_current(token, "map click"):
            return payload
        self.status = "Dirección aproximada encontrada." if payload.address else "Coordenadas seleccionadas."
        self._emit(payload)
        return payload

    async def use_my_location(self) -> SelectionPayload | GeolocationFailure | None:
        if self._selection.locating:
            return None
        token = self._next_selection_token()
        self.status = "Obteniendo ubicación..."
        self._notify()
        result = await self._selection.select_from_geolocation()
        if not self._is_current(token, "geolocation"):
            return result
        if isinstance(result, GeolocationFailure):
            self.status = result.message
            self._notify()
        elif result is not None:
            self.status = (
                "Ubicación actual aplicada."
                if result.address
                else "Ubicación actual aplicada (sin dirección)."
            )
            self._emit(result)
        return result

    async def search(self) -> SelectionPayload | str | None:
        if not self.query.strip() or self._selection.searching:
            return None
        self._scheduler.cancel()
        token = self._next_selection_token()
        self.status = "Buscando dirección..."
        self._notify()
        result = await self._selection.perform_immediate_search(self.query)
        if not self._is_current(token, "search"):
            return result
        if result == "no-results":
            self.status = "No se encontraron resultados."
            self._notify()
        elif result == "error":
            self.status = "Error buscando la dirección."
            self._notify()
        elif isinstance(result, SelectionPayload):
            self.status = "Ubicación encontrada."
            self._emit(result)
        return result

    def choose_saved_location(self, entry: SavedLocation | dict[str, Any]) -> SelectionPayload:
        loc = entry if isinstance(entry, SavedLocation) else SavedLocation.model_validate(entry)
        payload = self._selection.select_from_saved_location(loc)
        self._selection_token += 1
        self.status = f"Ubicación registrada: {loc.name}" if loc.name else "Ubicación registrada seleccionada."
        if self._on_saved_location_select is not None:
            self._on_saved_location_select(loc)
        self._emit(payload)
        return payload

    def _next_selection_token(self) -> int:
        self._selection_token += 1
        return self._selection_token

    def _is_current(self, token: int, action: str) -> bool:
        if token == self._selection_token:
            return True
        log.debug("Dropping stale %s result (token %d, current %d)", action, token, self._selection_token)
        return False

    def _emit(self, payload: SelectionPayload) -> None:
        log.debug("Location selected: %s", payload)
        if self._on_select is not None:
            self._on_select(payload)
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
