from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any

from location_mcp.core.errors import GeolocationError
from location_mcp.core.models import (
    AddressDetails,
    Candidate,
    GeolocationFailure,
    PositionOptions,
    SavedLocation,
    SearchStatus,
    SelectionPayload,
)
from location_mcp.core.text import has_house_number_match, parse_query
from location_mcp.infra.geolocation import PositionSource
from location_mcp.infra.providers.base import GeocodingProvider

log = logging.getLogger(__name__)

GEOLOCATION_MESSAGES = {
    "unsupported": "Tu navegador no permite geolocalización.",
    "denied": "No diste permiso para usar tu ubicación. Escribe la dirección manualmente.",
    "unavailable": "No se pudo obtener tu ubicación.",
}


def _payload(lat: float, lng: float, details: AddressDetails) -> SelectionPayload:
    return SelectionPayload(
        lat=lat,
        lng=lng,
        address=details.address,
        city=details.city,
        state=details.state,
        postcode=details.postcode,
    )


class SelectionService:
    """
    Turns every way of picking a location into a SelectionPayload.

    One instance per picker control: the single-flight flags for the search and
    geolocation actions live here.
    """

    def __init__(
        self,
        *,
        primary: GeocodingProvider | None,
        secondary: GeocodingProvider,
        position_source: PositionSource | None = None,
        position_options: PositionOptions | None = None,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._position_source = position_source
        self._position_options = position_options or PositionOptions()

        self.searching = False
        self.locating = False

    def select_from_suggestion(self, candidate: Candidate) -> SelectionPayload:
        return SelectionPayload(
            lat=candidate.lat,
            lng=candidate.lng,
            address=candidate.extra.address or candidate.label,
            city=candidate.extra.city,
            state=candidate.extra.state,
            postcode=candidate.extra.postcode,
        )

    def select_from_saved_location(self, entry: SavedLocation | dict[str, Any]) -> SelectionPayload:
        """
        Remap a location the application already knows about. No provider call.
        Raises ValueError for an entry without usable coordinates.
        """
        loc = entry if isinstance(entry, SavedLocation) else SavedLocation.model_validate(entry)
        if loc.latitude is None or loc.longitude is None:
            raise ValueError(f"Saved location {loc.id or loc.name!r} has no coordinates")
        return SelectionPayload(
            lat=loc.latitude,
            lng=loc.longitude,
            address=loc.address,
            city=loc.city or loc.commune,
            state=loc.region,
            postcode=loc.postal_code,
            community_id=loc.id,
        )

    async def reverse_lookup(self, lat: float, lng: float) -> AddressDetails:
        """Primary first; Secondary only when Primary found no address."""
        if self._primary is not None:
            details = await self._primary.reverse_geocode(lat, lng)
            if details.address:
                return details
        return await self._secondary.reverse_geocode(lat, lng)

    async def select_from_map_click(self, lat: float, lng: float) -> SelectionPayload:
        details = await self.reverse_lookup(lat, lng)
        return _payload(lat, lng, details)

    async def select_from_geolocation(self) -> SelectionPayload | GeolocationFailure | None:
        """
        Use the device position. Returns None while a previous request is still
        pending, a GeolocationFailure when no fix can be had.
        """
        if self.locating:
            return None
        if self._position_source is None:
            return GeolocationFailure("unsupported", GEOLOCATION_MESSAGES["unsupported"])

        self.locating = True
        try:
            timeout = self._position_options.timeout_ms / 1000
            try:
                position = await asyncio.wait_for(
                    self._position_source.get_current_position(self._position_options),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                return GeolocationFailure("unavailable", GEOLOCATION_MESSAGES["unavailable"])
            except GeolocationError as e:
                reason = e.reason if e.reason in GEOLOCATION_MESSAGES else "unavailable"
                log.info("Geolocation failed: %s", e)
                return GeolocationFailure(reason, GEOLOCATION_MESSAGES[reason])
            except Exception:
                log.exception("Position source failed")
                return GeolocationFailure("unavailable", GEOLOCATION_MESSAGES["unavailable"])

            return await self.select_from_map_click(position.latitude, position.longitude)
        finally:
            self.locating = False

    async def perform_immediate_search(self, text: str) -> SelectionPayload | SearchStatus | None:
        """
        The explicit "search" action: one best result, one cross-fallback.

        Returns None for blank input or while a previous search is pending.
        """
        query = parse_query(text)
        if not query.trimmed or self.searching:
            return None

        self.searching = True
        try:
            if self._primary is not None and not query.has_house_number:
                order = [self._primary, self._secondary]
            else:
                order = [self._secondary, self._primary]

            best: Candidate | None = None
            for provider in order:
                if provider is None:
                    continue
                results = await provider.forward_geocode(query.trimmed, 1)
                if results:
                    best = results[0]
                    break

            if best is None:
                return "no-results"

            payload = self.select_from_suggestion(best)
            if query.house_number and not (
                has_house_number_match(best.label, query.house_number)
                or has_house_number_match(best.extra.address, query.house_number)
            ):
                payload = replace(payload, address=query.raw.strip())
            return payload
        except Exception:
            log.exception("Immediate search failed for %r", query.trimmed)
            return "error"
        finally:
            self.searching = False
