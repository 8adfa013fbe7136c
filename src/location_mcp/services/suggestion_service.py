from __future__ import annotations

import asyncio
import logging

from location_mcp.core.models import AddressDetails, Candidate, Query
from location_mcp.core.text import has_house_number_match
from location_mcp.infra.providers.base import GeocodingProvider

log = logging.getLogger(__name__)

MIN_CHARS = 3
LIMIT = 5


def dedup_key(candidate: Candidate) -> tuple[float, float, str]:
    return (round(candidate.lat, 6), round(candidate.lng, 6), candidate.label.lower())


def dedupe(candidates: list[Candidate]) -> list[Candidate]:
    """Keep the first candidate for every (lat, lng, label) key."""
    seen: set[tuple[float, float, str]] = set()
    out: list[Candidate] = []
    for c in candidates:
        key = dedup_key(c)
        if key in seen:
            continue
        seen.add(key)
        out.append(c)
    return out


def typed_address_fallback(query: Query, anchor: Candidate) -> Candidate:
    """
    Candidate built from the typed text when no provider result carries the
    requested house number. Borrows city/state context and coordinates from
    ``anchor``.
    """
    typed = query.raw.strip()
    context = ", ".join(p for p in (anchor.extra.city, anchor.extra.state) if p)
    label = f"{typed}, {context}" if context else typed
    return Candidate(
        id=f"typed:{anchor.id}",
        label=label,
        lat=anchor.lat,
        lng=anchor.lng,
        provider=anchor.provider,
        extra=AddressDetails(
            address=typed,
            city=anchor.extra.city,
            state=anchor.extra.state,
            postcode=anchor.extra.postcode,
        ),
    )


class SuggestionService:
    def __init__(
        self,
        *,
        primary: GeocodingProvider | None,
        secondary: GeocodingProvider,
        min_chars: int = MIN_CHARS,
        limit: int = LIMIT,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._min_chars = min_chars
        self._limit = limit

    @property
    def min_chars(self) -> int:
        return self._min_chars

    async def fetch_suggestions(self, query: Query) -> list[Candidate]:
        """
        Typeahead suggestions for ``query``: both providers, merged, deduplicated
        and (for house-numbered queries) filtered to results carrying the number.

        Returns at most ``limit`` candidates. Never raises.
        """
        if len(query.trimmed) < self._min_chars:
            return []

        secondary_task = self._secondary.forward_geocode(query.trimmed, self._limit)
        if self._primary is not None:
            primary_results, secondary_results = await asyncio.gather(
                self._primary.forward_geocode(query.trimmed, self._limit),
                secondary_task,
            )
        else:
            primary_results, secondary_results = [], await secondary_task

        # The free provider resolves numbered addresses more literally; the
        # keyed one is better at coarse place names.
        if query.has_house_number:
            merged = secondary_results + primary_results
        else:
            merged = primary_results + secondary_results

        unique = dedupe(merged)
        log.debug(
            "Suggestions for %r: primary=%d secondary=%d unique=%d",
            query.trimmed,
            len(primary_results),
            len(secondary_results),
            len(unique),
        )

        if not query.has_house_number:
            return unique[: self._limit]

        matching = [
            c
            for c in unique
            if has_house_number_match(c.label, query.house_number)
            or has_house_number_match(c.extra.address, query.house_number)
        ]
        if matching:
            return matching[: self._limit]

        if not unique:
            return []
        return [typed_address_fallback(query, unique[0]), *unique][: self._limit]
