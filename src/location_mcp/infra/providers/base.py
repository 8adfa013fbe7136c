"""
Common contract for the geocoding providers.

Every provider is a pure I/O boundary: transport failures, non-success
statuses and malformed payloads are logged and turned into an empty result
here, so the services above only ever see "data" or "no data".
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any

from location_mcp.core.errors import LocationError
from location_mcp.core.models import AddressDetails, Candidate, Provider
from location_mcp.infra.cache import CandidateCache
from location_mcp.infra.http import HttpClient

log = logging.getLogger(__name__)


def to_float(v: Any) -> float | None:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def pick_str(*values: Any) -> str:
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return ""


def candidate_id(provider: Provider, external_id: Any, lat: float, lng: float, index: int) -> str:
    ext = pick_str(external_id)
    if ext:
        return f"{provider.value}:{ext}"
    return f"{provider.value}:{lat:.5f},{lng:.5f}:{index}"


class GeocodingProvider(ABC):
    provider: Provider

    def __init__(self, *, http: HttpClient, cache: CandidateCache | None = None) -> None:
        self._http = http
        self._cache = cache

    @property
    def name(self) -> str:
        return self.provider.value

    async def forward_geocode(self, query: str, limit: int) -> list[Candidate]:
        """
        Text query -> candidates, at most ``limit`` of them.

        Never raises; any failure yields an empty list.
        """
        query = (query or "").strip()
        if not query or limit <= 0:
            return []

        cache_key = CandidateCache.key(self.name, query, limit)
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                log.debug("Cache hit for %s query: %s", self.name, query)
                return cached

        try:
            payload = await self._forward_request(query, limit)
            candidates = self._parse_forward(payload)
        except (LocationError, KeyError, TypeError, ValueError) as e:
            log.warning("%s forward geocode failed for %r: %s", self.name, query, e)
            return []

        candidates = candidates[:limit]
        if self._cache is not None:
            self._cache.set(cache_key, candidates)
        return candidates

    async def reverse_geocode(self, lat: float, lng: float) -> AddressDetails:
        """Coordinates -> address fields. Never raises; failure yields empty fields."""
        try:
            payload = await self._reverse_request(lat, lng)
            return self._parse_reverse(payload)
        except (LocationError, KeyError, TypeError, ValueError) as e:
            log.warning("%s reverse geocode failed for (%s, %s): %s", self.name, lat, lng, e)
            return AddressDetails()

    def _make_candidate(
        self,
        *,
        external_id: Any,
        label: str,
        lat: float | None,
        lng: float | None,
        extra: AddressDetails,
        index: int,
    ) -> Candidate | None:
        if lat is None or lng is None or not label:
            return None
        return Candidate(
            id=candidate_id(self.provider, external_id, lat, lng, index),
            label=label,
            lat=lat,
            lng=lng,
            provider=self.provider,
            extra=extra,
        )

    @abstractmethod
    async def _forward_request(self, query: str, limit: int) -> Any:
        ...

    @abstractmethod
    async def _reverse_request(self, lat: float, lng: float) -> Any:
        ...

    @abstractmethod
    def _parse_forward(self, payload: Any) -> list[Candidate]:
        ...

    @abstractmethod
    def _parse_reverse(self, payload: Any) -> AddressDetails:
        ...
