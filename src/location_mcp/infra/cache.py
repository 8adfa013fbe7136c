from __future__ import annotations

from cachetools import TTLCache

from location_mcp.core.models import Candidate


class CandidateCache:
    """Forward geocoding results per (provider, query, limit). Empty results are never stored."""

    def __init__(self, *, maxsize: int, ttl_seconds: int) -> None:
        self._cache: TTLCache[str, tuple[Candidate, ...]] = TTLCache(maxsize=maxsize, ttl=ttl_seconds)

    @staticmethod
    def key(provider: str, query: str, limit: int) -> str:
        return f"{provider}:forward:{query.lower()}:{limit}"

    def get(self, key: str) -> list[Candidate] | None:
        cached = self._cache.get(key)
        return list(cached) if cached is not None else None

    def set(self, key: str, candidates: list[Candidate]) -> None:
        if candidates:
            self._cache[key] = tuple(candidates)
