from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    # Primary provider (optional key)
    mapbox_access_token: str | None
    mapbox_api_url: str

    # Secondary provider
    nominatim_api_url: str

    # Common provider params
    geocode_language: str
    geocode_country: str | None

    # Suggestion / picker behaviour
    suggest_min_chars: int
    suggest_limit: int
    suggest_debounce_ms: int
    geolocation_timeout_ms: int
    geolocation_max_age_ms: int

    # Cache
    cache_ttl_seconds: int
    cache_maxsize: int

    # HTTP
    http_timeout_seconds: float
    http_user_agent: str

    # Logging
    log_level: str

    @property
    def primary_enabled(self) -> bool:
        return bool(self.mapbox_access_token)


def _clean(s: str | None) -> str:
    return (s or "").strip().strip('"').strip("'")


def _int(name: str, default: int) -> int:
    v = _clean(os.getenv(name, str(default)))
    return int(v)


def _float(name: str, default: float) -> float:
    v = _clean(os.getenv(name, str(default)))
    return float(v)


def get_settings() -> Settings:
    """
    The Mapbox token is optional: without it the engine runs on Nominatim only.
    """
    return Settings(
        mapbox_access_token=_clean(os.getenv("MAPBOX_ACCESS_TOKEN")) or None,
        mapbox_api_url=_clean(os.getenv("MAPBOX_API_URL", "https://api.mapbox.com")),
        nominatim_api_url=_clean(os.getenv("NOMINATIM_API_URL", "https://nominatim.openstreetmap.org")),
        geocode_language=_clean(os.getenv("GEOCODE_LANGUAGE", "es")),
        geocode_country=_clean(os.getenv("GEOCODE_COUNTRY")) or None,
        suggest_min_chars=_int("SUGGEST_MIN_CHARS", 3),
        suggest_limit=_int("SUGGEST_LIMIT", 5),
        suggest_debounce_ms=_int("SUGGEST_DEBOUNCE_MS", 350),
        geolocation_timeout_ms=_int("GEOLOCATION_TIMEOUT_MS", 15000),
        geolocation_max_age_ms=_int("GEOLOCATION_MAX_AGE_MS", 60000),
        cache_ttl_seconds=_int("GEOCODE_CACHE_TTL_SECONDS", 600),
        cache_maxsize=_int("GEOCODE_CACHE_MAXSIZE", 2000),
        http_timeout_seconds=_float("HTTP_TIMEOUT_SECONDS", 10.0),
        http_user_agent=_clean(os.getenv("HTTP_USER_AGENT", "location-mcp/0.1.0")),
        log_level=_clean(os.getenv("LOG_LEVEL", "INFO")).upper() or "INFO",
    )
