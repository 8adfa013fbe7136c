from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from location_mcp.app.settings import Settings, get_settings
from location_mcp.core.models import PositionOptions, SavedLocation, SelectionPayload
from location_mcp.infra.cache import CandidateCache
from location_mcp.infra.geolocation import PositionSource
from location_mcp.infra.http import HttpClient
from location_mcp.infra.providers.mapbox import MapboxProvider
from location_mcp.infra.providers.nominatim import NominatimProvider
from location_mcp.services.picker import LocationPicker
from location_mcp.services.selection_service import SelectionService
from location_mcp.services.suggestion_service import SuggestionService

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    settings: Settings
    cache: CandidateCache
    http: HttpClient
    mapbox: MapboxProvider | None
    nominatim: NominatimProvider
    suggestion_service: SuggestionService

    def new_selection_service(self, *, position_source: PositionSource | None = None) -> SelectionService:
        # single-flight flags are per control, so every picker / request gets its own
        return SelectionService(
            primary=self.mapbox,
            secondary=self.nominatim,
            position_source=position_source,
            position_options=PositionOptions(
                high_accuracy=True,
                timeout_ms=self.settings.geolocation_timeout_ms,
                max_cached_age_ms=self.settings.geolocation_max_age_ms,
            ),
        )

    def new_picker(
        self,
        *,
        on_select: Callable[[SelectionPayload], None] | None = None,
        on_saved_location_select: Callable[[SavedLocation], None] | None = None,
        on_change: Callable[[], None] | None = None,
        position_source: PositionSource | None = None,
    ) -> LocationPicker:
        return LocationPicker(
            suggestions=self.suggestion_service,
            selection=self.new_selection_service(position_source=position_source),
            primary_enabled=self.mapbox is not None,
            debounce_ms=self.settings.suggest_debounce_ms,
            on_select=on_select,
            on_saved_location_select=on_saved_location_select,
            on_change=on_change,
        )


def build_container(settings: Settings | None = None, *, http: HttpClient | None = None) -> Container:
    settings = settings or get_settings()

    cache = CandidateCache(maxsize=settings.cache_maxsize, ttl_seconds=settings.cache_ttl_seconds)
    http = http or HttpClient(timeout_seconds=settings.http_timeout_seconds, user_agent=settings.http_user_agent)

    # Mapbox only when a token is configured
    mapbox = None
    if settings.primary_enabled:
        mapbox = MapboxProvider(
            http=http,
            access_token=settings.mapbox_access_token,
            language=settings.geocode_language,
            country=settings.geocode_country,
            api_url=settings.mapbox_api_url,
            cache=cache,
        )
    else:
        log.info("MAPBOX_ACCESS_TOKEN not set; using Nominatim only")

    nominatim = NominatimProvider(
        http=http,
        language=settings.geocode_language,
        country=settings.geocode_country,
        api_url=settings.nominatim_api_url,
        cache=cache,
    )

    suggestion_service = SuggestionService(
        primary=mapbox,
        secondary=nominatim,
        min_chars=settings.suggest_min_chars,
        limit=settings.suggest_limit,
    )

    return Container(
        settings=settings,
        cache=cache,
        http=http,
        mapbox=mapbox,
        nominatim=nominatim,
        suggestion_service=suggestion_service,
    )
