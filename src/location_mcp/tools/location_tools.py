from __future__ import annotations

from typing import Any

from fastmcp import FastMCP
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from location_mcp.app.container import Container
from location_mcp.core.models import GeolocationFailure, Position, SavedLocation, SelectionPayload
from location_mcp.core.text import parse_query
from location_mcp.infra.geolocation import StaticPositionSource
from location_mcp.services.picker import STATUS_SECONDARY_ONLY


class CoordinatesArgs(BaseModel):
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class SuggestResult(BaseModel):
    """Typeahead suggestions for a partial address."""

    candidates: list[dict[str, Any]] = Field(
        default_factory=list,
        description="At most 5 ranked, deduplicated candidates",
    )
    message: str | None = Field(default=None, description="Why the list is empty, when it is")


def _selection_result(payload: SelectionPayload, **extra: Any) -> dict[str, Any]:
    return {"selection": payload.to_dict(), "status": "ok", "message": None, **extra}


def _invalid_coordinates(e: PydanticValidationError) -> dict[str, Any]:
    return {
        "selection": None,
        "status": "invalid",
        "message": f"Invalid coordinates: {e.errors()[0].get('msg', 'out of range')}",
    }


def register_location_tools(mcp: FastMCP, container: Container) -> None:
    suggestion_service = container.suggestion_service
    min_chars = container.settings.suggest_min_chars

    @mcp.tool(
        name="suggest_addresses",
        description=(
            "Returns up to 5 ranked address suggestions for partially typed text, "
            "merged from Mapbox (when configured) and OpenStreetMap Nominatim. "
            "House-numbered queries are filtered to results carrying that number."
        ),
    )
    async def suggest_addresses(query: str) -> SuggestResult:
        q = parse_query(query)
        if len(q.trimmed) < min_chars:
            return SuggestResult(message=f"Type at least {min_chars} characters.")

        candidates = await suggestion_service.fetch_suggestions(q)
        return SuggestResult(
            candidates=[c.to_dict() for c in candidates],
            message=None if candidates else "No se encontraron resultados.",
        )

    @mcp.tool(
        name="search_address",
        description=(
            "Resolves free text to the single best location (the 'search' button). "
            "Falls back to the other provider once if the first one finds nothing."
        ),
    )
    async def search_address(query: str) -> dict[str, Any]:
        selection = container.new_selection_service()
        result = await selection.perform_immediate_search(query)
        if isinstance(result, SelectionPayload):
            return _selection_result(result)
        if result is None:
            return {"selection": None, "status": "empty", "message": "query is empty"}
        message = "No se encontraron resultados." if result == "no-results" else "Error buscando la dirección."
        return {"selection": None, "status": result, "message": message}

    @mcp.tool(
        name="reverse_geocode",
        description=(
            "Turns a map click (latitude/longitude) into an address. "
            "Always returns the coordinates; address fields are empty when no provider knows the place."
        ),
    )
    async def reverse_geocode(latitude: float, longitude: float) -> dict[str, Any]:
        try:
            args = CoordinatesArgs(latitude=latitude, longitude=longitude)
        except PydanticValidationError as e:
            return _invalid_coordinates(e)

        selection = container.new_selection_service()
        payload = await selection.select_from_map_click(args.latitude, args.longitude)
        return _selection_result(payload)

    @mcp.tool(
        name="use_device_position",
        description=(
            "Applies a device geolocation fix reported by the client "
            "('use my location') and resolves it to an address."
        ),
    )
    async def use_device_position(latitude: float, longitude: float, accuracy: float | None = None) -> dict[str, Any]:
        try:
            args = CoordinatesArgs(latitude=latitude, longitude=longitude)
        except PydanticValidationError as e:
            return _invalid_coordinates(e)

        source = StaticPositionSource(Position(args.latitude, args.longitude, accuracy))
        selection = container.new_selection_service(position_source=source)
        result = await selection.select_from_geolocation()
        if isinstance(result, GeolocationFailure):
            return {"selection": None, "status": result.reason, "message": result.message}
        if result is None:
            return {"selection": None, "status": "busy", "message": "A location request is already running."}
        return _selection_result(result)

    @mcp.tool(
        name="resolve_saved_location",
        description=(
            "Maps a location already registered in the application (e.g. a community marker) "
            "to the canonical selection payload without calling any geocoder."
        ),
    )
    def resolve_saved_location(entry: dict[str, Any]) -> dict[str, Any]:
        try:
            loc = SavedLocation.model_validate(entry)
            payload = container.new_selection_service().select_from_saved_location(loc)
        except ValueError as e:
            return {"selection": None, "status": "invalid", "message": str(e)}
        return _selection_result(payload, saved_location=loc.model_dump(by_alias=True))

    @mcp.tool(
        name="geocoding_status",
        description="Reports which geocoding providers are active.",
    )
    def geocoding_status() -> dict[str, Any]:
        primary = container.mapbox is not None
        providers = ["mapbox", "nominatim"] if primary else ["nominatim"]
        return {
            "primary_enabled": primary,
            "providers": providers,
            "message": None if primary else STATUS_SECONDARY_ONLY,
        }
