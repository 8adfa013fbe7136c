from __future__ import annotations

import json
import math
import os

import httpx
import pytest
from fastmcp import FastMCP

# NOTE:
# - real Mapbox/Nominatim calls depend on the network, so only smoke tests live here.
# - live tests run only when LOCATION_MCP_LIVE=1 (Nominatim usage policy: keep it rare).


def _live_enabled() -> bool:
    return os.getenv("LOCATION_MCP_LIVE") == "1"


def test_import_server():
    import location_mcp.server  # noqa: F401


def test_container_without_token_runs_on_nominatim_only(monkeypatch):
    from location_mcp.app.container import build_container
    from location_mcp.app.settings import get_settings

    monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)
    monkeypatch.setenv("SUGGEST_DEBOUNCE_MS", "200")
    c = build_container(get_settings())

    assert c.settings.primary_enabled is False
    assert c.mapbox is None
    picker = c.new_picker()
    assert picker.status
    assert c.settings.suggest_debounce_ms == 200


def test_container_with_token_enables_mapbox(monkeypatch):
    from location_mcp.app.container import build_container
    from location_mcp.app.settings import get_settings

    monkeypatch.setenv("MAPBOX_ACCESS_TOKEN", '"pk.test"')
    c = build_container(get_settings())

    assert c.settings.mapbox_access_token == "pk.test"
    assert c.mapbox is not None
    assert c.new_picker().status == ""
    # every picker gets its own single-flight flags
    assert c.new_selection_service() is not c.new_selection_service()


@pytest.mark.asyncio
async def test_container_suggestions_through_mock_transport(monkeypatch):
    from location_mcp.app.container import build_container
    from location_mcp.app.settings import get_settings
    from location_mcp.core.text import parse_query
    from location_mcp.infra.http import HttpClient

    monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "nominatim.openstreetmap.org"
        return httpx.Response(
            200,
            json=[{"place_id": 1, "lat": "-36.82", "lon": "-73.05", "display_name": "Las Flores 100, Concepción"}],
        )

    http = HttpClient(timeout_seconds=5, user_agent="test", transport=httpx.MockTransport(handler))
    c = build_container(get_settings(), http=http)

    results = await c.suggestion_service.fetch_suggestions(parse_query("Las Flores 100"))
    assert [r.id for r in results] == ["nominatim:1"]
    await http.aclose()


def test_tools_register_on_fresh_server(monkeypatch):
    from location_mcp.app.container import build_container
    from location_mcp.app.settings import get_settings
    from location_mcp.tools.location_tools import register_location_tools

    monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)
    register_location_tools(FastMCP("location-mcp-test"), build_container(get_settings()))



NOMINATIM_SEARCH = [
    {
        "place_id": 11,
        "lat": "-36.8270",
        "lon": "-73.0498",
        "display_name": "Barros Arana 500, Concepción, Biobío, Chile",
        "address": {"city": "Concepción", "state": "Biobío", "postcode": "4030000"},
    }
]
NOMINATIM_REVERSE = NOMINATIM_SEARCH[0]


def _nominatim(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/reverse"):
        return httpx.Response(200, json=NOMINATIM_REVERSE)
    return httpx.Response(200, json=NOMINATIM_SEARCH)


def _server(monkeypatch, handler=_nominatim):
    from location_mcp.app.container import build_container
    from location_mcp.app.settings import get_settings
    from location_mcp.infra.http import HttpClient
    from location_mcp.tools.location_tools import register_location_tools

    monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)
    http = HttpClient(timeout_seconds=5, user_agent="test", transport=httpx.MockTransport(handler))
    mcp = FastMCP("location-mcp-test")
    register_location_tools(mcp, build_container(get_settings(), http=http))
    return mcp, http


async def _call(client, name: str, args: dict) -> dict:
    result = await client.call_tool(name, args)
    return json.loads(result.content[0].text)


@pytest.mark.asyncio
async def test_suggest_addresses_tool(monkeypatch):
    from fastmcp import Client

    mcp, http = _server(monkeypatch)
    async with Client(mcp) as client:
        short = await _call(client, "suggest_addresses", {"query": "Ba"})
        found = await _call(client, "suggest_addresses", {"query": "Barros Arana"})
    await http.aclose()

    assert short["candidates"] == []
    assert short["message"] == "Type at least 3 characters."
    assert [c["id"] for c in found["candidates"]] == ["nominatim:11"]
    assert found["candidates"][0]["extra"]["city"] == "Concepción"
    assert found["message"] is None


@pytest.mark.asyncio
async def test_search_address_tool_statuses(monkeypatch):
    from fastmcp import Client

    mcp, http = _server(monkeypatch)
    async with Client(mcp) as client:
        ok = await _call(client, "search_address", {"query": "Barros Arana 500"})
        empty = await _call(client, "search_address", {"query": "   "})
    await http.aclose()

    assert ok["status"] == "ok"
    assert ok["selection"]["address"] == "Barros Arana 500, Concepción, Biobío, Chile"
    assert ok["selection"]["postcode"] == "4030000"
    assert empty == {"selection": None, "status": "empty", "message": "query is empty"}

    mcp, http = _server(monkeypatch, lambda request: httpx.Response(200, json=[]))
    async with Client(mcp) as client:
        none = await _call(client, "search_address", {"query": "Calle Inexistente"})
    await http.aclose()
    assert none == {"selection": None, "status": "no-results", "message": "No se encontraron resultados."}

    def broken(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("transport bug")

    mcp, http = _server(monkeypatch, broken)
    async with Client(mcp) as client:
        failed = await _call(client, "search_address", {"query": "Barros Arana 500"})
    await http.aclose()
    assert failed == {"selection": None, "status": "error", "message": "Error buscando la dirección."}


@pytest.mark.asyncio
async def test_coordinate_tools_resolve_and_reject_out_of_range(monkeypatch):
    from fastmcp import Client

    mcp, http = _server(monkeypatch)
    async with Client(mcp) as client:
        clicked = await _call(client, "reverse_geocode", {"latitude": -36.827, "longitude": -73.0498})
        located = await _call(
            client, "use_device_position", {"latitude": -36.827, "longitude": -73.0498, "accuracy": 15.0}
        )
        bad_click = await _call(client, "reverse_geocode", {"latitude": 95.0, "longitude": -73.0})
        bad_fix = await _call(client, "use_device_position", {"latitude": -36.8, "longitude": 181.0})
    await http.aclose()

    for result in (clicked, located):
        assert result["status"] == "ok"
        assert result["selection"]["lat"] == -36.827
        assert result["selection"]["city"] == "Concepción"
    for result in (bad_click, bad_fix):
        assert result["status"] == "invalid"
        assert result["selection"] is None
        assert result["message"].startswith("Invalid coordinates")


def test_coordinates_reject_non_finite_values():
    from pydantic import ValidationError

    from location_mcp.tools.location_tools import CoordinatesArgs

    for lat, lng in ((math.nan, 0.0), (0.0, math.inf)):
        with pytest.raises(ValidationError):
            CoordinatesArgs(latitude=lat, longitude=lng)


@pytest.mark.asyncio
async def test_saved_location_and_status_tools(monkeypatch):
    from fastmcp import Client

    from location_mcp.services.picker import STATUS_SECONDARY_ONLY

    mcp, http = _server(monkeypatch)
    async with Client(mcp) as client:
        saved = await _call(
            client,
            "resolve_saved_location",
            {"entry": {"id": 7, "name": "Los Aromos", "commune": "Concepción", "latitude": -36.8, "longitude": -73.0}},
        )
        invalid = await _call(client, "resolve_saved_location", {"entry": {"name": "Sin mapa"}})
        status = await _call(client, "geocoding_status", {})
    await http.aclose()

    assert saved["status"] == "ok"
    assert saved["selection"]["communityId"] == "7"
    assert saved["selection"]["city"] == "Concepción"
    assert invalid["status"] == "invalid"
    assert invalid["selection"] is None
    assert status == {"primary_enabled": False, "providers": ["nominatim"], "message": STATUS_SECONDARY_ONLY}


@pytest.mark.skipif(not _live_enabled(), reason="LOCATION_MCP_LIVE=1 not set")
@pytest.mark.asyncio
async def test_live_suggestions_smoke():
    from location_mcp.app.container import build_container
    from location_mcp.core.text import parse_query

    c = build_container()
    results = await c.suggestion_service.fetch_suggestions(parse_query("Plaza Independencia, Concepción"))
    assert results
    assert len(results) <= 5
    await c.http.aclose()
