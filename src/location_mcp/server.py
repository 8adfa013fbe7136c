from __future__ import annotations

import logging

from fastmcp import FastMCP

from location_mcp.app.container import build_container
from location_mcp.app.logger import configure_logging
from location_mcp.tools.location_tools import register_location_tools

configure_logging()
log = logging.getLogger(__name__)

mcp = FastMCP("location-mcp")

try:
    _container = build_container()
    register_location_tools(mcp, _container)
    log.info(
        "Location tools registered (providers: %s)",
        "mapbox+nominatim" if _container.mapbox is not None else "nominatim",
    )
except Exception as e:
    log.error("Failed to register location tools: %s", e, exc_info=True)
    raise


if __name__ == "__main__":
    mcp.run(
        transport="http",
        host="127.0.0.1",
        port=3335,
        path="/mcp",
    )
