from __future__ import annotations

import logging
import sys

from location_mcp.app.settings import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    # stderr only: stdout carries the MCP STDIO transport
    level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("httpx").setLevel(logging.WARNING)
