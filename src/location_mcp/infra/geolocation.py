from __future__ import annotations

import time
from typing import Protocol

from location_mcp.core.errors import GeolocationError
from location_mcp.core.models import Position, PositionOptions


class PositionSource(Protocol):
    """
    Device position capability. Implementations raise GeolocationError with
    reason "denied" (permission refused) or "unavailable" (no fix, timeout).
    """

    async def get_current_position(self, options: PositionOptions) -> Position:
        ...


class StaticPositionSource:
    """
    A position source for hosts that already hold the device fix (for example a
    client that sent its own coordinates). Fixes older than
    ``options.max_cached_age_ms`` are reported as unavailable.
    """

    def __init__(self, position: Position | None = None, *, captured_at: float | None = None) -> None:
        self._position = position
        self._captured_at = time.monotonic() if captured_at is None else captured_at

    async def get_current_position(self, options: PositionOptions) -> Position:
        if self._position is None:
            raise GeolocationError("unavailable", "No position fix available")
        age_ms = (time.monotonic() - self._captured_at) * 1000
        if age_ms > options.max_cached_age_ms:
            raise GeolocationError("unavailable", "Cached position fix is too old")
        return self._position
