from __future__ import annotations


class LocationError(Exception):
    """Base error for location-mcp."""


class UpstreamError(LocationError):
    """Raised when an upstream geocoding API fails."""


class MalformedResponseError(LocationError):
    """Raised when an upstream payload is not the JSON shape we expect."""


class GeolocationError(LocationError):
    """Raised by a position source when no device fix can be produced."""

    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(message or reason)
        # unsupported | denied | unavailable
        self.reason = reason
