from __future__ import annotations

import logging
from typing import Any

import httpx

from location_mcp.core.errors import MalformedResponseError, UpstreamError

log = logging.getLogger(__name__)


class HttpClient:
    def __init__(
        self,
        *,
        timeout_seconds: float,
        user_agent: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            transport=transport,
        )

    async def get_json(self, url: str, *, params: dict[str, Any]) -> Any:
        try:
            r = await self._client.get(url, params=params)
            r.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("HTTP error: %s", e)
            raise UpstreamError(f"Upstream HTTP error: {e}") from e

        try:
            return r.json()
        except ValueError as e:
            raise MalformedResponseError(f"Upstream returned non-JSON body from {url}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
