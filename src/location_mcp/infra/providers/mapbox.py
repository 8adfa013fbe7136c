from __future__ import annotations

from typing import Any
from urllib.parse import quote

from location_mcp.core.errors import MalformedResponseError
from location_mcp.core.models import AddressDetails, Candidate, Provider
from location_mcp.infra.cache import CandidateCache
from location_mcp.infra.http import HttpClient
from location_mcp.infra.providers.base import GeocodingProvider, pick_str, to_float

MAPBOX_API_URL = "https://api.mapbox.com"


class MapboxProvider(GeocodingProvider):
    """
    Mapbox Geocoding v5 (mapbox.places).
    - requires an access token; the container only builds this provider when one is configured
    - features: { id, place_name, text, place_type[], center: [lng, lat], context: [{ id, text }] }
    - postcode / place / region come from the ``context`` ids ("postcode.123", "place.456", ...)
    """

    provider = Provider.PRIMARY

    def __init__(
        self,
        *,
        http: HttpClient,
        access_token: str,
        language: str = "es",
        country: str | None = None,
        api_url: str = MAPBOX_API_URL,
        cache: CandidateCache | None = None,
    ) -> None:
        super().__init__(http=http, cache=cache)
        self._access_token = access_token
        self._language = language
        self._country = country
        self._api_url = (api_url or MAPBOX_API_URL).rstrip("/")

    def _endpoint(self, search_text: str) -> str:
        return f"{self._api_url}/geocoding/v5/mapbox.places/{quote(search_text, safe=',')}.json"

    async def _forward_request(self, query: str, limit: int) -> Any:
        params: dict[str, Any] = {
            "access_token": self._access_token,
            "limit": str(limit),
            "language": self._language,
            "autocomplete": "true",
        }
        if self._country:
            params["country"] = self._country
        return await self._http.get_json(self._endpoint(query), params=params)

    async def _reverse_request(self, lat: float, lng: float) -> Any:
        params = {
            "access_token": self._access_token,
            "limit": "1",
            # Mapbox only accepts limit together with a single type
            "types": "address",
            "language": self._language,
        }
        return await self._http.get_json(self._endpoint(f"{lng},{lat}"), params=params)

    @staticmethod
    def _features(payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            raise MalformedResponseError("Mapbox payload is not an object")
        features = payload.get("features")
        if not isinstance(features, list):
            raise MalformedResponseError("Mapbox payload has no features list")
        return [f for f in features if isinstance(f, dict)]

    @staticmethod
    def _details(feature: dict[str, Any]) -> AddressDetails:
        ctx: dict[str, str] = {}
        for item in feature.get("context") or []:
            if not isinstance(item, dict):
                continue
            kind = pick_str(item.get("id")).split(".", 1)[0]
            if kind and kind not in ctx:
                ctx[kind] = pick_str(item.get("text"))

        # a feature that is itself a place/region carries its name in ``text``
        own_types = feature.get("place_type") or []
        own_text = pick_str(feature.get("text"))
        if "place" in own_types:
            ctx.setdefault("place", own_text)
        if "region" in own_types:
            ctx.setdefault("region", own_text)
        if "postcode" in own_types:
            ctx.setdefault("postcode", own_text)

        return AddressDetails(
            address=pick_str(feature.get("place_name"), own_text),
            city=pick_str(ctx.get("place"), ctx.get("locality")),
            state=pick_str(ctx.get("region")),
            postcode=pick_str(ctx.get("postcode")),
        )

    def _parse_forward(self, payload: Any) -> list[Candidate]:
        candidates: list[Candidate] = []
        for index, feature in enumerate(self._features(payload)):
            center = feature.get("center")
            if not isinstance(center, (list, tuple)) or len(center) < 2:
                continue
            candidate = self._make_candidate(
                external_id=feature.get("id"),
                label=pick_str(feature.get("place_name"), feature.get("text")),
                lat=to_float(center[1]),
                lng=to_float(center[0]),
                extra=self._details(feature),
                index=index,
            )
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def _parse_reverse(self, payload: Any) -> AddressDetails:
        features = self._features(payload)
        if not features:
            return AddressDetails()
        return self._details(features[0])
