from __future__ import annotations

from typing import Any

from location_mcp.core.errors import MalformedResponseError
from location_mcp.core.models import AddressDetails, Candidate, Provider
from location_mcp.infra.cache import CandidateCache
from location_mcp.infra.http import HttpClient
from location_mcp.infra.providers.base import GeocodingProvider, pick_str, to_float

NOMINATIM_API_URL = "https://nominatim.openstreetmap.org"


class NominatimProvider(GeocodingProvider):
    """
    OpenStreetMap Nominatim search/reverse. No key; always available.
    Items look like { place_id, lat, lon, display_name, address: {...} } with
    string coordinates.
    """

    provider = Provider.SECONDARY

    def __init__(
        self,
        *,
        http: HttpClient,
        language: str = "es",
        country: str | None = None,
        api_url: str = NOMINATIM_API_URL,
        cache: CandidateCache | None = None,
    ) -> None:
        super().__init__(http=http, cache=cache)
        self._language = language
        self._country = country
        self._api_url = (api_url or NOMINATIM_API_URL).rstrip("/")

    async def _forward_request(self, query: str, limit: int) -> Any:
        params: dict[str, Any] = {
            "format": "json",
            "q": query,
            "addressdetails": "1",
            "limit": str(limit),
            "accept-language": self._language,
        }
        if self._country:
            params["countrycodes"] = self._country.lower()
        return await self._http.get_json(f"{self._api_url}/search", params=params)

    async def _reverse_request(self, lat: float, lng: float) -> Any:
        params = {
            "format": "json",
            "lat": str(lat),
            "lon": str(lng),
            "addressdetails": "1",
            "accept-language": self._language,
        }
        return await self._http.get_json(f"{self._api_url}/reverse", params=params)

    @staticmethod
    def _details(item: dict[str, Any]) -> AddressDetails:
        addr = item.get("address")
        if not isinstance(addr, dict):
            addr = {}
        return AddressDetails(
            address=pick_str(item.get("display_name")),
            city=pick_str(addr.get("city"), addr.get("town"), addr.get("village"), addr.get("county")),
            state=pick_str(addr.get("state"), addr.get("region")),
            postcode=pick_str(addr.get("postcode")),
        )

    def _parse_forward(self, payload: Any) -> list[Candidate]:
        if not isinstance(payload, list):
            raise MalformedResponseError("Nominatim search payload is not a list")

        candidates: list[Candidate] = []
        for index, item in enumerate(payload):
            if not isinstance(item, dict):
                continue
            candidate = self._make_candidate(
                external_id=item.get("place_id"),
                label=pick_str(item.get("display_name")),
                lat=to_float(item.get("lat")),
                lng=to_float(item.get("lon")),
                extra=self._details(item),
                index=index,
            )
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def _parse_reverse(self, payload: Any) -> AddressDetails:
        if not isinstance(payload, dict):
            raise MalformedResponseError("Nominatim reverse payload is not an object")
        # { "error": "Unable to geocode" } is a well-formed "nothing here"
        if payload.get("error"):
            return AddressDetails()
        return self._details(payload)
