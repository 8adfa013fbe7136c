from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Provider(str, Enum):
    PRIMARY = "mapbox"
    SECONDARY = "nominatim"


@dataclass(frozen=True)
class Query:
    raw: str
    trimmed: str
    has_house_number: bool
    house_number: str | None


@dataclass(frozen=True)
class AddressDetails:
    """Structured address fields. Doubles as the reverse-geocoding result."""

    address: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""

    def is_empty(self) -> bool:
        return not (self.address or self.city or self.state or self.postcode)

    def to_dict(self) -> dict[str, str]:
        return {
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postcode": self.postcode,
        }


@dataclass(frozen=True)
class Candidate:
    id: str
    label: str
    lat: float
    lng: float
    provider: Provider
    extra: AddressDetails = field(default_factory=AddressDetails)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "lat": self.lat,
            "lng": self.lng,
            "extra": self.extra.to_dict(),
            "provider": self.provider.value,
        }


@dataclass(frozen=True)
class SelectionPayload:
    lat: float
    lng: float
    address: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    community_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "lat": self.lat,
            "lng": self.lng,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postcode": self.postcode,
        }
        if self.community_id is not None:
            out["communityId"] = self.community_id
        return out


class SavedLocation(BaseModel):
    """
    A location already known to the application (e.g. a registered community),
    shown as a marker and selectable without any geocoding.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    name: str = ""
    address: str = ""
    commune: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = Field("", alias="postalCode")
    latitude: float | None = None
    longitude: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("name", "address", "commune", "city", "region", "postal_code", mode="before")
    @classmethod
    def _clean_text(cls, v: Any) -> str:
        return str(v or "").strip()

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_ms: int = 15000
    max_cached_age_ms: int = 60000


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    accuracy: float | None = None


GeolocationReason = Literal["unsupported", "denied", "unavailable"]


@dataclass(frozen=True)
class GeolocationFailure:
    reason: GeolocationReason
    message: str


SearchStatus = Literal["no-results", "error"]
