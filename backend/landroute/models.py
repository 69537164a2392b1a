from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransportMode(str, Enum):
    WALKING = "walking"
    CAR = "car"
    TRUCK = "truck"
    DRONE = "drone"
    SHIP = "ship"
    PLANE = "plane"


HubType = Literal["airport", "port", "city", "station"]
RoutingProfile = Literal["driving", "walking"]


class LatLng(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lon)


class Waypoint(LatLng):
    label: str | None = None


class TransportHub(BaseModel):
    name: str
    lat: float
    lon: float
    type: HubType
    importance: float = 0.0

    @property
    def point(self) -> LatLng:
        return LatLng(lat=self.lat, lon=self.lon)


class RouteSegment(BaseModel):
    mode: TransportMode
    distance: float = Field(..., ge=0.0)  # metres
    time: float = Field(..., ge=0.0)  # seconds
    description: str
    polyline: list[tuple[float, float]]  # [lat, lon]
    reason: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.reason is not None


class RouteSummary(BaseModel):
    total_distance: float
    total_time: float
    segments: list[RouteSegment]
    is_multi_modal: bool


class PropertyRecord(BaseModel):
    """Parcel metadata as supplied by the property selection UI."""

    id: str
    center: str | None = None  # "(lon, lat)"
    description: str = ""
    country: str = ""
    tile_count: int | None = None
    landfield_tier: int | None = None
    price: float | None = None


class RouteRequest(BaseModel):
    waypoints: list[Waypoint] = Field(default_factory=list, max_length=64)
    mode: TransportMode = TransportMode.CAR
    properties: list[PropertyRecord] = Field(default_factory=list)


class RouteResponse(BaseModel):
    summary: RouteSummary | None
    formatted: dict[str, Any] | None = None


class HubRequest(BaseModel):
    center: LatLng
    radius_m: float = Field(default=200_000.0, gt=0.0, le=1_000_000.0)
    hub_type: HubType = "port"

    @field_validator("radius_m")
    @classmethod
    def finite(cls, v: float) -> float:
        if v != v or v in (float("inf"), float("-inf")):
            raise ValueError("radius must be finite")
        return v


class HubResponse(BaseModel):
    hubs: list[TransportHub]


class ModeInfo(BaseModel):
    mode: TransportMode
    label: str
    speed_mps: float
    speed_kmh: float
    ground: bool


class ModeListResponse(BaseModel):
    modes: list[ModeInfo]


class MapUpdateResponse(BaseModel):
    generation: int
    superseded: bool
    summary: RouteSummary | None
    artifacts: dict[str, Any]
