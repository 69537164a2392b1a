"""Heuristic "does this straight leg cross open water" classifier.

Samples interior points of the straight lat/lon segment and asks, per point: ocean
box, then up to two remote probes, then the continent boxes. Coastal and
inland-sea points are misclassified now and then.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence

from .geo import interior_points
from .logging_utils import log_event
from .models import LatLng
from .settings import settings
from .water_services import WaterProbe


@dataclass(frozen=True)
class Box:
    name: str
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def contains(self, point: LatLng) -> bool:
        return (
            self.lat_min <= point.lat <= self.lat_max
            and self.lon_min <= point.lon <= self.lon_max
        )


# Open-ocean cores, kept off the coasts.
OCEAN_BOXES: tuple[Box, ...] = (
    Box("north_atlantic", 10.0, 55.0, -60.0, -15.0),
    Box("south_atlantic", -50.0, 0.0, -30.0, 5.0),
    Box("north_pacific_east", 5.0, 55.0, -175.0, -130.0),
    Box("north_pacific_west", 5.0, 45.0, 150.0, 180.0),
    Box("south_pacific", -55.0, -5.0, -170.0, -90.0),
    Box("indian_ocean", -40.0, 5.0, 55.0, 95.0),
    Box("southern_ocean", -65.0, -56.0, -180.0, 180.0),
)

LANDMASS_BOXES: tuple[Box, ...] = (
    Box("north_america", 15.0, 72.0, -168.0, -52.0),
    Box("south_america", -56.0, 13.0, -82.0, -34.0),
    Box("europe", 36.0, 71.0, -10.0, 40.0),
    Box("africa", -35.0, 37.0, -18.0, 52.0),
    Box("asia", -10.0, 78.0, 40.0, 150.0),
    Box("oceania", -47.0, -10.0, 112.0, 180.0),
)

WaterStrategy = Callable[[LatLng], Awaitable[bool | None]]


class WaterDetector(Protocol):
    async def crosses_water(self, a: LatLng, b: LatLng) -> bool: ...


def in_ocean_box(point: LatLng) -> bool:
    return any(box.contains(point) for box in OCEAN_BOXES)


def in_landmass_box(point: LatLng) -> bool:
    return any(box.contains(point) for box in LANDMASS_BOXES)


async def _ocean_strategy(point: LatLng) -> bool | None:
    return True if in_ocean_box(point) else None


class WaterCrossingDetector:
    def __init__(
        self,
        probes: Sequence[WaterProbe] = (),
        *,
        sample_count: int | None = None,
        probe_timeout_s: float | None = None,
    ) -> None:
        # At most two remote probes are consulted per sample.
        self.probes = tuple(probes)[:2]
        self.sample_count = int(sample_count if sample_count is not None else settings.water_sample_count)
        self.probe_timeout_s = float(
            probe_timeout_s if probe_timeout_s is not None else settings.external_call_timeout_s
        )
        self._strategies: list[WaterStrategy] = [_ocean_strategy]
        self._strategies.extend(self._probe_strategy(probe) for probe in self.probes)

    def _probe_strategy(self, probe: WaterProbe) -> WaterStrategy:
        async def strategy(point: LatLng) -> bool | None:
            try:
                return await asyncio.wait_for(probe.is_water(point), timeout=self.probe_timeout_s)
            except asyncio.TimeoutError:
                log_event("water_probe_timeout", probe=probe.name, timeout_s=self.probe_timeout_s)
                return None

        return strategy

    async def classify_point(self, point: LatLng) -> bool:
        for strategy in self._strategies:
            verdict = await strategy(point)
            if verdict is not None:
                return verdict
        # Final authority: outside every continent box counts as water.
        return not in_landmass_box(point)

    async def crosses_water(self, a: LatLng, b: LatLng) -> bool:
        for index, point in enumerate(interior_points(a, b, self.sample_count)):
            if await self.classify_point(point):
                log_event(
                    "water_crossing_detected",
                    sample_index=index,
                    lat=round(point.lat, 5),
                    lon=round(point.lon, 5),
                )
                return True
        return False
