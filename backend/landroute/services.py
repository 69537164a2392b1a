from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from .hub_locator import HubSource, OverpassClient, TransportHubLocator
from .models import LatLng, RouteSummary, TransportMode
from .multileg_engine import compose_route_summary
from .multimodal import MultiModalRouteComposer
from .offline import StaticHubSource, UnavailableRoadRouter
from .road_routing import DirectionsClient, RoadRouter
from .water_detector import WaterCrossingDetector
from .water_services import OnWaterProbe, ReverseGeocodeWaterProbe, WaterProbe


class AsyncClosable(Protocol):
    async def aclose(self) -> None: ...


@dataclass
class PlannerServices:
    """Wires the composer to either live HTTP clients or offline doubles."""

    road_router: RoadRouter
    hub_source: HubSource
    probes: list[WaterProbe] = field(default_factory=list)
    composer: MultiModalRouteComposer = field(init=False)
    _closers: list[AsyncClosable] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        self.composer = MultiModalRouteComposer(
            road_router=self.road_router,
            hub_source=self.hub_source,
            water_detector=WaterCrossingDetector(self.probes),
        )

    @classmethod
    def live(cls) -> PlannerServices:
        directions = DirectionsClient.from_settings()
        overpass = OverpassClient.from_settings()
        probes: list[WaterProbe] = [OnWaterProbe.from_settings(), ReverseGeocodeWaterProbe.from_settings()]
        services = cls(
            road_router=directions,
            hub_source=TransportHubLocator(overpass),
            probes=probes,
        )
        services._closers = [directions, overpass, *probes]
        return services

    @classmethod
    def offline(cls) -> PlannerServices:
        return cls(road_router=UnavailableRoadRouter(), hub_source=StaticHubSource())

    async def compute(self, waypoints: Sequence[LatLng], mode: TransportMode) -> RouteSummary | None:
        return await compose_route_summary(
            waypoints=waypoints,
            mode=mode,
            leg_composer=self.composer.compose_leg,
        )

    async def aclose(self) -> None:
        for closer in self._closers:
            await closer.aclose()
        self._closers = []
