"""Deterministic stand-ins for the external services (no network at all).

Used by the CLI's --offline switch; every ground leg then degrades to a
straight line and water detection relies on the coarse boxes alone.
"""

from __future__ import annotations

from typing import Sequence

from .geo import haversine_m
from .models import HubType, LatLng, RoutingProfile, TransportHub
from .road_routing import RoadRoute


class UnavailableRoadRouter:
    def __init__(self) -> None:
        self.calls = 0

    async def fetch_route(
        self,
        *,
        profile: RoutingProfile,
        start: LatLng,
        end: LatLng,
        alternatives: bool = False,
    ) -> RoadRoute | None:
        self.calls += 1
        return None


class StaticHubSource:
    """Answers hub queries from a fixed list, nearest first within the radius."""

    def __init__(self, hubs: Sequence[TransportHub] = ()) -> None:
        self.hubs = list(hubs)
        self.calls = 0

    async def find_hubs(self, center: LatLng, radius_m: float, hub_type: HubType) -> list[TransportHub]:
        self.calls += 1
        in_range = [
            (haversine_m(center, hub.point), hub)
            for hub in self.hubs
            if hub.type == hub_type and haversine_m(center, hub.point) <= radius_m
        ]
        in_range.sort(key=lambda item: item[0])
        return [hub for _, hub in in_range[:10]]
