from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .errors import REASON_NO_PORTS, REASON_ROUTING_UNAVAILABLE
from .geo import haversine_m, same_point, straight_polyline
from .hub_locator import HubSource
from .logging_utils import log_event
from .models import LatLng, RouteSegment, TransportHub, TransportMode
from .road_routing import RoadRouter
from .settings import settings
from .speed_model import DIRECT_MODES, mode_label, routing_profile, travel_time_s
from .water_detector import WaterDetector

T = TypeVar("T")


def direct_segment(
    origin: LatLng,
    destination: LatLng,
    mode: TransportMode,
    *,
    description: str,
    reason: str | None = None,
) -> RouteSegment:
    distance = haversine_m(origin, destination)
    return RouteSegment(
        mode=mode,
        distance=distance,
        time=travel_time_s(distance, mode),
        description=description,
        polyline=straight_polyline(origin, destination),
        reason=reason,
    )


class MultiModalRouteComposer:
    """Turns one leg into 1..N mode-homogeneous segments.

    Air, drone and sea legs are flown/sailed straight. Ground legs go by road
    unless the straight line crosses open water over a long enough distance,
    in which case the leg becomes ground -> ship -> ground via the best ports
    on either side.
    """

    def __init__(
        self,
        *,
        road_router: RoadRouter,
        hub_source: HubSource,
        water_detector: WaterDetector,
        call_timeout_s: float | None = None,
        hub_search_radius_m: float | None = None,
        min_multimodal_leg_m: float | None = None,
        port_access_min_m: float | None = None,
    ) -> None:
        self.road_router = road_router
        self.hub_source = hub_source
        self.water_detector = water_detector
        self.call_timeout_s = float(call_timeout_s if call_timeout_s is not None else settings.external_call_timeout_s)
        self.hub_search_radius_m = float(
            hub_search_radius_m if hub_search_radius_m is not None else settings.hub_search_radius_m
        )
        self.min_multimodal_leg_m = float(
            min_multimodal_leg_m if min_multimodal_leg_m is not None else settings.multimodal_min_leg_m
        )
        self.port_access_min_m = float(
            port_access_min_m if port_access_min_m is not None else settings.port_access_min_m
        )

    async def _bounded(self, awaitable: Awaitable[T], *, default: T, call: str) -> T:
        # A hung service degrades exactly like a failed one.
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout_s)
        except asyncio.TimeoutError:
            log_event("external_call_timeout", call=call, timeout_s=self.call_timeout_s)
            return default

    async def compose_leg(self, origin: LatLng, destination: LatLng, mode: TransportMode) -> list[RouteSegment]:
        label = mode_label(mode)
        if mode in DIRECT_MODES:
            return [direct_segment(origin, destination, mode, description=f"Direct {label} route")]

        # Each probe is bounded inside the detector; a timeout falls through to the next heuristic.
        crosses = await self.water_detector.crosses_water(origin, destination)
        leg_distance = haversine_m(origin, destination)
        if crosses and leg_distance > self.min_multimodal_leg_m:
            return await self._compose_via_ports(origin, destination, mode, leg_distance=leg_distance)
        if crosses:
            log_event("water_leg_too_short", distance_m=round(leg_distance, 1), mode=mode.value)

        return [await self.ground_segment(origin, destination, mode, description=f"{label} route by road")]

    async def ground_segment(
        self,
        origin: LatLng,
        destination: LatLng,
        mode: TransportMode,
        *,
        description: str,
    ) -> RouteSegment:
        profile = routing_profile(mode)
        road = None
        if profile is not None:
            road = await self._bounded(
                self.road_router.fetch_route(profile=profile, start=origin, end=destination),
                default=None,
                call="road_routing",
            )
        if road is not None and len(road.polyline) > 2:
            return RouteSegment(
                mode=mode,
                distance=road.distance,
                time=road.duration,
                description=description,
                polyline=list(road.polyline),
            )

        log_event("road_routing_fallback", mode=mode.value, profile=profile)
        return direct_segment(
            origin,
            destination,
            mode,
            description=f"{description} (direct line)",
            reason=REASON_ROUTING_UNAVAILABLE,
        )

    async def _best_port(self, point: LatLng) -> TransportHub | None:
        hubs = await self._bounded(
            self.hub_source.find_hubs(point, self.hub_search_radius_m, "port"),
            default=[],
            call="hub_lookup",
        )
        return hubs[0] if hubs else None

    async def _compose_via_ports(
        self,
        origin: LatLng,
        destination: LatLng,
        mode: TransportMode,
        *,
        leg_distance: float,
    ) -> list[RouteSegment]:
        label = mode_label(mode)
        origin_port, destination_port = await asyncio.gather(
            self._best_port(origin),
            self._best_port(destination),
        )
        if origin_port is None or destination_port is None:
            log_event(
                "multimodal_aborted",
                reason=REASON_NO_PORTS,
                distance_m=round(leg_distance, 1),
                origin_port=origin_port.name if origin_port else None,
                destination_port=destination_port.name if destination_port else None,
            )
            return [
                direct_segment(
                    origin,
                    destination,
                    mode,
                    description=f"Direct {label} route",
                    reason=REASON_NO_PORTS,
                )
            ]

        origin_port_point = origin_port.point
        destination_port_point = destination_port.point

        async def _access(a: LatLng, b: LatLng, description: str) -> RouteSegment | None:
            if haversine_m(a, b) <= self.port_access_min_m:
                return None
            return await self.ground_segment(a, b, mode, description=description)

        first_mile, last_mile = await asyncio.gather(
            _access(origin, origin_port_point, f"{label} to {origin_port.name}"),
            _access(destination_port_point, destination, f"{label} from {destination_port.name}"),
        )

        segments: list[RouteSegment] = []
        if first_mile is not None:
            segments.append(first_mile)
        if not same_point(origin_port_point, destination_port_point):
            segments.append(
                direct_segment(
                    origin_port_point,
                    destination_port_point,
                    TransportMode.SHIP,
                    description=f"Ship from {origin_port.name} to {destination_port.name}",
                )
            )
        if last_mile is not None:
            segments.append(last_mile)

        log_event(
            "multimodal_leg",
            mode=mode.value,
            origin_port=origin_port.name,
            destination_port=destination_port.name,
            segments=len(segments),
        )
        return segments
