from __future__ import annotations

import asyncio
import math

import pytest

from landroute.errors import REASON_ROUTING_UNAVAILABLE
from landroute.geo import haversine_m
from landroute.models import LatLng, RouteSegment, TransportHub, TransportMode
from landroute.multileg_engine import build_summary, compose_route_summary, is_multi_modal
from landroute.multimodal import MultiModalRouteComposer, direct_segment
from landroute.offline import StaticHubSource, UnavailableRoadRouter
from landroute.road_routing import RoadRoute

A = LatLng(lat=40.7128, lon=-74.0060)  # New York
B = LatLng(lat=51.5074, lon=-0.1278)  # London
C = LatLng(lat=51.7520, lon=-1.2577)  # Oxford
MIDTOWN = LatLng(lat=40.73, lon=-74.00)


class FakeRoadRouter:
    async def fetch_route(self, *, profile, start, end, alternatives=False):  # noqa: ANN001
        mid = ((start.lat + end.lat) / 2 + 0.001, (start.lon + end.lon) / 2)
        distance = haversine_m(start, end) * 1.25
        return RoadRoute(polyline=[start.as_tuple(), mid, end.as_tuple()], distance=distance, duration=distance / 13.0)


class PairWater:
    """Only the listed legs cross water."""

    def __init__(self, *pairs: tuple[LatLng, LatLng]) -> None:
        self.pairs = {(a.as_tuple(), b.as_tuple()) for a, b in pairs}

    async def crosses_water(self, a: LatLng, b: LatLng) -> bool:
        return (a.as_tuple(), b.as_tuple()) in self.pairs


def _ports() -> StaticHubSource:
    return StaticHubSource(
        [
            TransportHub(name="Port Newark", lat=40.6840, lon=-74.1440, type="port", importance=16.0),
            TransportHub(name="Port of Tilbury", lat=51.4540, lon=0.3560, type="port", importance=16.0),
        ]
    )


@pytest.mark.anyio
async def test_fewer_than_two_waypoints_returns_none_without_calls() -> None:
    calls: list[int] = []

    async def leg_composer(origin: LatLng, destination: LatLng, mode: TransportMode) -> list[RouteSegment]:
        calls.append(1)
        return []

    assert await compose_route_summary(waypoints=[], mode=TransportMode.CAR, leg_composer=leg_composer) is None
    assert (
        await compose_route_summary(
            waypoints=[LatLng(lat=34.0, lon=-118.0)],
            mode=TransportMode.CAR,
            leg_composer=leg_composer,
        )
        is None
    )
    assert calls == []


@pytest.mark.anyio
async def test_segments_follow_leg_order_not_completion_order() -> None:
    points = [LatLng(lat=10.0 + i, lon=10.0) for i in range(5)]

    async def leg_composer(origin: LatLng, destination: LatLng, mode: TransportMode) -> list[RouteSegment]:
        # Later legs finish first.
        await asyncio.sleep(0.01 * (20 - origin.lat))
        return [direct_segment(origin, destination, mode, description=f"leg from {origin.lat}")]

    summary = await compose_route_summary(
        waypoints=points,
        mode=TransportMode.DRONE,
        leg_composer=leg_composer,
        concurrency=4,
    )
    assert summary is not None
    assert [s.description for s in summary.segments] == [f"leg from {p.lat}" for p in points[:-1]]


@pytest.mark.anyio
async def test_single_dry_car_leg_is_not_multimodal() -> None:
    composer = MultiModalRouteComposer(
        road_router=FakeRoadRouter(),
        hub_source=_ports(),
        water_detector=PairWater(),
    )
    summary = await compose_route_summary(
        waypoints=[A, MIDTOWN],
        mode=TransportMode.CAR,
        leg_composer=composer.compose_leg,
    )
    assert summary is not None
    assert len(summary.segments) == 1
    assert summary.segments[0].mode == TransportMode.CAR
    assert summary.is_multi_modal is False


@pytest.mark.anyio
async def test_only_water_leg_is_decomposed_and_order_is_kept() -> None:
    composer = MultiModalRouteComposer(
        road_router=FakeRoadRouter(),
        hub_source=_ports(),
        water_detector=PairWater((A, B)),
    )
    summary = await compose_route_summary(
        waypoints=[A, B, C],
        mode=TransportMode.TRUCK,
        leg_composer=composer.compose_leg,
    )

    assert summary is not None
    modes = [s.mode for s in summary.segments]
    assert modes == [TransportMode.TRUCK, TransportMode.SHIP, TransportMode.TRUCK, TransportMode.TRUCK]
    assert modes.count(TransportMode.SHIP) == 1
    assert summary.segments[-1].polyline[0] == B.as_tuple()
    assert summary.segments[-1].polyline[-1] == C.as_tuple()
    assert summary.is_multi_modal is True
    assert summary.total_time == pytest.approx(sum(s.time for s in summary.segments))
    assert summary.total_distance == pytest.approx(sum(s.distance for s in summary.segments))


@pytest.mark.anyio
async def test_routing_outage_still_yields_complete_summary() -> None:
    composer = MultiModalRouteComposer(
        road_router=UnavailableRoadRouter(),
        hub_source=_ports(),
        water_detector=PairWater(),
    )
    waypoints = [A, MIDTOWN, LatLng(lat=40.80, lon=-73.95)]
    summary = await compose_route_summary(
        waypoints=waypoints,
        mode=TransportMode.WALKING,
        leg_composer=composer.compose_leg,
    )

    assert summary is not None
    assert len(summary.segments) == 2
    for segment, (origin, destination) in zip(summary.segments, zip(waypoints, waypoints[1:]), strict=True):
        assert segment.reason == REASON_ROUTING_UNAVAILABLE
        assert segment.distance == pytest.approx(haversine_m(origin, destination))


def test_multimodal_flag_needs_two_segments_and_two_modes() -> None:
    car = direct_segment(A, MIDTOWN, TransportMode.CAR, description="car")
    ship = direct_segment(A, B, TransportMode.SHIP, description="ship")
    assert is_multi_modal([car]) is False
    assert is_multi_modal([car, car]) is False
    assert is_multi_modal([car, ship]) is True


def test_build_summary_totals_are_sums() -> None:
    segments = [
        direct_segment(A, MIDTOWN, TransportMode.CAR, description="one"),
        direct_segment(MIDTOWN, B, TransportMode.PLANE, description="two"),
    ]
    summary = build_summary(segments)
    assert summary.total_distance == pytest.approx(math.fsum(s.distance for s in segments))
    assert summary.total_time == pytest.approx(math.fsum(s.time for s in segments))