from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from landroute.errors import REASON_ROUTING_UNAVAILABLE
from landroute.models import LatLng, PropertyRecord, RouteSummary, TransportMode, Waypoint
from landroute.multileg_engine import build_summary
from landroute.multimodal import direct_segment
from landroute.rendering import (
    FIT_PADDING_PX,
    MARKER_COLORS,
    ROUTE_TAG,
    InMemoryMapSurface,
    MapArtifact,
    RouteArtifactLayer,
    RouteRenderer,
    marker_label,
)

A = LatLng(lat=40.7128, lon=-74.0060)
B = LatLng(lat=40.73, lon=-74.00)
C = LatLng(lat=40.80, lon=-73.95)


async def _straight(waypoints: Sequence[LatLng], mode: TransportMode) -> RouteSummary | None:
    points = list(waypoints)
    return build_summary(
        [direct_segment(a, b, mode, description="hop") for a, b in zip(points, points[1:], strict=False)]
    )


def _tagged(surface: InMemoryMapSurface) -> list[MapArtifact]:
    return [artifact for artifact in surface.layers() if artifact.tag == ROUTE_TAG]


def test_marker_labels() -> None:
    assert [marker_label(i, 4) for i in range(4)] == ["A", "1", "2", "B"]
    assert [marker_label(i, 2) for i in range(2)] == ["A", "B"]


def test_clear_sweeps_orphans_but_keeps_foreign_layers() -> None:
    surface = InMemoryMapSurface()
    surface.add_layer(MapArtifact(id="stray", kind="route_line", tag=ROUTE_TAG, coordinates=((0.0, 0.0), (1.0, 1.0))))
    surface.add_layer(MapArtifact(id="parcel-pin", kind="waypoint_marker", tag="properties", coordinates=((0.5, 0.5),)))

    layer = RouteArtifactLayer(surface)
    assert layer.clear() == 1
    assert [artifact.id for artifact in surface.layers()] == ["parcel-pin"]


def test_draw_styles_lines_and_markers() -> None:
    surface = InMemoryMapSurface()
    layer = RouteArtifactLayer(surface)
    segments = [
        direct_segment(A, B, TransportMode.CAR, description="ok"),
        direct_segment(B, C, TransportMode.CAR, description="fallback", reason=REASON_ROUTING_UNAVAILABLE),
    ]
    drawn = layer.draw(segments, [A, B, C], cycle=1)

    lines = [artifact for artifact in drawn if artifact.kind == "route_line"]
    markers = [artifact for artifact in drawn if artifact.kind == "waypoint_marker"]
    assert len(lines) == 2
    assert "dash_array" not in lines[0].style
    assert lines[1].style["dash_array"] == "10, 10"
    assert [m.properties["label"] for m in markers] == ["A", "1", "B"]
    assert [m.style["color"] for m in markers] == [
        MARKER_COLORS["start"],
        MARKER_COLORS["intermediate"],
        MARKER_COLORS["end"],
    ]
    assert surface.padding == FIT_PADDING_PX
    assert surface.view == ((A.lat, A.lon), (C.lat, C.lon))


def test_marker_popup_comes_from_matching_property() -> None:
    surface = InMemoryMapSurface()
    layer = RouteArtifactLayer(surface)
    record = PropertyRecord(id="p-1", center="(-74.006, 40.7128)", description="Pier lot", country="US", price=12.5)
    drawn = layer.draw([direct_segment(A, B, TransportMode.CAR, description="x")], [A, B], cycle=1, properties=[record])

    markers = [artifact for artifact in drawn if artifact.kind == "waypoint_marker"]
    assert markers[0].properties["popup"] == {"id": "p-1", "description": "Pier lot", "country": "US", "price": 12.5}
    assert "popup" not in markers[1].properties


@pytest.mark.anyio
async def test_fewer_than_two_waypoints_reports_none_and_draws_nothing() -> None:
    calls: list[int] = []

    async def compute(waypoints: Sequence[LatLng], mode: TransportMode) -> RouteSummary | None:
        calls.append(1)
        return None

    delivered: list[RouteSummary | None] = []
    surface = InMemoryMapSurface()
    renderer = RouteRenderer(surface, compute=compute, on_summary=delivered.append)

    outcome = await renderer.update([A], TransportMode.CAR)
    assert outcome.summary is None
    assert delivered == [None]
    assert calls == []
    assert _tagged(surface) == []


@pytest.mark.anyio
async def test_identical_redraw_does_not_accumulate_artifacts() -> None:
    surface = InMemoryMapSurface()
    renderer = RouteRenderer(surface, compute=_straight)

    await renderer.update([A, B, C], TransportMode.CAR)
    first = {artifact.id for artifact in _tagged(surface)}
    await renderer.update([A, B, C], TransportMode.CAR)
    second = _tagged(surface)

    assert len(first) == 5
    assert len(second) == 5
    assert first.isdisjoint({artifact.id for artifact in second})


@pytest.mark.anyio
async def test_stale_cycle_never_draws_or_reports() -> None:
    gate = asyncio.Event()

    async def compute(waypoints: Sequence[LatLng], mode: TransportMode) -> RouteSummary | None:
        if mode == TransportMode.TRUCK:
            await gate.wait()
        return await _straight(waypoints, mode)

    delivered: list[RouteSummary | None] = []
    surface = InMemoryMapSurface()
    renderer = RouteRenderer(surface, compute=compute, on_summary=delivered.append)

    slow = asyncio.create_task(renderer.update([A, B, C], TransportMode.TRUCK))
    await asyncio.sleep(0)
    fresh = await renderer.update([A, B], TransportMode.CAR)
    gate.set()
    stale = await slow

    assert stale.superseded is True
    assert fresh.superseded is False
    assert len(delivered) == 1
    assert delivered[0] is not None
    assert {s.mode for s in delivered[0].segments} == {TransportMode.CAR}
    lines = [artifact for artifact in _tagged(surface) if artifact.kind == "route_line"]
    assert len(lines) == 1
    assert lines[0].properties["mode"] == "car"


@pytest.mark.anyio
async def test_schedule_cancels_previous_cycle() -> None:
    gate = asyncio.Event()
    seen: list[TransportMode] = []

    async def compute(waypoints: Sequence[LatLng], mode: TransportMode) -> RouteSummary | None:
        seen.append(mode)
        if mode == TransportMode.TRUCK:
            await gate.wait()
        return await _straight(waypoints, mode)

    surface = InMemoryMapSurface()
    renderer = RouteRenderer(surface, compute=compute)

    first = renderer.schedule([A, B], TransportMode.TRUCK)
    await asyncio.sleep(0)
    second = renderer.schedule([A, B], TransportMode.WALKING)

    with pytest.raises(asyncio.CancelledError):
        await first
    outcome = await second

    assert outcome.superseded is False
    assert outcome.summary is not None
    assert outcome.summary.segments[0].mode == TransportMode.WALKING
    assert len(_tagged(surface)) == 3


@pytest.mark.anyio
async def test_teardown_removes_everything_and_invalidates_cycles() -> None:
    delivered: list[RouteSummary | None] = []
    surface = InMemoryMapSurface()
    renderer = RouteRenderer(surface, compute=_straight, on_summary=delivered.append)

    outcome = await renderer.update([A, B], TransportMode.CAR)
    assert len(_tagged(surface)) == 3

    renderer.teardown()
    assert _tagged(surface) == []
    assert renderer.generation > outcome.generation
    assert len(delivered) == 1


def test_geojson_export_flips_to_lon_lat_and_sets_bbox() -> None:
    surface = InMemoryMapSurface()
    RouteArtifactLayer(surface).draw([direct_segment(A, B, TransportMode.SHIP, description="x")], [A, B], cycle=3)

    collection = surface.to_geojson()
    assert collection["type"] == "FeatureCollection"
    assert collection["bbox"] == [A.lon, A.lat, B.lon, B.lat]
    line = next(f for f in collection["features"] if f["geometry"]["type"] == "LineString")
    assert line["geometry"]["coordinates"][0] == [A.lon, A.lat]
    assert line["id"] == f"{ROUTE_TAG}:3:segment:0"


def test_parcel_labels_are_shown_on_markers() -> None:
    layer = RouteArtifactLayer(InMemoryMapSurface())
    start = Waypoint(lat=A.lat, lon=A.lon, label="North depot")
    segments = [direct_segment(start, B, TransportMode.CAR, description="ok")]
    drawn = layer.draw(segments, [start, B], cycle=1)

    markers = [artifact for artifact in drawn if artifact.kind == "waypoint_marker"]
    assert markers[0].properties["name"] == "North depot"
    assert markers[0].properties["label"] == "A"
    assert "name" not in markers[1].properties
