"""Ownership of everything the planner draws on the host map.

The host map surface is shared with other layers (tiles, property pins), so
every artifact the planner adds is tagged and tracked by `RouteArtifactLayer`.
`RouteRenderer` drives one cycle per trigger: clear, compute, then draw only
if no newer trigger has arrived in the meantime.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Protocol, Sequence

from .geo import bounds
from .logging_utils import log_event
from .models import LatLng, PropertyRecord, RouteSegment, RouteSummary, TransportMode, Waypoint
from .properties import match_property, property_popup
from .speed_model import mode_label

ROUTE_TAG = "landroute"
FIT_PADDING_PX = 50

ArtifactKind = Literal["route_line", "waypoint_marker"]
Bounds = tuple[tuple[float, float], tuple[float, float]]

MODE_COLORS: dict[TransportMode, str] = {
    TransportMode.WALKING: "#F59E0B",
    TransportMode.CAR: "#63B3ED",
    TransportMode.TRUCK: "#8B5CF6",
    TransportMode.DRONE: "#EC4899",
    TransportMode.SHIP: "#0EA5E9",
    TransportMode.PLANE: "#F43F5E",
}

MARKER_COLORS: dict[str, str] = {
    "start": "#10B981",
    "end": "#EF4444",
    "intermediate": "#3B82F6",
}


@dataclass(frozen=True)
class MapArtifact:
    id: str
    kind: ArtifactKind
    tag: str
    coordinates: tuple[tuple[float, float], ...]  # [lat, lon]
    style: dict[str, Any] = field(default_factory=dict)
    properties: dict[str, Any] = field(default_factory=dict)

    def to_feature(self) -> dict[str, Any]:
        if self.kind == "waypoint_marker":
            lat, lon = self.coordinates[0]
            geometry: dict[str, Any] = {"type": "Point", "coordinates": [lon, lat]}
        else:
            geometry = {"type": "LineString", "coordinates": [[lon, lat] for lat, lon in self.coordinates]}
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": geometry,
            "properties": {"kind": self.kind, "tag": self.tag, "style": dict(self.style), **self.properties},
        }


class MapSurface(Protocol):
    def add_layer(self, artifact: MapArtifact) -> None: ...

    def remove_layer(self, artifact_id: str) -> None: ...

    def layers(self) -> list[MapArtifact]: ...

    def fit_bounds(self, view: Bounds, *, padding: int) -> None: ...


class InMemoryMapSurface:
    """Host surface kept as GeoJSON-ready artifacts; used by the API and CLI."""

    def __init__(self) -> None:
        self._layers: dict[str, MapArtifact] = {}
        self.view: Bounds | None = None
        self.padding: int = 0

    def add_layer(self, artifact: MapArtifact) -> None:
        self._layers[artifact.id] = artifact

    def remove_layer(self, artifact_id: str) -> None:
        self._layers.pop(artifact_id, None)

    def layers(self) -> list[MapArtifact]:
        return list(self._layers.values())

    def fit_bounds(self, view: Bounds, *, padding: int) -> None:
        self.view = view
        self.padding = padding

    def to_geojson(self) -> dict[str, Any]:
        collection: dict[str, Any] = {
            "type": "FeatureCollection",
            "features": [artifact.to_feature() for artifact in self._layers.values()],
        }
        if self.view is not None:
            (south, west), (north, east) = self.view
            collection["bbox"] = [west, south, east, north]
        return collection


def marker_label(index: int, count: int) -> str:
    if index == 0:
        return "A"
    if index == count - 1:
        return "B"
    return str(index)


def _marker_role(index: int, count: int) -> str:
    if index == 0:
        return "start"
    if index == count - 1:
        return "end"
    return "intermediate"


class RouteArtifactLayer:
    """Explicit handle on the artifacts this planner owns; `clear()` then `draw()`."""

    def __init__(self, surface: MapSurface, *, tag: str = ROUTE_TAG) -> None:
        self.surface = surface
        self.tag = tag
        self._owned: list[str] = []

    @property
    def artifact_ids(self) -> list[str]:
        return list(self._owned)

    def clear(self) -> int:
        removed = 0
        for artifact_id in self._owned:
            self.surface.remove_layer(artifact_id)
            removed += 1
        self._owned.clear()

        # Sweep anything route-tagged that slipped out of our bookkeeping.
        orphans = [artifact.id for artifact in self.surface.layers() if artifact.tag == self.tag]
        for artifact_id in orphans:
            self.surface.remove_layer(artifact_id)
        if orphans:
            log_event("route_artifacts_orphans_removed", count=len(orphans))
        return removed + len(orphans)

    def _add(self, artifact: MapArtifact) -> None:
        self.surface.add_layer(artifact)
        self._owned.append(artifact.id)

    def draw(
        self,
        segments: Sequence[RouteSegment],
        waypoints: Sequence[LatLng],
        *,
        cycle: int,
        properties: Sequence[PropertyRecord] = (),
    ) -> list[MapArtifact]:
        self.clear()

        drawn: list[MapArtifact] = []
        for index, segment in enumerate(segments):
            style: dict[str, Any] = {
                "color": MODE_COLORS.get(segment.mode, "#63B3ED"),
                "opacity": 0.8,
                "weight": 6,
            }
            if segment.is_fallback:
                style["dash_array"] = "10, 10"
            artifact = MapArtifact(
                id=f"{self.tag}:{cycle}:segment:{index}",
                kind="route_line",
                tag=self.tag,
                coordinates=tuple(segment.polyline),
                style=style,
                properties={
                    "mode": segment.mode.value,
                    "mode_label": mode_label(segment.mode),
                    "description": segment.description,
                    "distance": segment.distance,
                    "time": segment.time,
                    "reason": segment.reason,
                },
            )
            self._add(artifact)
            drawn.append(artifact)

        count = len(waypoints)
        for index, point in enumerate(waypoints):
            role = _marker_role(index, count)
            marker_properties: dict[str, Any] = {"label": marker_label(index, count), "role": role}
            if isinstance(point, Waypoint) and point.label:
                marker_properties["name"] = point.label
            record = match_property(point, properties) if properties else None
            if record is not None:
                marker_properties["popup"] = property_popup(record)
            artifact = MapArtifact(
                id=f"{self.tag}:{cycle}:marker:{index}",
                kind="waypoint_marker",
                tag=self.tag,
                coordinates=((point.lat, point.lon),),
                style={"color": MARKER_COLORS[role]},
                properties=marker_properties,
            )
            self._add(artifact)
            drawn.append(artifact)

        view = bounds(coord for artifact in drawn for coord in artifact.coordinates)
        if view is not None:
            self.surface.fit_bounds(view, padding=FIT_PADDING_PX)
        return drawn


@dataclass(frozen=True)
class RenderOutcome:
    generation: int
    superseded: bool
    summary: RouteSummary | None


SummaryCallback = Callable[[RouteSummary | None], None]
RouteComputer = Callable[[Sequence[LatLng], TransportMode], Awaitable[RouteSummary | None]]


class RouteRenderer:
    """Lifecycle manager: last trigger wins, stale cycles never draw or report."""

    def __init__(
        self,
        surface: MapSurface,
        *,
        compute: RouteComputer,
        on_summary: SummaryCallback | None = None,
        tag: str = ROUTE_TAG,
    ) -> None:
        self.layer = RouteArtifactLayer(surface, tag=tag)
        self._compute = compute
        self._on_summary = on_summary
        self._generation = 0
        self._pending: asyncio.Task[RenderOutcome] | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def _emit(self, summary: RouteSummary | None) -> None:
        if self._on_summary is not None:
            self._on_summary(summary)

    async def update(
        self,
        waypoints: Sequence[LatLng],
        mode: TransportMode,
        *,
        properties: Sequence[PropertyRecord] = (),
    ) -> RenderOutcome:
        self._generation += 1
        generation = self._generation
        self.layer.clear()

        points = list(waypoints)
        if len(points) < 2:
            self._emit(None)
            return RenderOutcome(generation=generation, superseded=False, summary=None)

        summary = await self._compute(points, mode)
        if generation != self._generation:
            log_event("render_cycle_superseded", generation=generation, current=self._generation)
            return RenderOutcome(generation=generation, superseded=True, summary=None)

        if summary is not None:
            self.layer.draw(summary.segments, points, cycle=generation, properties=properties)
        self._emit(summary)
        log_event(
            "render_cycle_complete",
            generation=generation,
            artifacts=len(self.layer.artifact_ids),
        )
        return RenderOutcome(generation=generation, superseded=False, summary=summary)

    def schedule(
        self,
        waypoints: Sequence[LatLng],
        mode: TransportMode,
        *,
        properties: Sequence[PropertyRecord] = (),
    ) -> asyncio.Task[RenderOutcome]:
        """Fire-and-forget trigger that also cancels the superseded in-flight cycle."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        task = asyncio.create_task(self.update(waypoints, mode, properties=properties))
        self._pending = task
        return task

    def teardown(self) -> None:
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self.layer.clear()
