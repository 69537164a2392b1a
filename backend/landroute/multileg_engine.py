from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from .logging_utils import log_event
from .models import LatLng, RouteSegment, RouteSummary, TransportMode
from .settings import settings


@dataclass(frozen=True)
class LegResult:
    leg_index: int
    segments: list[RouteSegment]


LegComposer = Callable[[LatLng, LatLng, TransportMode], Awaitable[list[RouteSegment]]]


def _compose_legs(waypoints: Sequence[LatLng]) -> list[tuple[LatLng, LatLng]]:
    return [(waypoints[i], waypoints[i + 1]) for i in range(len(waypoints) - 1)]


def is_multi_modal(segments: Sequence[RouteSegment]) -> bool:
    return len(segments) > 1 and len({segment.mode for segment in segments}) > 1


def build_summary(segments: Sequence[RouteSegment]) -> RouteSummary:
    return RouteSummary(
        total_distance=math.fsum(segment.distance for segment in segments),
        total_time=math.fsum(segment.time for segment in segments),
        segments=list(segments),
        is_multi_modal=is_multi_modal(segments),
    )


async def compose_route_summary(
    *,
    waypoints: Sequence[LatLng],
    mode: TransportMode,
    leg_composer: LegComposer,
    concurrency: int | None = None,
) -> RouteSummary | None:
    """Run the composer over every consecutive waypoint pair and merge in leg order.

    Legs run concurrently; completion order never leaks into the segment
    order. Fewer than two waypoints yields None without touching any service.
    """
    if len(waypoints) < 2:
        return None

    legs = _compose_legs(waypoints)
    sem = asyncio.Semaphore(max(1, int(concurrency if concurrency is not None else settings.leg_concurrency)))

    async def one(leg_index: int) -> LegResult:
        leg_origin, leg_destination = legs[leg_index]
        async with sem:
            segments = await leg_composer(leg_origin, leg_destination, mode)
        return LegResult(leg_index=leg_index, segments=segments)

    results = await asyncio.gather(*[one(i) for i in range(len(legs))])

    segments: list[RouteSegment] = []
    for result in sorted(results, key=lambda r: r.leg_index):
        segments.extend(result.segments)

    summary = build_summary(segments)
    log_event(
        "route_summary",
        mode=mode.value,
        legs=len(legs),
        segments=len(segments),
        total_distance_m=round(summary.total_distance, 1),
        total_time_s=round(summary.total_time, 1),
        is_multi_modal=summary.is_multi_modal,
        degraded_segments=sum(1 for s in segments if s.reason is not None),
    )
    return summary
