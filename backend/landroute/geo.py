from __future__ import annotations

import math
from typing import Iterable, Sequence

from .models import LatLng

EARTH_RADIUS_M = 6_371_000.0

LatLon = tuple[float, float]


def haversine_m(a: LatLng | LatLon, b: LatLng | LatLon) -> float:
    lat1, lon1 = _pair(a)
    lat2, lon2 = _pair(b)
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dlat = p2 - p1
    dlon = math.radians(lon2 - lon1)
    x = math.sin(dlat / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(x)))


def _pair(p: LatLng | LatLon) -> LatLon:
    if isinstance(p, LatLng):
        return (p.lat, p.lon)
    return (float(p[0]), float(p[1]))


def interior_points(a: LatLng, b: LatLng, count: int) -> list[LatLng]:
    """Evenly spaced points strictly between a and b (endpoints excluded).

    Linear in lat/lon, which is what the coarse box heuristics expect.
    """
    n = max(0, int(count))
    out: list[LatLng] = []
    for i in range(1, n + 1):
        t = i / (n + 1)
        out.append(
            LatLng(
                lat=a.lat + (b.lat - a.lat) * t,
                lon=a.lon + (b.lon - a.lon) * t,
            )
        )
    return out


def straight_polyline(a: LatLng, b: LatLng) -> list[LatLon]:
    return [(a.lat, a.lon), (b.lat, b.lon)]


def bounds(points: Iterable[LatLon]) -> tuple[LatLon, LatLon] | None:
    """((south, west), (north, east)) or None for an empty input."""
    lats: list[float] = []
    lons: list[float] = []
    for lat, lon in points:
        lats.append(float(lat))
        lons.append(float(lon))
    if not lats:
        return None
    return (min(lats), min(lons)), (max(lats), max(lons))


def same_point(a: LatLon | LatLng, b: LatLon | LatLng, *, tol: float = 1e-6) -> bool:
    pa, pb = _pair(a), _pair(b)
    return math.isclose(pa[0], pb[0], abs_tol=tol) and math.isclose(pa[1], pb[1], abs_tol=tol)


def polyline_length_m(points: Sequence[LatLon]) -> float:
    return sum(haversine_m(points[i], points[i + 1]) for i in range(len(points) - 1))
