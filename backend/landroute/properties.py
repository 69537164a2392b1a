from __future__ import annotations

import math
import re
from typing import Sequence

from .geo import same_point
from .logging_utils import log_warning
from .models import LatLng, PropertyRecord, Waypoint

# Upstream centers are "(lon, lat)", longitude first.
_CENTER_RE = re.compile(r"\(([^,]+),\s*([^)]+)\)")


def parse_center(center: str | None) -> Waypoint | None:
    if not center:
        return None
    match = _CENTER_RE.search(center)
    if match is None:
        log_warning("property_center_unmatched", center=center)
        return None
    try:
        lon = float(match.group(1))
        lat = float(match.group(2))
    except ValueError:
        log_warning("property_center_unparseable", center=center)
        return None
    if math.isnan(lat) or math.isnan(lon):
        log_warning("property_center_nan", center=center)
        return None
    try:
        return Waypoint(lat=lat, lon=lon)
    except ValueError:
        log_warning("property_center_out_of_range", center=center)
        return None


def waypoints_from_properties(records: Sequence[PropertyRecord]) -> list[Waypoint]:
    waypoints: list[Waypoint] = []
    for record in records:
        point = parse_center(record.center)
        if point is None:
            continue
        waypoints.append(point.model_copy(update={"label": record.description or record.id}))
    return waypoints


def match_property(point: LatLng, records: Sequence[PropertyRecord]) -> PropertyRecord | None:
    for record in records:
        center = parse_center(record.center)
        if center is not None and same_point(center, point):
            return record
    return None


def property_popup(record: PropertyRecord) -> dict[str, str | int | float]:
    popup: dict[str, str | int | float] = {"id": record.id}
    if record.description:
        popup["description"] = record.description
    if record.country:
        popup["country"] = record.country
    if record.tile_count is not None:
        popup["tile_count"] = record.tile_count
    if record.landfield_tier is not None:
        popup["landfield_tier"] = record.landfield_tier
    if record.price is not None:
        popup["price"] = record.price
    return popup
