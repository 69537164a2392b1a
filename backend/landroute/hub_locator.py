from __future__ import annotations

import re
import time
from typing import Any, Protocol

import httpx

from .errors import GeodataError
from .geo import haversine_m
from .logging_utils import log_event
from .lookup_cache import HUB_CACHE, HubCacheStore, hub_cache_key
from .metrics_store import record_call
from .models import HubType, LatLng, TransportHub
from .settings import settings

SERVICE = "overpass"
MAX_HUBS = 10
BASE_IMPORTANCE = 1.0

# Overpass tag filters per hub type; each is queried on nodes, ways and relations.
TAG_FILTERS: dict[str, tuple[str, ...]] = {
    "airport": (
        '["aeroway"="aerodrome"]["iata"]',
        '["aeroway"="aerodrome"]["icao"]',
    ),
    "port": (
        '["harbour"="yes"]',
        '["industrial"="port"]',
        '["landuse"="port"]',
        '["amenity"="ferry_terminal"]',
        '["seamark:type"="harbour"]',
    ),
    "city": (
        '["place"~"^(city|town)$"]',
        '["boundary"="administrative"]["admin_level"~"^(4|6|8)$"]["place"]',
    ),
    "station": ('["railway"="station"]',),
}

_ELEMENT_TYPES = ("node", "way", "relation")
_DIGITS_RE = re.compile(r"[^\d]")


class HubSource(Protocol):
    async def find_hubs(self, center: LatLng, radius_m: float, hub_type: HubType) -> list[TransportHub]: ...


def build_overpass_query(center: LatLng, radius_m: float, hub_type: HubType, *, timeout_s: int = 25) -> str:
    filters = TAG_FILTERS.get(hub_type)
    if not filters:
        raise ValueError(f"unknown hub type: {hub_type}")
    around = f"(around:{int(radius_m)},{center.lat:.6f},{center.lon:.6f})"
    lines = [f"[out:json][timeout:{int(timeout_s)}];", "("]
    for tag_filter in filters:
        for element_type in _ELEMENT_TYPES:
            lines.append(f"  {element_type}{tag_filter}{around};")
    lines.append(");")
    lines.append("out center tags;")
    return "\n".join(lines)


def element_point(element: dict[str, Any]) -> LatLng | None:
    """Node coordinate, or the server-computed center of a way/relation."""
    lat = element.get("lat")
    lon = element.get("lon")
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        center = element.get("center")
        if not isinstance(center, dict):
            return None
        lat = center.get("lat")
        lon = center.get("lon")
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return None
    try:
        return LatLng(lat=float(lat), lon=float(lon))
    except ValueError:
        return None


def _parse_population(raw: Any) -> int | None:
    if isinstance(raw, (int, float)):
        return int(raw)
    if not isinstance(raw, str):
        return None
    # "1,234,567" / "1 234 567" / "12000 (2019)"
    head = raw.split("(")[0].split(";")[0]
    digits = _DIGITS_RE.sub("", head)
    return int(digits) if digits else None


def tag_bonus(hub_type: HubType, tags: dict[str, str], name: str) -> float:
    bonus = 0.0
    if hub_type == "airport":
        if tags.get("iata"):
            bonus += 5
        if tags.get("icao"):
            bonus += 3
        if tags.get("aerodrome:type") == "international" or tags.get("aerodrome") == "international":
            bonus += 7
        if "international" in name.lower():
            bonus += 5
    elif hub_type == "port":
        if tags.get("industrial") == "port" or tags.get("landuse") == "port":
            bonus += 5
        if tags.get("harbour") == "yes":
            bonus += 3
        if tags.get("amenity") == "ferry_terminal":
            bonus += 2
        if tags.get("seamark:type") == "harbour":
            bonus += 2
    elif hub_type == "city":
        population = _parse_population(tags.get("population"))
        if population is not None:
            if population >= 1_000_000:
                bonus += 10
            elif population >= 100_000:
                bonus += 5
            elif population >= 10_000:
                bonus += 2
    return bonus


def distance_decay(distance_m: float, radius_m: float) -> float:
    return max(0.0, 10.0 - distance_m / (radius_m / 10.0))


def rank_elements(
    elements: list[Any],
    *,
    center: LatLng,
    radius_m: float,
    hub_type: HubType,
    limit: int = MAX_HUBS,
) -> list[TransportHub]:
    seen: set[tuple[str, Any]] = set()
    scored: list[TransportHub] = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        key = (str(element.get("type")), element.get("id"))
        if key in seen:
            continue
        seen.add(key)

        point = element_point(element)
        if point is None:
            continue
        raw_tags = element.get("tags")
        tags = {str(k): str(v) for k, v in raw_tags.items()} if isinstance(raw_tags, dict) else {}
        name = tags.get("name") or f"{hub_type.title()} {element.get('id', '?')}"

        distance = haversine_m(center, point)
        importance = BASE_IMPORTANCE + tag_bonus(hub_type, tags, name) + distance_decay(distance, radius_m)
        scored.append(
            TransportHub(
                name=name,
                lat=point.lat,
                lon=point.lon,
                type=hub_type,
                importance=round(importance, 6),
            )
        )

    # Stable sort keeps service order among equal scores.
    scored.sort(key=lambda hub: hub.importance, reverse=True)
    return scored[: max(0, limit)]


class OverpassClient:
    def __init__(
        self,
        *,
        url: str,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        timeout = float(timeout_s if timeout_s is not None else settings.external_call_timeout_s)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(5.0, timeout)),
            headers={"accept": "application/json", "user-agent": settings.http_user_agent},
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> OverpassClient:
        return cls(url=settings.overpass_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, ql: str) -> list[Any]:
        try:
            resp = await self._client.post(self.url, data={"data": ql})
        except httpx.TimeoutException as e:
            raise GeodataError(service=SERVICE, reason_code="service_timeout", message=repr(e)) from e
        except httpx.HTTPError as e:
            raise GeodataError(
                service=SERVICE,
                reason_code="service_transport_error",
                message=f"{type(e).__name__}: {e!r}",
            ) from e
        if not resp.is_success:
            raise GeodataError(service=SERVICE, reason_code="service_http_error", message=f"HTTP {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise GeodataError(service=SERVICE, reason_code="service_bad_payload", message="not JSON") from e
        elements = payload.get("elements") if isinstance(payload, dict) else None
        if not isinstance(elements, list):
            raise GeodataError(service=SERVICE, reason_code="service_bad_payload", message="no elements")
        return elements

    async def query(self, ql: str) -> list[Any]:
        """POST a QL query and return its `elements`; raises GeodataError on any failure."""
        if not self.url:
            raise GeodataError(service=SERVICE, reason_code="service_unconfigured", message="no URL")

        t0 = time.perf_counter()
        try:
            elements = await self._post(ql)
        except GeodataError as e:
            record_call(SERVICE, duration_ms=(time.perf_counter() - t0) * 1000.0, reason_code=e.reason_code)
            raise
        record_call(SERVICE, duration_ms=(time.perf_counter() - t0) * 1000.0)
        return elements


class TransportHubLocator:
    """Ranked nearby airports/ports/cities/stations. Never raises; failures give []."""

    def __init__(
        self,
        client: OverpassClient,
        *,
        cache: HubCacheStore | None = HUB_CACHE,
        limit: int = MAX_HUBS,
    ) -> None:
        self.client = client
        self.cache = cache
        self.limit = limit

    async def find_hubs(self, center: LatLng, radius_m: float, hub_type: HubType) -> list[TransportHub]:
        key = hub_cache_key(hub_type, center.lat, center.lon, radius_m)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        query = build_overpass_query(center, radius_m, hub_type)
        try:
            elements = await self.client.query(query)
        except GeodataError as e:
            log_event(
                "hub_lookup_failed",
                hub_type=hub_type,
                reason_code=e.reason_code,
                detail=e.message,
            )
            return []

        hubs = rank_elements(
            elements,
            center=center,
            radius_m=radius_m,
            hub_type=hub_type,
            limit=self.limit,
        )
        if self.cache is not None:
            self.cache.set(key, hubs)
        log_event("hub_lookup", hub_type=hub_type, candidates=len(elements), returned=len(hubs))
        return hubs
