from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .errors import DirectionsError
from .geo import polyline_length_m
from .logging_utils import log_event
from .metrics_store import record_call
from .models import LatLng, RoutingProfile
from .settings import settings

SERVICE = "directions"


@dataclass(frozen=True)
class RoadRoute:
    polyline: list[tuple[float, float]]  # [lat, lon]
    distance: float  # metres
    duration: float  # seconds


class RoadRouter(Protocol):
    async def fetch_route(
        self,
        *,
        profile: RoutingProfile,
        start: LatLng,
        end: LatLng,
        alternatives: bool = False,
    ) -> RoadRoute | None: ...


def _format_directions_error(resp: httpx.Response) -> str:
    """Best-effort decode of OSRM/Mapbox JSON error payloads."""
    try:
        data = resp.json()
        if isinstance(data, dict):
            code = data.get("code")
            message = data.get("message")
            if code and message:
                return f"directions {resp.status_code} {code}: {message}"
            if code:
                return f"directions {resp.status_code} {code}"
            if message:
                return f"directions {resp.status_code}: {message}"
    except ValueError:
        # not JSON, fall through to text
        pass

    body = (resp.text or "").strip().replace("\n", " ")
    if len(body) > 240:
        body = body[:240] + "..."
    if body:
        return f"directions {resp.status_code}: {body}"
    return f"directions HTTP {resp.status_code}"


def _fail(reason_code: str, message: str) -> DirectionsError:
    return DirectionsError(service=SERVICE, reason_code=reason_code, message=message)


def parse_route_payload(data: Any) -> RoadRoute:
    """Pick the first route of an OSRM-style response and flip its GeoJSON to (lat, lon)."""
    if not isinstance(data, dict):
        raise _fail("service_bad_payload", "response is not an object")
    if data.get("code") != "Ok":
        raise _fail(
            "service_no_result",
            f"code={data.get('code')} message={data.get('message')}",
        )

    routes = data.get("routes", [])
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        raise _fail("service_no_result", "no routes returned")
    route = routes[0]

    geom = route.get("geometry")
    coords = geom.get("coordinates") if isinstance(geom, dict) else None
    if not isinstance(coords, list):
        raise _fail("service_bad_payload", "route missing geometry")

    polyline: list[tuple[float, float]] = []
    for pt in coords:
        if (
            isinstance(pt, (list, tuple))
            and len(pt) >= 2
            and isinstance(pt[0], (int, float))
            and isinstance(pt[1], (int, float))
        ):
            polyline.append((float(pt[1]), float(pt[0])))
    if len(polyline) < 2:
        raise _fail("service_bad_payload", "route geometry invalid")

    distance = route.get("distance")
    duration = route.get("duration")
    distance_m = float(distance) if isinstance(distance, (int, float)) else 0.0
    duration_s = float(duration) if isinstance(duration, (int, float)) else 0.0
    if distance_m <= 0:
        distance_m = polyline_length_m(polyline)
    return RoadRoute(polyline=polyline, distance=distance_m, duration=max(duration_s, 0.0))


class DirectionsClient:
    """Single-attempt client for an OSRM/Mapbox-compatible directions API.

    Failures never raise out of `fetch_route`; callers get None and decide
    on their own fallback. One attempt per call, no retry.
    """

    def __init__(
        self,
        *,
        base_url: str,
        access_token: str = "",
        require_token: bool = True,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token.strip()
        self.require_token = require_token
        timeout = float(timeout_s if timeout_s is not None else settings.external_call_timeout_s)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(5.0, timeout)),
            headers={"accept": "application/json", "user-agent": settings.http_user_agent},
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> DirectionsClient:
        return cls(
            base_url=settings.directions_base_url,
            access_token=settings.directions_access_token,
            require_token=settings.directions_require_token,
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url) and (bool(self.access_token) or not self.require_token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_route(
        self,
        *,
        profile: RoutingProfile,
        start: LatLng,
        end: LatLng,
        alternatives: bool = False,
    ) -> RoadRoute | None:
        if not self.configured:
            log_event("directions_skipped", reason_code="service_unconfigured", profile=profile)
            return None

        t0 = time.perf_counter()
        try:
            route = await self._request(profile=profile, start=start, end=end, alternatives=alternatives)
        except DirectionsError as e:
            record_call(SERVICE, duration_ms=(time.perf_counter() - t0) * 1000.0, reason_code=e.reason_code)
            log_event(
                "directions_failed",
                reason_code=e.reason_code,
                detail=e.message,
                profile=profile,
            )
            return None

        record_call(SERVICE, duration_ms=(time.perf_counter() - t0) * 1000.0)
        return route

    async def _request(
        self,
        *,
        profile: RoutingProfile,
        start: LatLng,
        end: LatLng,
        alternatives: bool,
    ) -> RoadRoute:
        coords = f"{start.lon},{start.lat};{end.lon},{end.lat}"
        url = f"{self.base_url}/{profile}/{coords}"
        params: dict[str, str] = {
            "overview": "full",
            "geometries": "geojson",
            "alternatives": "true" if alternatives else "false",
        }
        if self.access_token:
            params["access_token"] = self.access_token

        try:
            resp = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise _fail("service_timeout", f"{type(e).__name__}: {e!r}") from e
        except httpx.HTTPError as e:
            # httpx exceptions can stringify to "", so include the type.
            raise _fail("service_transport_error", f"{type(e).__name__}: {e!r}") from e

        if not resp.is_success:
            raise _fail("service_http_error", _format_directions_error(resp))

        try:
            data = resp.json()
        except ValueError as e:
            raise _fail("service_bad_payload", "response is not JSON") from e
        return parse_route_payload(data)
