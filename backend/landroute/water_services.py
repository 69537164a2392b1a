from __future__ import annotations

import time
from typing import Any, Protocol

import httpx

from .errors import WaterProbeError
from .logging_utils import log_event
from .metrics_store import record_call
from .models import LatLng
from .settings import settings


class WaterProbe(Protocol):
    """Remote "is this point water" heuristic. None means "don't know"."""

    name: str

    async def is_water(self, point: LatLng) -> bool | None: ...

    async def aclose(self) -> None: ...


def _build_client(timeout_s: float | None, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
    timeout = float(timeout_s if timeout_s is not None else settings.external_call_timeout_s)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=min(5.0, timeout)),
        headers={"accept": "application/json", "user-agent": settings.http_user_agent},
        transport=transport,
    )


async def _fetch(client: httpx.AsyncClient, *, service: str, url: str, params: dict[str, str]) -> Any:
    try:
        resp = await client.get(url, params=params)
    except httpx.TimeoutException as e:
        raise WaterProbeError(service=service, reason_code="service_timeout", message=repr(e)) from e
    except httpx.HTTPError as e:
        raise WaterProbeError(
            service=service,
            reason_code="service_transport_error",
            message=f"{type(e).__name__}: {e!r}",
        ) from e
    if not resp.is_success:
        raise WaterProbeError(service=service, reason_code="service_http_error", message=f"HTTP {resp.status_code}")
    try:
        return resp.json()
    except ValueError as e:
        raise WaterProbeError(service=service, reason_code="service_bad_payload", message="not JSON") from e


async def _get_json(
    client: httpx.AsyncClient,
    *,
    service: str,
    url: str,
    params: dict[str, str],
) -> Any:
    t0 = time.perf_counter()
    try:
        payload = await _fetch(client, service=service, url=url, params=params)
    except WaterProbeError as e:
        record_call(service, duration_ms=(time.perf_counter() - t0) * 1000.0, reason_code=e.reason_code)
        raise
    record_call(service, duration_ms=(time.perf_counter() - t0) * 1000.0)
    return payload


class OnWaterProbe:
    """onwater.io style lookup: GET {base}/{lat},{lon}?access_token=... -> {"water": bool}."""

    name = "onwater"

    def __init__(
        self,
        *,
        base_url: str,
        access_token: str = "",
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token.strip()
        self._client = _build_client(timeout_s, transport)

    @classmethod
    def from_settings(cls) -> OnWaterProbe:
        return cls(base_url=settings.onwater_url, access_token=settings.onwater_access_token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def is_water(self, point: LatLng) -> bool | None:
        if not self.base_url or not self.access_token:
            return None
        url = f"{self.base_url}/{point.lat:.6f},{point.lon:.6f}"
        try:
            payload = await _get_json(
                self._client,
                service=self.name,
                url=url,
                params={"access_token": self.access_token},
            )
        except WaterProbeError as e:
            log_event("water_probe_failed", probe=self.name, reason_code=e.reason_code, detail=e.message)
            return None
        if isinstance(payload, dict) and isinstance(payload.get("water"), bool):
            return payload["water"]
        return None


class ReverseGeocodeWaterProbe:
    """Nominatim reverse geocoding: no address for a point is taken as open water."""

    name = "reverse_geocode"

    def __init__(
        self,
        *,
        base_url: str,
        enabled: bool = True,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.enabled = enabled
        self._client = _build_client(timeout_s, transport)

    @classmethod
    def from_settings(cls) -> ReverseGeocodeWaterProbe:
        return cls(base_url=settings.reverse_geocode_url, enabled=settings.reverse_geocode_enabled)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def is_water(self, point: LatLng) -> bool | None:
        if not self.enabled or not self.base_url:
            return None
        try:
            payload = await _get_json(
                self._client,
                service=self.name,
                url=self.base_url,
                params={
                    "format": "jsonv2",
                    "lat": f"{point.lat:.6f}",
                    "lon": f"{point.lon:.6f}",
                    "zoom": "3",
                },
            )
        except WaterProbeError as e:
            log_event("water_probe_failed", probe=self.name, reason_code=e.reason_code, detail=e.message)
            return None
        if not isinstance(payload, dict):
            return None
        if payload.get("error"):
            return True
        if payload.get("address") or payload.get("display_name"):
            return False
        return None
