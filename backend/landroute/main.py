from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .formatting import summarize
from .hub_locator import HubSource
from .logging_utils import log_event
from .lookup_cache import clear_hub_cache, hub_cache_stats
from .metrics_store import call_stats_snapshot
from .models import (
    HubRequest,
    HubResponse,
    MapUpdateResponse,
    ModeInfo,
    ModeListResponse,
    RouteRequest,
    RouteResponse,
    TransportMode,
    Waypoint,
)
from .properties import waypoints_from_properties
from .rendering import InMemoryMapSurface, RouteRenderer
from .services import PlannerServices
from .speed_model import is_ground_mode, mode_label, speed_for_mode


@asynccontextmanager
async def lifespan(app: FastAPI):
    services = PlannerServices.live()
    surface = InMemoryMapSurface()
    app.state.services = services
    app.state.surface = surface
    app.state.renderer = RouteRenderer(surface, compute=services.compute)
    yield
    app.state.renderer.teardown()
    await services.aclose()


app = FastAPI(title="Parcel Route Planner", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def planner_services(request: Request) -> PlannerServices:
    services: PlannerServices | None = getattr(request.app.state, "services", None)  # type: ignore[attr-defined]
    if services is None:
        raise HTTPException(status_code=503, detail="planner services not initialised")
    return services


def hub_source(services: Annotated[PlannerServices, Depends(planner_services)]) -> HubSource:
    return services.hub_source


def map_session(request: Request) -> tuple[RouteRenderer, InMemoryMapSurface]:
    renderer: RouteRenderer | None = getattr(request.app.state, "renderer", None)  # type: ignore[attr-defined]
    surface: InMemoryMapSurface | None = getattr(request.app.state, "surface", None)  # type: ignore[attr-defined]
    if renderer is None or surface is None:
        raise HTTPException(status_code=503, detail="map session not initialised")
    return renderer, surface


ServicesDep = Annotated[PlannerServices, Depends(planner_services)]
HubSourceDep = Annotated[HubSource, Depends(hub_source)]
MapSessionDep = Annotated[tuple[RouteRenderer, InMemoryMapSurface], Depends(map_session)]


def _waypoints_for(req: RouteRequest) -> list[Waypoint]:
    # Explicit waypoints win; otherwise fall back to the parcels' centers.
    if req.waypoints:
        return list(req.waypoints)
    return waypoints_from_properties(req.properties)


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Route planner is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/modes", response_model=ModeListResponse)
async def list_modes() -> ModeListResponse:
    return ModeListResponse(
        modes=[
            ModeInfo(
                mode=mode,
                label=mode_label(mode),
                speed_mps=speed_for_mode(mode),
                speed_kmh=round(speed_for_mode(mode) * 3.6, 2),
                ground=is_ground_mode(mode),
            )
            for mode in TransportMode
        ]
    )


@app.post("/route", response_model=RouteResponse)
async def plan_route(req: RouteRequest, services: ServicesDep) -> RouteResponse:
    t0 = time.perf_counter()
    waypoints = _waypoints_for(req)
    summary = await services.compute(waypoints, req.mode)
    log_event(
        "route_request",
        mode=req.mode.value,
        waypoints=len(waypoints),
        segments=len(summary.segments) if summary else 0,
        duration_ms=round((time.perf_counter() - t0) * 1000.0, 2),
    )
    return RouteResponse(summary=summary, formatted=summarize(summary) if summary else None)


@app.post("/hubs", response_model=HubResponse)
async def find_hubs(req: HubRequest, hubs: HubSourceDep) -> HubResponse:
    found = await hubs.find_hubs(req.center, req.radius_m, req.hub_type)
    return HubResponse(hubs=found)


@app.post("/map/update", response_model=MapUpdateResponse)
async def update_map(req: RouteRequest, session: MapSessionDep) -> MapUpdateResponse:
    renderer, surface = session
    outcome = await renderer.update(_waypoints_for(req), req.mode, properties=req.properties)
    return MapUpdateResponse(
        generation=outcome.generation,
        superseded=outcome.superseded,
        summary=outcome.summary,
        artifacts=surface.to_geojson(),
    )


@app.get("/map")
async def current_map(session: MapSessionDep) -> dict[str, object]:
    renderer, surface = session
    return {"generation": renderer.generation, "artifacts": surface.to_geojson()}


@app.delete("/map")
async def clear_map(session: MapSessionDep) -> dict[str, object]:
    renderer, surface = session
    renderer.teardown()
    return {"generation": renderer.generation, "artifacts": surface.to_geojson()}


@app.get("/metrics")
async def metrics() -> dict[str, object]:
    return {"external_calls": call_stats_snapshot(), "hub_cache": hub_cache_stats()}


@app.delete("/cache/hubs")
async def clear_hubs_cache() -> dict[str, int]:
    cleared = clear_hub_cache()
    log_event("hub_cache_cleared", cleared=cleared)
    return {"cleared": cleared}
