from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_out_dir() -> str:
    # Logs land in backend/out by default so source folders stay clean.
    return str(Path(__file__).resolve().parents[1] / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping service endpoints and tunables out of code."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Directions service (OSRM / Mapbox wire format).
    directions_base_url: str = Field(
        default="https://api.mapbox.com/directions/v5/mapbox",
        alias="DIRECTIONS_BASE_URL",
    )
    directions_access_token: str = Field(default="", alias="DIRECTIONS_ACCESS_TOKEN")
    # Self-hosted OSRM needs no token; hosted providers reject anonymous calls.
    directions_require_token: bool = Field(default=True, alias="DIRECTIONS_REQUIRE_TOKEN")

    # Geodata tag-query service.
    overpass_url: str = Field(
        default="https://overpass-api.de/api/interpreter",
        alias="OVERPASS_URL",
    )

    # Best-effort "is this point water" probes.
    onwater_url: str = Field(default="https://api.onwater.io/api/v1/results", alias="ONWATER_URL")
    onwater_access_token: str = Field(default="", alias="ONWATER_ACCESS_TOKEN")
    reverse_geocode_url: str = Field(
        default="https://nominatim.openstreetmap.org/reverse",
        alias="REVERSE_GEOCODE_URL",
    )
    reverse_geocode_enabled: bool = Field(default=False, alias="REVERSE_GEOCODE_ENABLED")

    http_user_agent: str = Field(default="landroute/0.1 (parcel route planner)", alias="HTTP_USER_AGENT")
    external_call_timeout_s: float = Field(default=15.0, ge=0.5, le=120.0, alias="EXTERNAL_CALL_TIMEOUT_S")

    # Route composition.
    leg_concurrency: int = Field(default=4, ge=1, le=64, alias="LEG_CONCURRENCY")
    hub_search_radius_m: float = Field(default=200_000.0, gt=0.0, alias="HUB_SEARCH_RADIUS_M")
    multimodal_min_leg_m: float = Field(default=50_000.0, ge=0.0, alias="MULTIMODAL_MIN_LEG_M")
    port_access_min_m: float = Field(default=1_000.0, ge=0.0, alias="PORT_ACCESS_MIN_M")
    water_sample_count: int = Field(default=10, ge=1, le=100, alias="WATER_SAMPLE_COUNT")

    hub_cache_ttl_s: int = Field(default=3600, ge=1, alias="HUB_CACHE_TTL_S")
    hub_cache_max_entries: int = Field(default=512, ge=1, alias="HUB_CACHE_MAX_ENTRIES")


settings = Settings()
