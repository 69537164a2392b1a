from __future__ import annotations

# ruff: noqa: E402
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from landroute.formatting import summarize
from landroute.models import LatLng, PropertyRecord, RouteSummary, TransportMode, Waypoint
from landroute.properties import waypoints_from_properties
from landroute.rendering import InMemoryMapSurface, RouteRenderer
from landroute.services import PlannerServices


def parse_waypoint(raw: str) -> Waypoint:
    try:
        lat_s, lon_s = raw.split(",", 1)
        return Waypoint(lat=float(lat_s), lon=float(lon_s))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"waypoint must be LAT,LON (got {raw!r})") from e


def load_properties(path: str) -> list[PropertyRecord]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("properties", [])
    if not isinstance(payload, list):
        raise ValueError("properties JSON must be a list or an object with 'properties'")
    return [PropertyRecord.model_validate(item) for item in payload]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plan a multi-stop route across parcel waypoints.")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--waypoint", action="append", type=parse_waypoint, dest="waypoints")
    group.add_argument("--properties-json", default=None)
    parser.add_argument("--mode", choices=[mode.value for mode in TransportMode], default="car")
    parser.add_argument("--offline", action="store_true", help="Skip every external service.")
    parser.add_argument("--geojson-out", default=None)
    return parser


async def run_plan(args: argparse.Namespace, *, services: PlannerServices | None = None) -> dict[str, Any]:
    properties: list[PropertyRecord] = []
    if args.properties_json:
        properties = load_properties(args.properties_json)
        waypoints: list[LatLng] = list(waypoints_from_properties(properties))
    else:
        waypoints = list(args.waypoints or [])

    owned = services is None
    if services is None:
        services = PlannerServices.offline() if args.offline else PlannerServices.live()

    delivered: list[RouteSummary | None] = []
    surface = InMemoryMapSurface()
    renderer = RouteRenderer(surface, compute=services.compute, on_summary=delivered.append)
    try:
        await renderer.update(waypoints, TransportMode(args.mode), properties=properties)
    finally:
        if owned:
            await services.aclose()

    summary = delivered[-1] if delivered else None
    if args.geojson_out:
        out = Path(args.geojson_out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(surface.to_geojson(), indent=2), encoding="utf-8")

    return {
        "summary": summary.model_dump(mode="json") if summary else None,
        "formatted": summarize(summary) if summary else None,
        "artifact_count": len(surface.layers()),
    }


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    payload = asyncio.run(run_plan(args))
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
