from __future__ import annotations

from .models import RoutingProfile, TransportMode

# Metres per second.
MODE_SPEEDS_MPS: dict[TransportMode, float] = {
    TransportMode.SHIP: 10.3,  # ~20 knots
    TransportMode.PLANE: 250.0,
    TransportMode.DRONE: 25.0,
    TransportMode.CAR: 16.67,  # 60 km/h
    TransportMode.TRUCK: 13.89,  # 50 km/h
    TransportMode.WALKING: 1.5,
}

MODE_LABELS: dict[TransportMode, str] = {
    TransportMode.WALKING: "Walking",
    TransportMode.CAR: "Car",
    TransportMode.TRUCK: "Truck",
    TransportMode.DRONE: "Drone",
    TransportMode.SHIP: "Ship",
    TransportMode.PLANE: "Plane",
}

GROUND_MODES: frozenset[TransportMode] = frozenset(
    {TransportMode.WALKING, TransportMode.CAR, TransportMode.TRUCK}
)
DIRECT_MODES: frozenset[TransportMode] = frozenset(
    {TransportMode.DRONE, TransportMode.SHIP, TransportMode.PLANE}
)

_PROFILES: dict[TransportMode, RoutingProfile] = {
    TransportMode.WALKING: "walking",
    TransportMode.CAR: "driving",
    TransportMode.TRUCK: "driving",
}


def _coerce_mode(mode: TransportMode | str) -> TransportMode | None:
    if isinstance(mode, TransportMode):
        return mode
    try:
        return TransportMode(str(mode).strip().lower())
    except ValueError:
        return None


def speed_for_mode(mode: TransportMode | str) -> float:
    coerced = _coerce_mode(mode)
    if coerced is None:
        return MODE_SPEEDS_MPS[TransportMode.WALKING]
    return MODE_SPEEDS_MPS[coerced]


def travel_time_s(distance_m: float, mode: TransportMode | str) -> float:
    return max(0.0, float(distance_m)) / speed_for_mode(mode)


def is_ground_mode(mode: TransportMode | str) -> bool:
    return _coerce_mode(mode) in GROUND_MODES


def routing_profile(mode: TransportMode | str) -> RoutingProfile | None:
    coerced = _coerce_mode(mode)
    if coerced is None:
        return None
    return _PROFILES.get(coerced)


def mode_label(mode: TransportMode | str) -> str:
    coerced = _coerce_mode(mode)
    if coerced is None:
        return str(mode).title()
    return MODE_LABELS[coerced]
