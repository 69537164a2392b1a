from __future__ import annotations

import math

from .models import RouteSummary
from .speed_model import mode_label


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{meters:.0f} m"
    return f"{meters / 1000:.2f} km"


def format_time(seconds: float) -> str:
    total = max(0.0, float(seconds))
    h = math.floor(total / 3600)
    m = math.floor((total % 3600) / 60)
    s = math.floor(total % 60)
    parts = [f"{h}h" if h > 0 else "", f"{m}m" if m > 0 else "", f"{s}s" if s > 0 else ""]
    return " ".join(part for part in parts if part)


def summarize(summary: RouteSummary) -> dict[str, object]:
    avg_speed_kmh = (
        (summary.total_distance / 1000.0) / (summary.total_time / 3600.0) if summary.total_time > 0 else 0.0
    )
    return {
        "total_distance": format_distance(summary.total_distance),
        "total_time": format_time(summary.total_time),
        "avg_speed_kmh": round(avg_speed_kmh, 2),
        "is_multi_modal": summary.is_multi_modal,
        "segments": [
            {
                "mode": mode_label(segment.mode),
                "description": segment.description,
                "distance": format_distance(segment.distance),
                "time": format_time(segment.time),
                "degraded": segment.is_fallback,
            }
            for segment in summary.segments
        ],
    }
