from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "service_unconfigured",
        "service_timeout",
        "service_http_error",
        "service_transport_error",
        "service_bad_payload",
        "service_no_result",
    }
)

# Human-readable reasons attached to degraded segments.
REASON_ROUTING_UNAVAILABLE = "routing unavailable"
REASON_NO_PORTS = "no suitable ports found"


@dataclass
class ExternalServiceError(RuntimeError):
    """Raised inside a service client; never escapes the client's public methods."""

    service: str
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.reason_code = normalize_reason_code(self.reason_code)

    def __str__(self) -> str:
        return f"{self.service}: {self.message}"


class DirectionsError(ExternalServiceError):
    pass


class GeodataError(ExternalServiceError):
    pass


class WaterProbeError(ExternalServiceError):
    pass


def normalize_reason_code(reason_code: str, *, default: str = "service_transport_error") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
