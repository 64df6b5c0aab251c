from __future__ import annotations

from dataclasses import dataclass
from typing import Any

REASON_CODES: frozenset[str] = frozenset(
    {
        "malformed_extract",
        "empty_graph",
        "extract_unavailable",
        "extract_format_unsupported",
        "route_unreachable",
        "raster_no_coverage",
    }
)


@dataclass(eq=False)
class MapDataError(ValueError):
    """Fatal problem with the map data the service was started on."""

    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


def normalize_reason_code(reason_code: str, *, default: str = "malformed_extract") -> str:
    code = str(reason_code or "").strip()
    if code in REASON_CODES:
        return code
    return default
