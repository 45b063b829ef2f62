"""Geometry helpers shared by the test modules."""

from __future__ import annotations

import csv
import math
from pathlib import Path
from typing import Iterable, Sequence

from territory_claim.models import ClaimedTerritory, GeoPoint, TimestampedFix

LAT0 = 31.2304
LON0 = 121.4737
T0_MS = 1_735_689_600_000  # 2025-01-01 08:00:00 +08:00

_K_LAT = 111_320.0
_K_LON = 111_320.0 * math.cos(math.radians(LAT0))

# 60 m x 40 m rectangle walked counter-clockwise in 12 samples; the 12th sample
# is the first one (with at least 10 points) to come back within 30 m of the start.
RECT_60x40 = [
    (0, 0), (15, 0), (30, 0), (45, 0), (60, 0),
    (60, 20), (60, 40),
    (44, 40), (29, 40), (14, 40), (0, 40),
    (0, 18),
]

# Long thin parallelogram along the diagonal: closes, no crossing, area 1500 m2,
# but only ~13 % of its bounding box.
DIAGONAL_SLIVER = [
    (0, 0), (20, 20), (40, 40), (60, 60), (80, 80), (100, 100),
    (100, 115), (80, 95), (60, 75), (40, 55), (20, 35), (0, 15),
]

# Crosses itself between segment 1 and segment 5, far from the closing segment.
FIGURE_EIGHT = [
    (0, 0), (10, 0), (30, 30), (40, 30), (40, 0),
    (30, 0), (10, 30), (0, 30), (0, 10), (0, -5),
]


def pt(x_m: float, y_m: float) -> GeoPoint:
    """GeoPoint x meters east and y meters north of (LAT0, LON0)."""

    return GeoPoint(latitude=LAT0 + y_m / _K_LAT, longitude=LON0 + x_m / _K_LON)


def path_of(offsets: Iterable[tuple[float, float]]) -> list[GeoPoint]:
    return [pt(x, y) for x, y in offsets]


def fixes_of(
    offsets: Sequence[tuple[float, float]],
    *,
    start_ms: int = T0_MS,
    interval_s: float = 10.0,
    accuracy_m: float = 5.0,
) -> list[TimestampedFix]:
    return [
        TimestampedFix(
            point=pt(x, y),
            timestamp_ms=start_ms + int(i * interval_s * 1000),
            horizontal_accuracy_m=accuracy_m,
        )
        for i, (x, y) in enumerate(offsets)
    ]


def fix_at(x_m: float, y_m: float, t_ms: int, accuracy_m: float = 5.0, speed_mps: float | None = None) -> TimestampedFix:
    return TimestampedFix(point=pt(x_m, y_m), timestamp_ms=t_ms, horizontal_accuracy_m=accuracy_m, reported_speed_mps=speed_mps)


def square_territory(owner: str, x0: float, y0: float, size: float) -> ClaimedTerritory:
    return ClaimedTerritory(
        owner_id=owner,
        vertices=(pt(x0, y0), pt(x0 + size, y0), pt(x0 + size, y0 + size), pt(x0, y0 + size)),
    )


def write_fixes_csv(path: Path, fixes: Iterable[TimestampedFix]) -> Path:
    with path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["geoTime", "latitude", "longitude", "horizontalAccuracy", "speed"])
        w.writeheader()
        for fx in fixes:
            w.writerow(
                {
                    "geoTime": fx.timestamp_ms,
                    "latitude": f"{fx.point.latitude:.8f}",
                    "longitude": f"{fx.point.longitude:.8f}",
                    "horizontalAccuracy": fx.horizontal_accuracy_m,
                    "speed": -1 if fx.reported_speed_mps is None else fx.reported_speed_mps,
                }
            )
    return path
