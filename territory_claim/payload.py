"""Outbound territory payloads and inbound territory snapshots.

The persisted row shape matches the backend `territories` table:
path as [{"lat", "lon"}], a PostGIS WKT polygon (longitude first!), a bounding
box, point count, area and ISO timestamps.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

from territory_claim.geo import bounding_box
from territory_claim.models import DEFAULT_TZ, ClaimedTerritory, GeoPoint
from territory_claim.timeutils import dt_from_epoch_ms

logger = logging.getLogger(__name__)


def path_to_json(path: Sequence[GeoPoint]) -> list[dict[str, float]]:
    return [{"lat": p.latitude, "lon": p.longitude} for p in path]


def path_to_wkt(path: Sequence[GeoPoint]) -> str:
    """Build "SRID=4326;POLYGON((lon lat, ...))".

    WKT vertices are longitude first, latitude second. The ring is closed by
    repeating the first vertex when the path does not already end on it.

    Returns:
        WKT string, or "" for fewer than 3 points.
    """

    if len(path) < 3:
        return ""
    ring = list(path)
    if ring[0] != ring[-1]:
        ring.append(ring[0])
    coords = ", ".join(f"{p.longitude} {p.latitude}" for p in ring)
    return f"SRID=4326;POLYGON(({coords}))"


@dataclass(frozen=True, slots=True)
class TerritoryPayload:
    """A validated territory ready for the persistence collaborator."""

    user_id: str
    path: tuple[GeoPoint, ...]
    polygon_wkt: str
    bbox_min_lat: float
    bbox_max_lat: float
    bbox_min_lon: float
    bbox_max_lon: float
    area_m2: float
    point_count: int
    started_at: str
    completed_at: str

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the `territories` table."""

        return {
            "user_id": self.user_id,
            "path": path_to_json(self.path),
            "polygon": self.polygon_wkt,
            "bbox_min_lat": self.bbox_min_lat,
            "bbox_max_lat": self.bbox_max_lat,
            "bbox_min_lon": self.bbox_min_lon,
            "bbox_max_lon": self.bbox_max_lon,
            "area": self.area_m2,
            "point_count": self.point_count,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "is_active": True,
        }


def build_payload(
    path: Sequence[GeoPoint],
    area_m2: float,
    user_id: str,
    started_ms: int,
    completed_ms: int,
    tz_name: str = DEFAULT_TZ,
) -> TerritoryPayload:
    """Assemble the payload for a validated path.

    Raises:
        ValueError: If the path has fewer than 3 points.
    """

    bbox = bounding_box(path)
    if len(path) < 3 or bbox is None:
        raise ValueError(f"坐标点数量不足（至少需要3个点），实际 {len(path)} 个")
    min_lat, max_lat, min_lon, max_lon = bbox
    return TerritoryPayload(
        user_id=user_id,
        path=tuple(path),
        polygon_wkt=path_to_wkt(path),
        bbox_min_lat=min_lat,
        bbox_max_lat=max_lat,
        bbox_min_lon=min_lon,
        bbox_max_lon=max_lon,
        area_m2=float(area_m2),
        point_count=len(path),
        started_at=dt_from_epoch_ms(started_ms, tz_name).isoformat(),
        completed_at=dt_from_epoch_ms(completed_ms, tz_name).isoformat(),
    )


def territory_from_row(row: Mapping[str, Any]) -> ClaimedTerritory:
    """Parse one persisted territory row.

    Vertices missing "lat" or "lon" (or holding non-numeric values) are dropped,
    the same way the client tolerates partially written rows.

    Raises:
        KeyError: If the row has no "user_id".
    """

    vertices: list[GeoPoint] = []
    for item in row.get("path") or ():
        try:
            vertices.append(GeoPoint(latitude=float(item["lat"]), longitude=float(item["lon"])))
        except (KeyError, TypeError, ValueError):
            continue
    return ClaimedTerritory(owner_id=str(row["user_id"]), vertices=tuple(vertices))


def load_territories_json(json_path: str | Path) -> list[ClaimedTerritory]:
    """Load a territory snapshot from a JSON array of rows.

    Inactive rows (is_active == false) are skipped.
    """

    p = Path(json_path)
    rows = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(rows, list):
        raise ValueError(f"领地快照应为 JSON 数组：{p}")
    out: list[ClaimedTerritory] = []
    for row in rows:
        if row.get("is_active", True) is False:
            continue
        out.append(territory_from_row(row))
    logger.info("loaded %s territories from %s", len(out), p)
    return out


def write_payload_json(payload: TerritoryPayload, out_path: str | Path) -> None:
    p = Path(out_path)
    p.write_text(json.dumps(payload.to_row(), ensure_ascii=False, indent=2), encoding="utf-8")
