"""Collision detection against territories claimed by other players.

The territory snapshot is borrowed: nothing here mutates it, and a missing or
empty snapshot means "no other territories" (the checks fail open).
"""

from __future__ import annotations

from typing import Iterable, Sequence

from territory_claim.events import EventLog
from territory_claim.geo import distance_m
from territory_claim.models import (
    SAFE_RESULT,
    ClaimedTerritory,
    CollisionKind,
    CollisionResult,
    GeoPoint,
    WarningLevel,
)
from territory_claim.polygon import segments_intersect

SAFE_DISTANCE_M = 100.0
CAUTION_DISTANCE_M = 50.0
WARNING_DISTANCE_M = 25.0


def point_in_polygon(point: GeoPoint, vertices: Sequence[GeoPoint]) -> bool:
    """Even-odd ray casting with longitude as x and latitude as y."""

    if len(vertices) < 3:
        return False

    inside = False
    x = point.longitude
    y = point.latitude
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i].longitude, vertices[i].latitude
        xj, yj = vertices[j].longitude, vertices[j].latitude
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def other_territories(
    territories: Iterable[ClaimedTerritory] | None,
    current_user_id: str,
) -> list[ClaimedTerritory]:
    """Territories not owned by current_user_id (ids compare case-insensitively)."""

    if not territories:
        return []
    me = current_user_id.lower()
    return [t for t in territories if t.owner_id.lower() != me]


def _violation(kind: CollisionKind, message: str) -> CollisionResult:
    return CollisionResult(
        has_collision=True,
        kind=kind,
        message=message,
        closest_distance_m=0.0,
        warning_level=WarningLevel.VIOLATION,
    )


class CollisionEngine:
    """Collision checks that report hard violations to an event log."""

    def __init__(self, events: EventLog | None = None) -> None:
        self._events = events if events is not None else EventLog()

    def check_start_point_collision(
        self,
        point: GeoPoint,
        current_user_id: str,
        territories: Iterable[ClaimedTerritory] | None,
    ) -> CollisionResult:
        for territory in other_territories(territories, current_user_id):
            if point_in_polygon(point, territory.vertices):
                self._events.emit("collision.start_point", False, message="起点位于他人领地内")
                return _violation(CollisionKind.POINT_IN_TERRITORY, "不能在他人领地内开始圈地！")
        return SAFE_RESULT

    def check_path_crosses_boundary(
        self,
        path: Sequence[GeoPoint],
        current_user_id: str,
        territories: Iterable[ClaimedTerritory] | None,
    ) -> CollisionResult:
        others = [t for t in other_territories(territories, current_user_id) if len(t.vertices) >= 3]
        if not others or not path:
            return SAFE_RESULT

        for territory in others:
            poly = territory.vertices
            m = len(poly)
            for i in range(len(path) - 1):
                a, b = path[i], path[i + 1]
                for k in range(m):
                    if segments_intersect(a, b, poly[k], poly[(k + 1) % m]):
                        self._events.emit("collision.boundary", False, message="轨迹穿越他人领地边界")
                        return _violation(CollisionKind.PATH_CROSSES_BOUNDARY, "轨迹不能穿越他人领地！")

            for p in path:
                if point_in_polygon(p, poly):
                    self._events.emit("collision.point", False, message="轨迹点进入他人领地")
                    return _violation(CollisionKind.POINT_IN_TERRITORY, "轨迹不能进入他人领地！")

        return SAFE_RESULT

    def min_distance_to_territories(
        self,
        point: GeoPoint,
        current_user_id: str,
        territories: Iterable[ClaimedTerritory] | None,
    ) -> float:
        """Distance to the nearest vertex of any other territory, inf if none.

        Vertex-only distance is enough for proximity advisories; hard
        violations use the exact checks above.
        """

        best = float("inf")
        for territory in other_territories(territories, current_user_id):
            for vertex in territory.vertices:
                best = min(best, distance_m(point, vertex))
        return best

    def comprehensive_check(
        self,
        path: Sequence[GeoPoint],
        current_user_id: str,
        territories: Iterable[ClaimedTerritory] | None,
    ) -> CollisionResult:
        if not path:
            return SAFE_RESULT
        snapshot = list(territories or ())

        crossed = self.check_path_crosses_boundary(path, current_user_id, snapshot)
        if crossed.has_collision:
            return crossed

        d = self.min_distance_to_territories(path[-1], current_user_id, snapshot)
        meters = int(d) if d != float("inf") else 0
        if d > SAFE_DISTANCE_M:
            level, message = WarningLevel.SAFE, None
        elif d > CAUTION_DISTANCE_M:
            level, message = WarningLevel.CAUTION, f"注意：距离他人领地 {meters}m"
        elif d > WARNING_DISTANCE_M:
            level, message = WarningLevel.WARNING, f"警告：正在靠近他人领地（{meters}m）"
        else:
            level, message = WarningLevel.DANGER, f"危险：即将进入他人领地！（{meters}m）"

        if level is not WarningLevel.SAFE:
            self._events.emit(f"collision.proximity.{level.value}", True, value=d, message=message or "")

        return CollisionResult(
            has_collision=False,
            kind=None,
            message=message,
            closest_distance_m=d,
            warning_level=level,
        )
