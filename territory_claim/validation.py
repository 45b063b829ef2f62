"""Territory validation: fixed-order geometry checks on a closed path."""

from __future__ import annotations

from typing import Sequence

from territory_claim.events import EventLog
from territory_claim.models import ClaimParams, FailureReason, GeoPoint, ValidationVerdict
from territory_claim.polygon import compactness_ratio, enclosed_area, has_self_intersection, total_distance


class TerritoryValidator:
    """Run point count, distance, self-intersection, area and compactness checks.

    Cheap checks run first and the first failure short-circuits, so a verdict
    carries exactly one reason. Measurements not reached before the failing
    stage are reported as 0.0.
    """

    def __init__(self, params: ClaimParams, events: EventLog) -> None:
        self._params = params
        self._events = events

    def validate(self, path: Sequence[GeoPoint], timestamp_ms: int | None = None) -> ValidationVerdict:
        p = self._params
        n = len(path)

        if not self._stage("point_count", n >= p.min_path_points, n, p.min_path_points, timestamp_ms):
            return self._fail(
                FailureReason.POINT_COUNT,
                n,
                message=f"点数不足：{n} 个，至少需要 {p.min_path_points} 个",
            )

        dist = total_distance(path)
        if not self._stage("distance", dist >= p.min_total_distance_m, dist, p.min_total_distance_m, timestamp_ms):
            missing = p.min_total_distance_m - dist
            return self._fail(
                FailureReason.DISTANCE,
                n,
                distance=dist,
                message=f"行走距离不足：还需要 {missing:.0f} 米",
            )

        crossed = has_self_intersection(path)
        if not self._stage("self_intersection", not crossed, None, None, timestamp_ms):
            return self._fail(
                FailureReason.SELF_INTERSECTION,
                n,
                distance=dist,
                message="轨迹自相交，请不要画“8”字形",
            )

        area = enclosed_area(path)
        if not self._stage("area", area >= p.min_area_m2, area, p.min_area_m2, timestamp_ms):
            return self._fail(
                FailureReason.AREA,
                n,
                distance=dist,
                area=area,
                message=f"领地面积过小：{area:.0f}㎡，至少需要 {p.min_area_m2:.0f}㎡",
            )

        ratio = compactness_ratio(path)
        if not self._stage("compactness", ratio >= p.min_compactness_pct, ratio, p.min_compactness_pct, timestamp_ms):
            return self._fail(
                FailureReason.COMPACTNESS,
                n,
                distance=dist,
                area=area,
                ratio=ratio,
                message=f"领地形状过于狭长（{ratio:.0f}%），请走出更饱满的形状",
            )

        return ValidationVerdict(
            passed=True,
            failure_reason=None,
            computed_area=area,
            computed_distance=dist,
            compactness_ratio=ratio,
            point_count=n,
            message=f"圈地成功！面积 {area:.0f}㎡",
        )

    def _stage(
        self,
        name: str,
        ok: bool,
        value: float | None,
        threshold: float | None,
        timestamp_ms: int | None,
    ) -> bool:
        self._events.emit(
            f"validation.{name}",
            ok,
            value=None if value is None else float(value),
            threshold=None if threshold is None else float(threshold),
            timestamp_ms=timestamp_ms,
        )
        return ok

    @staticmethod
    def _fail(
        reason: FailureReason,
        n: int,
        *,
        distance: float = 0.0,
        area: float = 0.0,
        ratio: float = 0.0,
        message: str,
    ) -> ValidationVerdict:
        return ValidationVerdict(
            passed=False,
            failure_reason=reason,
            computed_area=area,
            computed_distance=distance,
            compactness_ratio=ratio,
            point_count=n,
            message=message,
        )
