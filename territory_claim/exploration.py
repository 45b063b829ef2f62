"""Walking exploration sessions with a countdown-based over-speed policy.

Unlike the per-sample SpeedGuard used while claiming territory, exploring at
excessive speed only starts a countdown. The session fails only if the speed is
still over the limit when the countdown runs out. The two policies are
configured separately on purpose.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from territory_claim.events import EventLog
from territory_claim.geo import distance_m
from territory_claim.models import ExplorationParams, GeoPoint, TimestampedFix
from territory_claim.recorder import speed_kmh

logger = logging.getLogger(__name__)


class ExplorationStatus(str, Enum):
    IDLE = "idle"
    EXPLORING = "exploring"
    OVER_SPEED_WARNING = "over_speed_warning"
    COMPLETED = "completed"
    FAILED = "failed"


class RewardTier(str, Enum):
    NONE = "none"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"

    @classmethod
    def from_distance(cls, meters: float) -> "RewardTier":
        if meters < 200:
            return cls.NONE
        if meters < 500:
            return cls.BRONZE
        if meters < 1000:
            return cls.SILVER
        if meters < 2000:
            return cls.GOLD
        return cls.DIAMOND


@dataclass(frozen=True, slots=True)
class ExplorationResult:
    """Summary of a finished exploration session."""

    status: str
    distance_walked_m: float
    duration_seconds: int
    reward_tier: RewardTier
    max_speed_kmh: float
    path: tuple[tuple[GeoPoint, int], ...] = field(default_factory=tuple)

    @property
    def formatted_distance(self) -> str:
        if self.distance_walked_m >= 1000:
            return f"{self.distance_walked_m / 1000:.2f} 公里"
        return f"{self.distance_walked_m:.0f} 米"


class ExplorationSession:
    """State machine: IDLE -> EXPLORING <-> OVER_SPEED_WARNING -> COMPLETED | FAILED."""

    def __init__(self, params: ExplorationParams | None = None, events: EventLog | None = None) -> None:
        self.params = params or ExplorationParams()
        self.events = events if events is not None else EventLog()
        self.status = ExplorationStatus.IDLE
        self.total_distance_m = 0.0
        self.current_speed_kmh = 0.0
        self.max_speed_kmh = 0.0
        self.result: ExplorationResult | None = None
        self._path: list[tuple[GeoPoint, int]] = []
        self._start_ms: int | None = None
        self._countdown_started_ms: int | None = None
        self._seconds_remaining: int | None = None

    @property
    def path(self) -> list[GeoPoint]:
        return [p for p, _ in self._path]

    @property
    def is_active(self) -> bool:
        return self.status in (ExplorationStatus.EXPLORING, ExplorationStatus.OVER_SPEED_WARNING)

    @property
    def seconds_remaining(self) -> int | None:
        """Countdown value while in OVER_SPEED_WARNING, else None."""

        return self._seconds_remaining

    def start(self, start_ms: int) -> None:
        if self.is_active:
            raise RuntimeError("探索已在进行中")
        self.status = ExplorationStatus.EXPLORING
        self.total_distance_m = 0.0
        self.current_speed_kmh = 0.0
        self.max_speed_kmh = 0.0
        self.result = None
        self._path = []
        self._start_ms = start_ms
        self._cancel_countdown()
        self.events.emit(
            "explore.start",
            True,
            threshold=self.params.speed_limit_kmh,
            message=f"速度限制 {self.params.speed_limit_kmh:.0f} km/h，超速警告 {self.params.warning_duration_s} 秒",
            timestamp_ms=start_ms,
        )

    def on_fix_received(self, fix: TimestampedFix) -> bool:
        """Process one fix. Returns True when a path point was recorded."""

        if not self.is_active:
            logger.debug("fix ignored: no exploration in progress")
            return False

        acc = fix.horizontal_accuracy_m
        if acc < 0 or acc > self.params.accuracy_threshold_m:
            self.events.emit(
                "explore.accuracy",
                False,
                value=acc,
                threshold=self.params.accuracy_threshold_m,
                timestamp_ms=fix.timestamp_ms,
            )
            return False

        v = self._speed_of(fix)
        self.current_speed_kmh = v
        self.max_speed_kmh = max(self.max_speed_kmh, v)

        if v > self.params.speed_limit_kmh:
            if self._countdown_started_ms is None:
                self._start_countdown(fix.timestamp_ms)
            return False

        if self._countdown_started_ms is not None:
            self._cancel_countdown()
            self.events.emit("explore.speed_recovered", True, value=v, timestamp_ms=fix.timestamp_ms)

        if self._should_record(fix):
            self._record(fix)
            return True
        return False

    def tick(self, now_ms: int) -> None:
        """Advance the over-speed countdown; call about once per second."""

        if self.status is not ExplorationStatus.OVER_SPEED_WARNING or self._countdown_started_ms is None:
            return
        elapsed = (now_ms - self._countdown_started_ms) // 1000
        self._seconds_remaining = max(0, self.params.warning_duration_s - int(elapsed))
        if self._seconds_remaining > 0:
            return

        if self.current_speed_kmh > self.params.speed_limit_kmh:
            self._fail(now_ms)
        else:
            self._cancel_countdown()
            self.events.emit(
                "explore.speed_recovered",
                True,
                value=self.current_speed_kmh,
                timestamp_ms=now_ms,
            )

    def stop(self, now_ms: int, cancelled: bool = False) -> ExplorationResult:
        """Finish the session and compute its result.

        Raises:
            RuntimeError: If no exploration is in progress.
        """

        if not self.is_active:
            raise RuntimeError("没有正在进行的探索")
        self._cancel_countdown()
        tier = RewardTier.NONE if cancelled else RewardTier.from_distance(self.total_distance_m)
        result = self._result("cancelled" if cancelled else "completed", tier, now_ms)
        self.status = ExplorationStatus.COMPLETED
        self.result = result
        self.events.emit(
            "explore.end",
            True,
            value=self.total_distance_m,
            message=f"status={result.status}, tier={tier.value}",
            timestamp_ms=now_ms,
        )
        return result

    def _speed_of(self, fix: TimestampedFix) -> float:
        # Prefer the device-reported speed; otherwise derive it from the last recorded point.
        if fix.reported_speed_mps is not None and fix.reported_speed_mps >= 0:
            return fix.reported_speed_mps * 3.6
        if not self._path:
            return 0.0
        last_point, last_ms = self._path[-1]
        return speed_kmh(distance_m(last_point, fix.point), (fix.timestamp_ms - last_ms) / 1000.0)

    def _should_record(self, fix: TimestampedFix) -> bool:
        if not self._path:
            return True
        last_point, last_ms = self._path[-1]
        if (fix.timestamp_ms - last_ms) / 1000.0 < self.params.min_time_interval_s:
            return False
        d = distance_m(last_point, fix.point)
        if d > self.params.max_jump_distance_m:
            self.events.emit(
                "explore.jump",
                False,
                value=d,
                threshold=self.params.max_jump_distance_m,
                timestamp_ms=fix.timestamp_ms,
            )
            return False
        return d >= self.params.min_record_distance_m

    def _record(self, fix: TimestampedFix) -> None:
        segment = 0.0
        if self._path:
            segment = distance_m(self._path[-1][0], fix.point)
            self.total_distance_m += segment
        self._path.append((fix.point, fix.timestamp_ms))
        self.events.emit(
            "explore.point",
            True,
            value=segment,
            message=f"累计 {self.total_distance_m:.1f}m, 路径点数 {len(self._path)}",
            timestamp_ms=fix.timestamp_ms,
        )

    def _start_countdown(self, now_ms: int) -> None:
        self._countdown_started_ms = now_ms
        self._seconds_remaining = self.params.warning_duration_s
        self.status = ExplorationStatus.OVER_SPEED_WARNING
        self.events.emit(
            "explore.over_speed",
            False,
            value=self.current_speed_kmh,
            threshold=self.params.speed_limit_kmh,
            message=f"{self.params.warning_duration_s} 秒内需降低速度，否则探索将失败",
            timestamp_ms=now_ms,
        )

    def _cancel_countdown(self) -> None:
        self._countdown_started_ms = None
        self._seconds_remaining = None
        if self.status is ExplorationStatus.OVER_SPEED_WARNING:
            self.status = ExplorationStatus.EXPLORING

    def _fail(self, now_ms: int) -> None:
        self._countdown_started_ms = None
        self._seconds_remaining = None
        self.status = ExplorationStatus.FAILED
        self.result = self._result("failed_overspeed", RewardTier.NONE, now_ms)
        self.events.emit(
            "explore.failed",
            False,
            value=self.current_speed_kmh,
            threshold=self.params.speed_limit_kmh,
            message="超速时间过长，探索失败",
            timestamp_ms=now_ms,
        )

    def _result(self, status: str, tier: RewardTier, now_ms: int) -> ExplorationResult:
        start = self._start_ms if self._start_ms is not None else now_ms
        return ExplorationResult(
            status=status,
            distance_walked_m=self.total_distance_m,
            duration_seconds=max(0, (now_ms - start) // 1000),
            reward_tier=tier,
            max_speed_kmh=self.max_speed_kmh,
            path=tuple(self._path),
        )
