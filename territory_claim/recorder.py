"""Turn a raw GPS fix stream into a clean, closure-aware tracked path.

PathRecorder filters noise (low accuracy, GPS jumps, sub-threshold movement and
burst duplicates), asks SpeedGuard to classify the candidate segment and runs
ClosureDetector after every accepted point. It is driven entirely from the
outside: on_fix_received() for every sensor sample and tick() from a periodic
scheduler. Nothing here starts threads or timers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from territory_claim.events import EventLog
from territory_claim.geo import distance_m
from territory_claim.models import (
    ClaimParams,
    ClosureState,
    FixOutcome,
    GeoPoint,
    SpeedBand,
    SpeedGuardState,
    TimestampedFix,
)

logger = logging.getLogger(__name__)


def speed_kmh(distance: float, elapsed_s: float) -> float:
    """Average speed in km/h; 0.0 when no time has elapsed."""

    if elapsed_s <= 0:
        return 0.0
    return distance / elapsed_s * 3.6


class SpeedGuard:
    """Per-sample speed classification with a hard stop on violation.

    State machine: NORMAL <-> WARNING_ACTIVE -> VIOLATION_STOPPED (terminal until reset).
    """

    def __init__(self, params: ClaimParams, events: EventLog) -> None:
        self._params = params
        self._events = events
        self.state = SpeedGuardState.NORMAL
        self.last_speed_kmh = 0.0

    def classify(self, distance: float, elapsed_s: float) -> SpeedBand:
        v = speed_kmh(distance, elapsed_s)
        if v > self._params.speed_violation_kmh:
            return SpeedBand.VIOLATION
        if v > self._params.speed_warning_kmh:
            return SpeedBand.WARNING
        return SpeedBand.NORMAL

    def observe(self, distance: float, elapsed_s: float, timestamp_ms: int | None = None) -> SpeedBand:
        """Classify one candidate segment and update the guard state."""

        if self.state is SpeedGuardState.VIOLATION_STOPPED:
            return SpeedBand.VIOLATION

        band = self.classify(distance, elapsed_s)
        self.last_speed_kmh = speed_kmh(distance, elapsed_s)

        if band is SpeedBand.VIOLATION:
            self.state = SpeedGuardState.VIOLATION_STOPPED
            self._events.emit(
                "speed.violation",
                False,
                value=self.last_speed_kmh,
                threshold=self._params.speed_violation_kmh,
                message="速度过快，圈地已停止",
                timestamp_ms=timestamp_ms,
            )
        elif band is SpeedBand.WARNING:
            if self.state is not SpeedGuardState.WARNING_ACTIVE:
                self._events.emit(
                    "speed.warning",
                    False,
                    value=self.last_speed_kmh,
                    threshold=self._params.speed_warning_kmh,
                    message="速度偏快，请放慢脚步",
                    timestamp_ms=timestamp_ms,
                )
            self.state = SpeedGuardState.WARNING_ACTIVE
        else:
            if self.state is SpeedGuardState.WARNING_ACTIVE:
                self._events.emit(
                    "speed.recovered",
                    True,
                    value=self.last_speed_kmh,
                    threshold=self._params.speed_warning_kmh,
                    timestamp_ms=timestamp_ms,
                )
            self.state = SpeedGuardState.NORMAL
        return band

    @property
    def warning_active(self) -> bool:
        return self.state is SpeedGuardState.WARNING_ACTIVE

    def reset(self) -> None:
        self.state = SpeedGuardState.NORMAL
        self.last_speed_kmh = 0.0


class ClosureDetector:
    """Detect the first time a path loops back near its start."""

    def __init__(self, params: ClaimParams, events: EventLog) -> None:
        self._params = params
        self._events = events
        self.state = ClosureState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state is ClosureState.CLOSED

    def check(self, path: list[GeoPoint], timestamp_ms: int | None = None) -> bool:
        """Return True only on the open -> closed transition."""

        if self.is_closed:
            return False
        if len(path) < self._params.min_path_points:
            return False

        gap = distance_m(path[0], path[-1])
        if gap > self._params.closure_threshold_m:
            return False

        self.state = ClosureState.CLOSED
        self._events.emit(
            "closure",
            True,
            value=gap,
            threshold=self._params.closure_threshold_m,
            message=f"轨迹已闭合，共 {len(path)} 个点",
            timestamp_ms=timestamp_ms,
        )
        return True

    def reset(self) -> None:
        self.state = ClosureState.OPEN


@dataclass(frozen=True, slots=True)
class FixDecision:
    """Result of feeding one fix (or one tick) to the recorder."""

    outcome: FixOutcome
    distance_m: float | None = None
    speed_band: SpeedBand | None = None
    closed: bool = False

    @property
    def accepted(self) -> bool:
        return self.outcome is FixOutcome.ACCEPTED


class PathRecorder:
    """Accumulate an ordered path from an irregular fix stream.

    Args:
        params: Thresholds.
        events: Diagnostic sink.
        speed_guard: Optional guard; one is created when omitted.
        closure: Optional closure detector; one is created when omitted.
    """

    def __init__(
        self,
        params: ClaimParams,
        events: EventLog,
        speed_guard: SpeedGuard | None = None,
        closure: ClosureDetector | None = None,
    ) -> None:
        self._params = params
        self._events = events
        self.speed_guard = speed_guard or SpeedGuard(params, events)
        self.closure = closure or ClosureDetector(params, events)
        self._path: list[GeoPoint] = []
        self._last_point: GeoPoint | None = None
        self._last_time_ms: int | None = None
        self._pending: TimestampedFix | None = None
        self._recording = False

    @property
    def path(self) -> list[GeoPoint]:
        """A copy of the tracked path."""

        return list(self._path)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def last_recorded_ms(self) -> int | None:
        return self._last_time_ms

    def start(self) -> None:
        self.reset()
        self._recording = True

    def stop(self) -> None:
        self._recording = False
        self._pending = None

    def reset(self) -> None:
        """Clear the path and every piece of derived state."""

        self._path.clear()
        self._last_point = None
        self._last_time_ms = None
        self._pending = None
        self._recording = False
        self.speed_guard.reset()
        self.closure.reset()

    def on_fix_received(self, fix: TimestampedFix) -> FixDecision:
        if not self._recording:
            return FixDecision(FixOutcome.NOT_RECORDING)

        # A newer sample always supersedes the held one.
        self._pending = None

        acc = fix.horizontal_accuracy_m
        if acc < 0 or acc > self._params.accuracy_threshold_m:
            self._events.emit(
                "fix.accuracy",
                False,
                value=acc,
                threshold=self._params.accuracy_threshold_m,
                message="忽略低精度位置",
                timestamp_ms=fix.timestamp_ms,
            )
            return FixDecision(FixOutcome.REJECTED_ACCURACY)

        return self._evaluate(fix, fix.timestamp_ms)

    def tick(self, now_ms: int) -> FixDecision | None:
        """Periodic sampling: retry the sample held back for arriving too soon.

        Returns:
            The decision for the pending sample, or None when nothing is pending.
        """

        if not self._recording or self._pending is None:
            return None
        fix = self._pending
        self._pending = None
        return self._evaluate(fix, now_ms)

    def _evaluate(self, fix: TimestampedFix, at_ms: int) -> FixDecision:
        if self._last_point is None or self._last_time_ms is None:
            return self._append(fix.point, at_ms, None, None)

        d = distance_m(self._last_point, fix.point)
        if d > self._params.max_jump_distance_m:
            self._events.emit(
                "fix.jump",
                False,
                value=d,
                threshold=self._params.max_jump_distance_m,
                message="忽略 GPS 跳点",
                timestamp_ms=fix.timestamp_ms,
            )
            return FixDecision(FixOutcome.REJECTED_JUMP, distance_m=d)

        if d < self._params.min_record_distance_m:
            self._events.emit(
                "fix.too_close",
                False,
                value=d,
                threshold=self._params.min_record_distance_m,
                timestamp_ms=fix.timestamp_ms,
            )
            return FixDecision(FixOutcome.REJECTED_TOO_CLOSE, distance_m=d)

        elapsed_s = (at_ms - self._last_time_ms) / 1000.0
        if elapsed_s < self._params.min_time_interval_s:
            # The one filter that buffers instead of dropping: the fix is retried on the next tick().
            self._pending = fix
            self._events.emit(
                "fix.too_soon",
                False,
                value=elapsed_s,
                threshold=self._params.min_time_interval_s,
                timestamp_ms=fix.timestamp_ms,
            )
            return FixDecision(FixOutcome.REJECTED_TOO_SOON, distance_m=d)

        band = self.speed_guard.observe(d, elapsed_s, fix.timestamp_ms)
        if band is SpeedBand.VIOLATION:
            # The offending point is discarded and recording halts for good.
            self.stop()
            return FixDecision(FixOutcome.SPEED_VIOLATION, distance_m=d, speed_band=band)

        return self._append(fix.point, at_ms, d, band)

    def _append(
        self,
        point: GeoPoint,
        at_ms: int,
        d: float | None,
        band: SpeedBand | None,
    ) -> FixDecision:
        self._path.append(point)
        self._last_point = point
        self._last_time_ms = at_ms
        self._events.emit(
            "fix.accepted",
            True,
            value=d,
            threshold=self._params.min_record_distance_m if d is not None else None,
            message=f"路径点数: {len(self._path)}",
            timestamp_ms=at_ms,
        )

        closed = self.closure.check(self._path, at_ms)
        if closed:
            self._recording = False
            self._pending = None
            logger.debug("path closed after %s points", len(self._path))
        return FixDecision(FixOutcome.ACCEPTED, distance_m=d, speed_band=band or SpeedBand.NORMAL, closed=closed)
