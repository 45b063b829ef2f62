"""Data models for fixes, paths, verdicts and collision results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A WGS-84 coordinate in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class TimestampedFix:
    """A single GPS sample as delivered by the location sensor.

    Attributes:
        point: Reported position.
        timestamp_ms: Unix epoch milliseconds.
        horizontal_accuracy_m: Horizontal accuracy in meters. Negative means invalid.
        reported_speed_mps: Speed reported by the device in meters/second, if any.
    """

    point: GeoPoint
    timestamp_ms: int
    horizontal_accuracy_m: float
    reported_speed_mps: float | None = None

    @property
    def timestamp_s(self) -> float:
        """Unix epoch seconds as float."""

        return self.timestamp_ms / 1000.0


class ClosureState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class SpeedBand(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    VIOLATION = "violation"


class SpeedGuardState(str, Enum):
    NORMAL = "normal"
    WARNING_ACTIVE = "warning_active"
    VIOLATION_STOPPED = "violation_stopped"


class FixOutcome(str, Enum):
    """What happened to one incoming fix."""

    ACCEPTED = "accepted"
    REJECTED_ACCURACY = "rejected_accuracy"
    REJECTED_JUMP = "rejected_jump"
    REJECTED_TOO_CLOSE = "rejected_too_close"
    REJECTED_TOO_SOON = "rejected_too_soon"
    SPEED_VIOLATION = "speed_violation"
    NOT_RECORDING = "not_recording"


class FailureReason(str, Enum):
    POINT_COUNT = "point_count"
    DISTANCE = "distance"
    SELF_INTERSECTION = "self_intersection"
    AREA = "area"
    COMPACTNESS = "compactness"


@dataclass(frozen=True, slots=True)
class ValidationVerdict:
    """Result of validating one closed path. Produced once, never mutated."""

    passed: bool
    failure_reason: FailureReason | None
    computed_area: float
    computed_distance: float
    compactness_ratio: float
    point_count: int
    message: str = ""


@dataclass(frozen=True, slots=True)
class ClaimedTerritory:
    """A territory already claimed by some player (borrowed, read-only)."""

    owner_id: str
    vertices: tuple[GeoPoint, ...]


class CollisionKind(str, Enum):
    POINT_IN_TERRITORY = "point_in_territory"
    PATH_CROSSES_BOUNDARY = "path_crosses_boundary"


class WarningLevel(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"
    VIOLATION = "violation"


@dataclass(frozen=True, slots=True)
class CollisionResult:
    """Outcome of one collision check. Recomputed on every call."""

    has_collision: bool
    kind: CollisionKind | None
    message: str | None
    closest_distance_m: float
    warning_level: WarningLevel


SAFE_RESULT: Final[CollisionResult] = CollisionResult(
    has_collision=False,
    kind=None,
    message=None,
    closest_distance_m=float("inf"),
    warning_level=WarningLevel.SAFE,
)


@dataclass(frozen=True, slots=True)
class ClaimParams:
    """Tunable thresholds for territory claiming.

    Distances are meters, speeds km/h, times seconds, area square meters and
    compactness a percentage of the bounding-box area.
    """

    accuracy_threshold_m: float = 50.0
    max_jump_distance_m: float = 100.0
    min_record_distance_m: float = 10.0
    min_time_interval_s: float = 1.0
    speed_warning_kmh: float = 15.0
    speed_violation_kmh: float = 30.0
    closure_threshold_m: float = 30.0
    min_path_points: int = 10
    min_total_distance_m: float = 50.0
    min_area_m2: float = 100.0
    min_compactness_pct: float = 25.0
    # Cadence of the external scheduler calling tick().
    sampling_interval_s: float = 2.0


@dataclass(frozen=True, slots=True)
class ExplorationParams:
    """Tunable thresholds for the walking exploration feature."""

    speed_limit_kmh: float = 30.0
    warning_duration_s: int = 15
    min_record_distance_m: float = 5.0
    max_jump_distance_m: float = 100.0
    accuracy_threshold_m: float = 50.0
    min_time_interval_s: float = 1.0


DEFAULT_TZ: Final[str] = "Asia/Shanghai"
