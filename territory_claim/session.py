"""One territory-claiming session: recording, live collision checks, validation, hand-off.

Collaborators are injected by the caller: thresholds, the diagnostic sink, the
snapshot of other players' territories and the persistence callable. A session
holds no global state, so any number of sessions can run side by side (e.g. in
tests). All entry points must be called from a single logical thread.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Iterable

from territory_claim.collision import CollisionEngine
from territory_claim.events import EventLog
from territory_claim.models import (
    SAFE_RESULT,
    ClaimedTerritory,
    ClaimParams,
    CollisionResult,
    DEFAULT_TZ,
    FixOutcome,
    GeoPoint,
    TimestampedFix,
    ValidationVerdict,
)
from territory_claim.payload import TerritoryPayload, build_payload
from territory_claim.recorder import FixDecision, PathRecorder
from territory_claim.validation import TerritoryValidator

logger = logging.getLogger(__name__)

PersistenceSink = Callable[[TerritoryPayload], None]


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    CLAIMED = "claimed"
    REJECTED = "rejected"
    SPEED_VIOLATION = "speed_violation"
    COLLISION = "collision"
    CANCELLED = "cancelled"


class SessionStateError(RuntimeError):
    """Raised when an entry point is used in the wrong session state."""


class ClaimSession:
    """Drive a PathRecorder and finish the claim when the path closes.

    Validation failure policy: the closed path and its verdict are frozen and the
    session ends in REJECTED. Retrying means calling start() again, which begins
    a fresh path; the rejected points are never re-validated.

    Args:
        user_id: Current player; their own territories never collide.
        params: Thresholds.
        events: Diagnostic sink. A private one is created when omitted.
        territories: Snapshot of claimed territories (may be stale or empty).
        persist: Called once with the payload of a validated territory.
        tz_name: Timezone for payload timestamps.
    """

    def __init__(
        self,
        user_id: str,
        params: ClaimParams | None = None,
        events: EventLog | None = None,
        territories: Iterable[ClaimedTerritory] | None = None,
        persist: PersistenceSink | None = None,
        tz_name: str = DEFAULT_TZ,
    ) -> None:
        self.user_id = user_id
        self.params = params or ClaimParams()
        self.events = events if events is not None else EventLog()
        self.recorder = PathRecorder(self.params, self.events)
        self.validator = TerritoryValidator(self.params, self.events)
        self.collision = CollisionEngine(self.events)
        self._territories: tuple[ClaimedTerritory, ...] = tuple(territories or ())
        self._persist = persist
        self._tz_name = tz_name

        self.state = SessionState.IDLE
        self.verdict: ValidationVerdict | None = None
        self.payload: TerritoryPayload | None = None
        self.last_collision: CollisionResult = SAFE_RESULT
        self.started_ms: int | None = None

    @property
    def path(self) -> list[GeoPoint]:
        return self.recorder.path

    @property
    def territories(self) -> tuple[ClaimedTerritory, ...]:
        return self._territories

    @property
    def is_recording(self) -> bool:
        return self.state is SessionState.RECORDING

    def update_territories(self, territories: Iterable[ClaimedTerritory] | None) -> None:
        """Replace the collision snapshot (None or empty means no territories)."""

        self._territories = tuple(territories or ())

    def start(self, start_ms: int) -> None:
        """Begin a fresh recording.

        Raises:
            SessionStateError: If a recording is already in progress.
        """

        if self.state is SessionState.RECORDING:
            raise SessionStateError("圈地已在进行中")
        self.recorder.start()
        self.verdict = None
        self.payload = None
        self.last_collision = SAFE_RESULT
        self.started_ms = start_ms
        self.state = SessionState.RECORDING
        self.events.emit("session.start", True, timestamp_ms=start_ms)

    def cancel(self) -> None:
        """Abandon the session; nothing is ever persisted for it."""

        self.recorder.reset()
        self.verdict = None
        self.payload = None
        self.last_collision = SAFE_RESULT
        self.state = SessionState.CANCELLED
        self.events.emit("session.cancel", True, message="已取消圈地")

    def on_fix_received(self, fix: TimestampedFix) -> FixDecision:
        if self.state is not SessionState.RECORDING:
            return FixDecision(FixOutcome.NOT_RECORDING)
        return self._handle(self.recorder.on_fix_received(fix), fix.timestamp_ms)

    def tick(self, now_ms: int) -> FixDecision | None:
        """Periodic sampling entry point, driven by an external scheduler."""

        if self.state is not SessionState.RECORDING:
            return None
        decision = self.recorder.tick(now_ms)
        if decision is None:
            return None
        return self._handle(decision, now_ms)

    def _handle(self, decision: FixDecision, at_ms: int) -> FixDecision:
        if decision.outcome is FixOutcome.SPEED_VIOLATION:
            self.state = SessionState.SPEED_VIOLATION
            return decision
        if not decision.accepted:
            return decision

        path = self.recorder.path
        if len(path) == 1:
            result = self.collision.check_start_point_collision(path[0], self.user_id, self._territories)
        else:
            result = self.collision.comprehensive_check(path, self.user_id, self._territories)
        self.last_collision = result
        if result.has_collision:
            self.recorder.stop()
            self.state = SessionState.COLLISION
            return decision

        if decision.closed:
            self._finish(path, at_ms)
        return decision

    def _finish(self, path: list[GeoPoint], at_ms: int) -> None:
        verdict = self.validator.validate(path, at_ms)
        self.verdict = verdict
        if not verdict.passed:
            self.state = SessionState.REJECTED
            self.events.emit("session.rejected", False, message=verdict.message, timestamp_ms=at_ms)
            return

        payload = build_payload(
            path,
            verdict.computed_area,
            self.user_id,
            self.started_ms if self.started_ms is not None else at_ms,
            at_ms,
            tz_name=self._tz_name,
        )
        self.payload = payload
        self.state = SessionState.CLAIMED
        self.events.emit(
            "session.claimed",
            True,
            value=verdict.computed_area,
            message=verdict.message,
            timestamp_ms=at_ms,
        )
        if self._persist is not None:
            self._persist(payload)
        else:
            logger.info("no persistence sink configured; payload kept on the session")
