"""Structured diagnostic events for recording, validation and collision checks."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterator

logger = logging.getLogger(__name__)

MAX_EVENTS = 200


@dataclass(frozen=True, slots=True)
class DiagnosticEvent:
    """One observable decision made by the engine.

    Attributes:
        stage: Dotted stage name, e.g. "fix.jump" or "validation.area".
        passed: Whether the check passed (or the sample was accepted).
        value: Measured value, if the stage measures something.
        threshold: Threshold the value was compared against, if any.
        message: Human-readable detail.
        timestamp_ms: Epoch ms of the sample that produced the event, if known.
    """

    stage: str
    passed: bool
    value: float | None = None
    threshold: float | None = None
    message: str = ""
    timestamp_ms: int | None = None

    def format_line(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        parts = [f"[{status}] {self.stage}"]
        if self.value is not None:
            parts.append(f"value={self.value:.2f}")
        if self.threshold is not None:
            parts.append(f"threshold={self.threshold:.2f}")
        if self.message:
            parts.append(self.message)
        return " ".join(parts)


class EventLog:
    """Bounded in-memory sink that also forwards every event to logging.

    One instance is created per session (or shared by the caller); there is no
    module-level singleton.
    """

    def __init__(self, max_events: int = MAX_EVENTS) -> None:
        self._events: deque[DiagnosticEvent] = deque(maxlen=max_events)

    def emit(
        self,
        stage: str,
        passed: bool,
        *,
        value: float | None = None,
        threshold: float | None = None,
        message: str = "",
        timestamp_ms: int | None = None,
    ) -> DiagnosticEvent:
        event = DiagnosticEvent(
            stage=stage,
            passed=passed,
            value=value,
            threshold=threshold,
            message=message,
            timestamp_ms=timestamp_ms,
        )
        self._events.append(event)
        logger.log(logging.INFO if passed else logging.WARNING, "%s", event.format_line())
        return event

    @property
    def events(self) -> list[DiagnosticEvent]:
        return list(self._events)

    def __iter__(self) -> Iterator[DiagnosticEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def by_stage(self, stage: str) -> list[DiagnosticEvent]:
        """Events whose stage equals stage or starts with "stage."."""

        prefix = stage + "."
        return [e for e in self._events if e.stage == stage or e.stage.startswith(prefix)]

    def last(self, stage: str | None = None) -> DiagnosticEvent | None:
        events = self.by_stage(stage) if stage is not None else list(self._events)
        return events[-1] if events else None

    def clear(self) -> None:
        self._events.clear()

    def export_text(self) -> str:
        """Export the log as plain text with a short header."""

        lines = ["=== territory claim diagnostics ===", f"events: {len(self._events)}", ""]
        for e in self._events:
            ts = "-" if e.timestamp_ms is None else str(e.timestamp_ms)
            lines.append(f"[{ts}] {e.format_line()}")
        return "\n".join(lines) + "\n"
