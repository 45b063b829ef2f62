"""Replay recorded fixes through a session on a simulated clock.

The replay stands in for the real sensor callback and the periodic timer: fixes
are delivered in timestamp order and tick() is called at a fixed cadence between
them, all on the caller's thread.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from territory_claim.exploration import ExplorationSession
from territory_claim.models import TimestampedFix
from territory_claim.session import ClaimSession


@dataclass(slots=True)
class ReplayStats:
    """Counts of fix outcomes seen during a replay."""

    fixes: int = 0
    ticks: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)

    def count(self, key: str) -> None:
        self.outcomes[key] = self.outcomes.get(key, 0) + 1


def _tick_times(prev_ms: int, next_ms: int, interval_ms: int) -> Iterable[int]:
    t = prev_ms + interval_ms
    while t < next_ms:
        yield t
        t += interval_ms


def replay_claim(
    fixes: Iterable[TimestampedFix],
    session: ClaimSession,
    start: bool = True,
) -> ReplayStats:
    """Feed fixes into a claim session until it leaves the recording state.

    Args:
        fixes: Fixes, sorted by timestamp here.
        session: Session to drive.
        start: Start the session at the first fix's timestamp.

    Returns:
        ReplayStats for the delivered fixes and ticks.
    """

    ordered = sorted(fixes, key=lambda fx: fx.timestamp_ms)
    stats = ReplayStats()
    if not ordered:
        return stats

    if start:
        session.start(ordered[0].timestamp_ms)
    interval_ms = max(1, int(session.params.sampling_interval_s * 1000))

    prev_ms = ordered[0].timestamp_ms
    for fix in ordered:
        for t in _tick_times(prev_ms, fix.timestamp_ms, interval_ms):
            if not session.is_recording:
                break
            stats.ticks += 1
            decision = session.tick(t)
            if decision is not None:
                stats.count(decision.outcome.value)
        if not session.is_recording:
            break
        stats.fixes += 1
        stats.count(session.on_fix_received(fix).outcome.value)
        prev_ms = fix.timestamp_ms

    # A fix held back at the very end of the stream still needs its tick.
    t = prev_ms + interval_ms
    while session.is_recording:
        stats.ticks += 1
        decision = session.tick(t)
        if decision is None:
            break
        stats.count(decision.outcome.value)
        t += interval_ms
    return stats


def replay_exploration(
    fixes: Iterable[TimestampedFix],
    session: ExplorationSession,
    stop: bool = True,
) -> ReplayStats:
    """Feed fixes into an exploration session with one tick per simulated second.

    When stop is true and the session is still active after the last fix, it is
    stopped at that fix's timestamp.
    """

    ordered = sorted(fixes, key=lambda fx: fx.timestamp_ms)
    stats = ReplayStats()
    if not ordered:
        return stats

    session.start(ordered[0].timestamp_ms)
    prev_ms = ordered[0].timestamp_ms
    for fix in ordered:
        for t in _tick_times(prev_ms, fix.timestamp_ms, 1000):
            if not session.is_active:
                break
            stats.ticks += 1
            session.tick(t)
        if not session.is_active:
            break
        stats.fixes += 1
        recorded = session.on_fix_received(fix)
        stats.count("recorded" if recorded else "skipped")
        prev_ms = fix.timestamp_ms

    if stop and session.is_active:
        session.stop(ordered[-1].timestamp_ms)
    return stats
