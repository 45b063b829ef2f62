from __future__ import annotations

import pytest

from helpers import DIAGONAL_SLIVER, RECT_60x40, T0_MS, fix_at, fixes_of, square_territory
from territory_claim.events import EventLog
from territory_claim.models import FailureReason, FixOutcome, WarningLevel
from territory_claim.payload import TerritoryPayload
from territory_claim.session import ClaimSession, SessionState, SessionStateError


@pytest.fixture
def sink() -> list[TerritoryPayload]:
    return []


@pytest.fixture
def session(events: EventLog, sink: list[TerritoryPayload]) -> ClaimSession:
    s = ClaimSession(user_id="me", events=events, persist=sink.append)
    s.start(T0_MS)
    return s


def _feed(session: ClaimSession, offsets: list[tuple[float, float]]) -> None:
    for fx in fixes_of(offsets):
        session.on_fix_received(fx)


def test_rectangle_is_claimed(session: ClaimSession, sink: list[TerritoryPayload], events: EventLog) -> None:
    _feed(session, RECT_60x40)

    assert session.state is SessionState.CLAIMED
    assert session.verdict is not None and session.verdict.passed
    assert session.verdict.computed_area == pytest.approx(2400.0, rel=0.05)
    assert session.verdict.compactness_ratio == pytest.approx(100.0, abs=1.0)

    assert sink == [session.payload]
    payload = sink[0]
    assert payload.user_id == "me"
    assert payload.point_count == 12
    assert payload.polygon_wkt.startswith("SRID=4326;POLYGON((121.4737 31.2304, ")
    assert payload.started_at == "2025-01-01T08:00:00+08:00"
    assert payload.completed_at == "2025-01-01T08:01:50+08:00"
    assert events.last("session.claimed") is not None


def test_claimed_session_ignores_further_fixes(session: ClaimSession, sink: list[TerritoryPayload]) -> None:
    _feed(session, RECT_60x40)
    path = session.path

    late = fix_at(30, 20, T0_MS + 200_000)
    assert session.on_fix_received(late).outcome is FixOutcome.NOT_RECORDING
    assert session.tick(T0_MS + 210_000) is None
    assert session.path == path
    assert len(sink) == 1


def test_sliver_is_rejected_then_restarted(session: ClaimSession, sink: list[TerritoryPayload]) -> None:
    _feed(session, DIAGONAL_SLIVER)

    assert session.state is SessionState.REJECTED
    assert session.verdict is not None
    assert session.verdict.failure_reason is FailureReason.COMPACTNESS
    assert session.payload is None
    assert sink == []
    assert len(session.path) == 12

    session.start(T0_MS + 600_000)
    assert session.state is SessionState.RECORDING
    assert session.path == []
    assert session.verdict is None


def test_start_twice_raises(session: ClaimSession) -> None:
    with pytest.raises(SessionStateError):
        session.start(T0_MS + 1000)


def test_cancel_discards_path(session: ClaimSession, sink: list[TerritoryPayload], events: EventLog) -> None:
    _feed(session, RECT_60x40[:5])
    session.cancel()
    assert session.state is SessionState.CANCELLED
    assert session.path == []
    assert sink == []
    assert events.last("session.cancel") is not None


def test_speeding_stops_session(session: ClaimSession, sink: list[TerritoryPayload]) -> None:
    session.on_fix_received(fix_at(0, 0, T0_MS))
    decision = session.on_fix_received(fix_at(40, 0, T0_MS + 2000))
    assert decision.outcome is FixOutcome.SPEED_VIOLATION
    assert session.state is SessionState.SPEED_VIOLATION
    assert len(session.path) == 1
    assert sink == []


def test_start_inside_other_territory(events: EventLog, sink: list[TerritoryPayload]) -> None:
    s = ClaimSession(
        user_id="me",
        events=events,
        territories=[square_territory("other", -50, -50, 200)],
        persist=sink.append,
    )
    s.start(T0_MS)
    s.on_fix_received(fix_at(0, 0, T0_MS))
    assert s.state is SessionState.COLLISION
    assert s.last_collision.warning_level is WarningLevel.VIOLATION
    assert not s.recorder.is_recording
    assert s.on_fix_received(fix_at(15, 0, T0_MS + 10_000)).outcome is FixOutcome.NOT_RECORDING


def test_walking_into_other_territory(events: EventLog, sink: list[TerritoryPayload]) -> None:
    s = ClaimSession(
        user_id="me",
        events=events,
        territories=[square_territory("other", 50, 10, 20)],
        persist=sink.append,
    )
    s.start(T0_MS)
    _feed(s, RECT_60x40)
    assert s.state is SessionState.COLLISION
    # (60, 0) -> (60, 20) is the first segment that enters the square.
    assert len(s.path) == 6
    assert sink == []


def test_own_territory_does_not_block(events: EventLog, sink: list[TerritoryPayload]) -> None:
    s = ClaimSession(
        user_id="me",
        events=events,
        territories=[square_territory("ME", 50, 10, 20)],
        persist=sink.append,
    )
    s.start(T0_MS)
    _feed(s, RECT_60x40)
    assert s.state is SessionState.CLAIMED
    assert len(sink) == 1


def test_update_territories_replaces_snapshot(session: ClaimSession) -> None:
    session.update_territories([square_territory("other", 500, 500, 20)])
    assert len(session.territories) == 1
    session.update_territories(None)
    assert session.territories == ()


def test_sessions_do_not_share_state() -> None:
    a = ClaimSession(user_id="a")
    b = ClaimSession(user_id="b")
    a.start(T0_MS)
    a.on_fix_received(fix_at(0, 0, T0_MS))
    assert len(a.path) == 1
    assert b.path == []
    assert b.state is SessionState.IDLE
    assert a.events is not b.events
