from __future__ import annotations

import math

import pytest

from helpers import path_of, pt, square_territory
from territory_claim.collision import CollisionEngine, other_territories, point_in_polygon
from territory_claim.events import EventLog
from territory_claim.models import CollisionKind, WarningLevel


@pytest.fixture
def engine(events: EventLog) -> CollisionEngine:
    return CollisionEngine(events)


def test_point_in_polygon() -> None:
    square = square_territory("x", 0, 0, 20).vertices
    assert point_in_polygon(pt(10, 10), square)
    assert not point_in_polygon(pt(30, 10), square)
    assert not point_in_polygon(pt(10, -5), square)
    assert not point_in_polygon(pt(10, 10), square[:2])


def test_own_territories_are_ignored_case_insensitively() -> None:
    mine = square_territory("User-42", 0, 0, 20)
    theirs = square_territory("someone", 50, 0, 20)
    assert other_territories([mine, theirs], "user-42") == [theirs]
    assert other_territories(None, "user-42") == []


def test_start_inside_other_territory(engine: CollisionEngine, events: EventLog) -> None:
    big = square_territory("other", -50, -50, 200)
    result = engine.check_start_point_collision(pt(0, 0), "me", [big])
    assert result.has_collision
    assert result.kind is CollisionKind.POINT_IN_TERRITORY
    assert result.warning_level is WarningLevel.VIOLATION
    assert result.closest_distance_m == 0.0
    assert result.message == "不能在他人领地内开始圈地！"
    assert events.last("collision.start_point") is not None


def test_start_inside_own_territory_is_fine(engine: CollisionEngine) -> None:
    big = square_territory("ME", -50, -50, 200)
    assert not engine.check_start_point_collision(pt(0, 0), "me", [big]).has_collision


def test_path_crossing_boundary(engine: CollisionEngine) -> None:
    square = square_territory("other", 0, 0, 20)
    result = engine.check_path_crosses_boundary(path_of([(-10, 10), (30, 10)]), "me", [square])
    assert result.has_collision
    assert result.kind is CollisionKind.PATH_CROSSES_BOUNDARY
    assert result.message == "轨迹不能穿越他人领地！"


def test_path_fully_inside_is_caught_by_containment(engine: CollisionEngine) -> None:
    square = square_territory("other", 0, 0, 20)
    result = engine.check_path_crosses_boundary(path_of([(5, 5), (15, 5)]), "me", [square])
    assert result.has_collision
    assert result.kind is CollisionKind.POINT_IN_TERRITORY


def test_missing_snapshot_fails_open(engine: CollisionEngine) -> None:
    path = path_of([(0, 0), (20, 0)])
    assert not engine.check_path_crosses_boundary(path, "me", None).has_collision
    assert not engine.comprehensive_check(path, "me", []).has_collision
    assert math.isinf(engine.min_distance_to_territories(pt(0, 0), "me", None))


def test_min_distance_uses_nearest_vertex(engine: CollisionEngine) -> None:
    square = square_territory("other", 0, 0, 20)
    assert engine.min_distance_to_territories(pt(20, 50), "me", [square]) == pytest.approx(30.0, rel=0.01)


@pytest.mark.parametrize(
    "x, level",
    [
        (150, WarningLevel.SAFE),
        (80, WarningLevel.CAUTION),
        (40, WarningLevel.WARNING),
        (10, WarningLevel.DANGER),
    ],
)
def test_proximity_levels(engine: CollisionEngine, events: EventLog, x: float, level: WarningLevel) -> None:
    square = square_territory("other", -30, -30, 30)
    result = engine.comprehensive_check(path_of([(x + 20, 10), (x, 10)]), "me", [square])
    assert not result.has_collision
    assert result.warning_level is level
    assert result.closest_distance_m == pytest.approx(math.hypot(x, 10), rel=0.01)
    if level is WarningLevel.SAFE:
        assert result.message is None
        assert events.by_stage("collision") == []
    else:
        assert result.message
        assert events.last(f"collision.proximity.{level.value}") is not None


def test_crossing_wins_over_proximity(engine: CollisionEngine) -> None:
    square = square_territory("other", 0, 0, 20)
    result = engine.comprehensive_check(path_of([(-30, 10), (-10, 10), (30, 10)]), "me", [square])
    assert result.kind is CollisionKind.PATH_CROSSES_BOUNDARY
    assert result.warning_level is WarningLevel.VIOLATION
