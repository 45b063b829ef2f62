from __future__ import annotations

import json
from pathlib import Path

import pytest

from helpers import DIAGONAL_SLIVER, RECT_60x40, T0_MS, fix_at, fixes_of, write_fixes_csv
from territory_claim.cli import main
from territory_claim.exploration import ExplorationSession, RewardTier
from territory_claim.replay import replay_claim, replay_exploration
from territory_claim.session import ClaimSession, SessionState


def test_replay_claims_rectangle() -> None:
    session = ClaimSession(user_id="me")
    stats = replay_claim(reversed(fixes_of(RECT_60x40)), session)
    assert session.state is SessionState.CLAIMED
    assert stats.fixes == 12
    assert stats.outcomes == {"accepted": 12}
    # Four 2 s ticks fit strictly inside each 10 s gap.
    assert stats.ticks == 44


def test_replay_ticks_release_pending_fix() -> None:
    session = ClaimSession(user_id="me")
    fixes = [fix_at(0, 0, T0_MS), fix_at(12, 0, T0_MS + 500), fix_at(30, 0, T0_MS + 10_000)]
    stats = replay_claim(fixes, session)
    assert stats.outcomes == {"accepted": 3, "rejected_too_soon": 1}
    assert len(session.path) == 3
    assert session.recorder.last_recorded_ms == T0_MS + 10_000


def test_replay_closes_on_a_held_back_final_fix() -> None:
    session = ClaimSession(user_id="me")
    # Closing sample only 0.5 s after the previous one, and nothing after it.
    fixes = fixes_of(RECT_60x40[:11]) + [fix_at(0, 28, T0_MS + 100_500)]
    stats = replay_claim(fixes, session)
    assert stats.outcomes == {"accepted": 12, "rejected_too_soon": 1}
    assert session.state is SessionState.CLAIMED
    assert len(session.path) == 12
    assert session.recorder.last_recorded_ms == T0_MS + 102_000


def test_replay_without_fixes_does_nothing() -> None:
    session = ClaimSession(user_id="me")
    stats = replay_claim([], session)
    assert stats.fixes == 0
    assert session.state is SessionState.IDLE


def test_replay_exploration_stops_at_last_fix() -> None:
    session = ExplorationSession()
    fixes = fixes_of([(0, 20 * i) for i in range(15)])
    stats = replay_exploration(fixes, session)
    assert stats.outcomes == {"recorded": 15}
    assert stats.ticks == 14 * 9
    assert session.result is not None
    assert session.result.status == "completed"
    assert session.result.reward_tier is RewardTier.BRONZE


@pytest.fixture
def rect_csv(tmp_path: Path) -> Path:
    return write_fixes_csv(tmp_path / "Path.csv", fixes_of(RECT_60x40))


def test_cli_claim_exports_territory(rect_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out = tmp_path / "territory.json"
    assert main(["claim", "--csv", str(rect_csv), "--user-id", "me", "--out", str(out), "--json"]) == 0
    row = json.loads(out.read_text(encoding="utf-8"))
    assert row["user_id"] == "me"
    assert row["point_count"] == 12
    printed = capsys.readouterr().out
    assert "passed=True" in printed
    assert '"state": "claimed"' in printed


def test_cli_claim_blocked_by_territory(rect_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    snapshot = tmp_path / "territories.json"
    snapshot.write_text(
        json.dumps([{"user_id": "other", "path": [{"lat": 31.0, "lon": 121.0}, {"lat": 31.0, "lon": 122.0}, {"lat": 32.0, "lon": 121.5}]}]),
        encoding="utf-8",
    )
    assert main(["claim", "--csv", str(rect_csv), "--territories", str(snapshot)]) == 1
    assert "不能在他人领地内开始圈地" in capsys.readouterr().out


def test_cli_validate(tmp_path: Path, rect_csv: Path) -> None:
    assert main(["validate", "--csv", str(rect_csv)]) == 0
    sliver = write_fixes_csv(tmp_path / "Sliver.csv", fixes_of(DIAGONAL_SLIVER))
    assert main(["validate", "--csv", str(sliver)]) == 1
    assert main(["validate", "--csv", str(sliver), "--min-compactness", "10"]) == 0


def test_cli_explore(rect_csv: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["explore", "--csv", str(rect_csv), "--events"]) == 0
    printed = capsys.readouterr().out
    assert "status=completed" in printed
    assert "explore.end" in printed


def test_cli_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["claim", "--csv", str(tmp_path / "nope.csv")]) == 2
    assert "找不到文件" in capsys.readouterr().err
