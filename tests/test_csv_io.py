from __future__ import annotations

from pathlib import Path

import pytest

from helpers import RECT_60x40, fixes_of, write_fixes_csv
from territory_claim.csv_io import load_fixes


def test_load_sorts_by_time(tmp_path: Path) -> None:
    fixes = fixes_of(RECT_60x40)
    p = write_fixes_csv(tmp_path / "Path.csv", reversed(fixes))

    loaded, summary = load_fixes(p)
    assert [fx.timestamp_ms for fx in loaded] == [fx.timestamp_ms for fx in fixes]
    assert summary.rows_total == summary.rows_parsed == 12
    assert summary.rows_skipped == 0
    assert loaded[0].reported_speed_mps is None
    assert loaded[0].horizontal_accuracy_m == 5.0
    assert loaded[3].point.latitude == pytest.approx(fixes[3].point.latitude, abs=1e-7)


def test_broken_rows_are_skipped(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    p = tmp_path / "Path.csv"
    p.write_text(
        "geoTime,latitude,longitude,horizontalAccuracy,speed\n"
        "1735689600000,31.2304,121.4737,5.0,1.2\n"
        "1735689610000,abc,121.4737,5.0,1.2\n"
        "1735689620000,31.2305,121.4738,-1,-1\n",
        encoding="utf-8",
    )
    with caplog.at_level("WARNING"):
        fixes, summary = load_fixes(p)
    assert summary.rows_skipped == 1
    assert len(fixes) == 2
    assert fixes[0].reported_speed_mps == 1.2
    assert fixes[1].horizontal_accuracy_m == -1.0
    assert "跳过" in caplog.text


def test_missing_column(tmp_path: Path) -> None:
    p = tmp_path / "Path.csv"
    p.write_text("geoTime,latitude\n1735689600000,31.2304\n", encoding="utf-8")
    with pytest.raises(KeyError, match="longitude"):
        load_fixes(p)


def test_accuracy_column_is_optional(tmp_path: Path) -> None:
    p = tmp_path / "Path.csv"
    p.write_text("geoTime,latitude,longitude\n1735689600000,31.2304,121.4737\n", encoding="utf-8")
    (fix,), summary = load_fixes(p)
    assert summary.rows_parsed == 1
    assert fix.horizontal_accuracy_m == 0.0
    assert fix.timestamp_s == 1_735_689_600.0
