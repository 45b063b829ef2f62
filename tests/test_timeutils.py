from __future__ import annotations

import pytest

from territory_claim.timeutils import delta_stats, dt_from_epoch_ms, format_hhmmss, tzinfo_from_name


def test_epoch_ms_to_local_time() -> None:
    dt = dt_from_epoch_ms(1_735_689_600_000, "Asia/Shanghai")
    assert (dt.year, dt.month, dt.day, dt.hour) == (2025, 1, 1, 8)


def test_invalid_timezone() -> None:
    with pytest.raises(ValueError):
        tzinfo_from_name("Not/AZone")


@pytest.mark.parametrize("seconds, text", [(0, "00:00:00"), (59.6, "00:01:00"), (3725, "01:02:05"), (-3, "00:00:00")])
def test_format_hhmmss(seconds: float, text: str) -> None:
    assert format_hhmmss(seconds) == text


def test_delta_stats() -> None:
    stats = delta_stats([0, 1000, 3000, 6000, 10_000])
    assert stats is not None
    assert stats.count == 4
    assert stats.min_s == 1.0
    assert stats.median_s == 2.5
    assert stats.max_s == 4.0
    assert delta_stats([0]) is None
