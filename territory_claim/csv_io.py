"""CSV input utilities for recorded fix streams (Path.csv export format)."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from territory_claim.models import GeoPoint, TimestampedFix

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_int(value: str) -> int:
    return int(value.strip())


def _parse_float(value: str) -> float:
    return float(value.strip())


def _fix_from_row(row: Mapping[str, str]) -> TimestampedFix:
    """Build a fix from one CSV row.

    The export uses -1 as "unknown" for speed and accuracy; unknown speed maps to
    None and an explicit -1 accuracy stays negative so the recorder rejects it.
    A file without an accuracy column is treated as fully accurate.
    """

    speed = _parse_float(row.get("speed", "-1") or "-1")
    return TimestampedFix(
        point=GeoPoint(
            latitude=_parse_float(row["latitude"]),
            longitude=_parse_float(row["longitude"]),
        ),
        timestamp_ms=_parse_int(row["geoTime"]),
        horizontal_accuracy_m=_parse_float(row.get("horizontalAccuracy", "0") or "0"),
        reported_speed_mps=speed if speed >= 0 else None,
    )


def load_fixes(csv_path: str | Path) -> tuple[list[TimestampedFix], CsvSummary]:
    """Load all fixes into memory, sorted by timestamp.

    Args:
        csv_path: Path to the exported CSV.

    Returns:
        (fixes, summary)

    Notes:
        Required columns: geoTime (epoch ms), latitude, longitude.
        Optional: horizontalAccuracy, speed (m/s).

    Raises:
        KeyError: If a required column is missing.
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[TimestampedFix] = []
    fieldnames: Sequence[str] = ()

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or ()
        missing = [c for c in ("geoTime", "latitude", "longitude") if c not in fieldnames]
        if missing:
            raise KeyError(f"CSV缺少必要字段：{missing}. 实际字段：{list(fieldnames)}")
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_fix_from_row(row))
            except (KeyError, ValueError, TypeError, AttributeError):
                continue

    parsed.sort(key=lambda fx: fx.timestamp_ms)
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary
