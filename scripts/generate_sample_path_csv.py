from __future__ import annotations

import argparse
import csv
import math
import random
from datetime import datetime
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


TZ: Final[str] = "Asia/Shanghai"
METERS_PER_DEGREE_LAT: Final[float] = 111_320.0


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _rectangle_walk(width_m: float, height_m: float, step_m: float) -> list[tuple[float, float]]:
    """Corner-preserving walk around a rectangle, counter-clockwise from the origin."""

    corners = [(0.0, 0.0), (width_m, 0.0), (width_m, height_m), (0.0, height_m), (0.0, 0.0)]
    out: list[tuple[float, float]] = []
    for (x1, y1), (x2, y2) in zip(corners, corners[1:]):
        n = max(1, math.ceil(math.hypot(x2 - x1, y2 - y1) / step_m))
        for k in range(n):
            out.append((x1 + (x2 - x1) * k / n, y1 + (y2 - y1) * k / n))
    out.append(corners[-1])
    return out


def generate_rows(
    *,
    seed: int,
    start_local: datetime,
    lat0: float,
    lon0: float,
    width_m: float,
    height_m: float,
    step_m: float,
    interval_s: float,
    jitter_m: float,
    jump: bool,
    speeding: bool,
) -> list[dict[str, str]]:
    """Generate fake Path.csv rows for one walk around a rectangle."""

    rng = random.Random(seed)
    k_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(lat0))
    t_ms = _epoch_ms(start_local.replace(tzinfo=ZoneInfo(TZ)))

    walk = _rectangle_walk(width_m, height_m, step_m)
    out: list[dict[str, str]] = []
    for i, (x, y) in enumerate(walk):
        x += rng.uniform(-jitter_m, jitter_m)
        y += rng.uniform(-jitter_m, jitter_m)
        dt = interval_s
        # Cover the third leg far too quickly to trip the speed guard.
        if speeding and len(walk) // 2 <= i < len(walk) // 2 + 3:
            dt = 1.2
        t_ms += int(dt * 1000)

        if jump and i == len(walk) // 3:
            # A single fix 150 m off the track, one second after the previous one.
            out.append(_row(t_ms - int(dt * 1000) + 1000, lat0 + (y + 150.0) / METERS_PER_DEGREE_LAT, lon0 + x / k_lon, 8.0, -1.0))

        out.append(
            _row(
                t_ms,
                lat0 + y / METERS_PER_DEGREE_LAT,
                lon0 + x / k_lon,
                rng.choice([3.0, 5.0, 8.0, 12.0]),
                step_m / dt,
            )
        )

    # A low-accuracy sample somewhere in the middle of the walk.
    bad = out[len(out) // 4]
    out.append(dict(bad, geoTime=str(int(bad["geoTime"]) + 500), horizontalAccuracy="65.0"))

    out.sort(key=lambda r: int(r["geoTime"]))
    return out


def _row(t_ms: int, lat: float, lon: float, hacc: float, speed: float) -> dict[str, str]:
    return {
        "geoTime": str(t_ms),
        "latitude": f"{lat:.7f}",
        "longitude": f"{lon:.7f}",
        "altitude": "0.0",
        "horizontalAccuracy": f"{hacc:.1f}",
        "speed": f"{speed:.1f}",
        "locationType": "1",
    }


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake Path.csv walking loop for demo/testing.")
    p.add_argument("--out", type=str, default="sample_data/Path.csv", help="Output CSV path")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--start", type=str, default="2025-01-01 08:00:00", help="Start local time in Asia/Shanghai")
    p.add_argument("--lat", type=float, default=31.2304000, help="Latitude of the loop's south-west corner")
    p.add_argument("--lon", type=float, default=121.4737000, help="Longitude of the loop's south-west corner")
    p.add_argument("--width-m", type=float, default=60.0, help="Loop width (meters, east-west)")
    p.add_argument("--height-m", type=float, default=40.0, help="Loop height (meters, north-south)")
    p.add_argument("--step-m", type=float, default=15.0, help="Distance between samples (meters)")
    p.add_argument("--interval-s", type=float, default=8.0, help="Seconds between samples")
    p.add_argument("--jitter-m", type=float, default=1.0, help="Uniform position noise (meters)")
    p.add_argument("--jump", action="store_true", help="Insert one GPS jump fix")
    p.add_argument("--speeding", action="store_true", help="Walk one stretch at vehicle speed")
    args = p.parse_args()

    rows = generate_rows(
        seed=args.seed,
        start_local=datetime.fromisoformat(args.start),
        lat0=args.lat,
        lon0=args.lon,
        width_m=args.width_m,
        height_m=args.height_m,
        step_m=args.step_m,
        interval_s=args.interval_s,
        jitter_m=args.jitter_m,
        jump=args.jump,
        speeding=args.speeding,
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames = ["geoTime", "latitude", "longitude", "altitude", "horizontalAccuracy", "speed", "locationType"]
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
