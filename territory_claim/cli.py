"""Command-line interface for territory_claim.

Run:
    python -m territory_claim claim --csv Path.csv
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path

from territory_claim.csv_io import load_fixes
from territory_claim.events import EventLog
from territory_claim.exploration import ExplorationSession
from territory_claim.models import DEFAULT_TZ, ClaimParams, ExplorationParams, ValidationVerdict
from territory_claim.payload import load_territories_json, write_payload_json
from territory_claim.replay import replay_claim, replay_exploration
from territory_claim.session import ClaimSession
from territory_claim.timeutils import delta_stats, dt_from_epoch_ms, format_hhmmss
from territory_claim.validation import TerritoryValidator


def _claim_params(args: argparse.Namespace) -> ClaimParams:
    return replace(
        ClaimParams(),
        accuracy_threshold_m=args.accuracy_m,
        max_jump_distance_m=args.max_jump_m,
        min_record_distance_m=args.min_record_m,
        speed_warning_kmh=args.speed_warning_kmh,
        speed_violation_kmh=args.speed_violation_kmh,
        closure_threshold_m=args.closure_m,
        min_path_points=args.min_points,
        min_total_distance_m=args.min_distance_m,
        min_area_m2=args.min_area_m2,
        min_compactness_pct=args.min_compactness,
    )


def _print_verdict(verdict: ValidationVerdict | None) -> None:
    print("### 验证结果")
    if verdict is None:
        print("未闭合，未进行验证")
        print()
        return
    reason = verdict.failure_reason.value if verdict.failure_reason else "-"
    print(
        f"passed={verdict.passed}, reason={reason}, points={verdict.point_count}, "
        f"distance={verdict.computed_distance:.1f}m, area={verdict.computed_area:.1f}㎡, "
        f"compactness={verdict.compactness_ratio:.1f}%"
    )
    print(verdict.message)
    print()


def _cmd_claim(args: argparse.Namespace) -> int:
    fixes, summary = load_fixes(args.csv)
    territories = load_territories_json(args.territories) if args.territories else []
    events = EventLog(max_events=args.max_events)
    session = ClaimSession(
        user_id=args.user_id,
        params=_claim_params(args),
        events=events,
        territories=territories,
        tz_name=args.tz,
    )
    stats = replay_claim(fixes, session)

    print("### 输入")
    print(f"total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")
    if fixes:
        start = dt_from_epoch_ms(fixes[0].timestamp_ms, args.tz)
        end = dt_from_epoch_ms(fixes[-1].timestamp_ms, args.tz)
        print(f"start={start.isoformat(sep=' ')}, end={end.isoformat(sep=' ')}")
    delta = delta_stats(fx.timestamp_ms for fx in fixes)
    if delta is not None:
        print(f"采样间隔：median={delta.median_s:.1f}s, p95={delta.p95_s:.1f}s, max={delta.max_s:.1f}s")
    print()

    print("### 回放")
    print(f"fixes={stats.fixes}, ticks={stats.ticks}, state={session.state.value}, path_points={len(session.path)}")
    for key, n in sorted(stats.outcomes.items()):
        print(f"  {key}: {n}")
    if session.last_collision.message:
        print(f"碰撞检测：{session.last_collision.message}")
    print()

    _print_verdict(session.verdict)

    if session.payload is not None and args.out:
        write_payload_json(session.payload, args.out)
        print(f"已导出：{args.out}")

    if args.events:
        print(events.export_text())

    if args.json:
        payload = {
            "state": session.state.value,
            "stats": asdict(stats),
            "verdict": None if session.verdict is None else asdict(session.verdict),
            "collision": asdict(session.last_collision),
            "territory": None if session.payload is None else session.payload.to_row(),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    return 0 if session.payload is not None else 1


def _cmd_validate(args: argparse.Namespace) -> int:
    fixes, _ = load_fixes(args.csv)
    events = EventLog(max_events=args.max_events)
    verdict = TerritoryValidator(_claim_params(args), events).validate([fx.point for fx in fixes])
    _print_verdict(verdict)
    if args.events:
        print(events.export_text())
    if args.json:
        print(json.dumps(asdict(verdict), ensure_ascii=False, indent=2, default=str))
    return 0 if verdict.passed else 1


def _cmd_explore(args: argparse.Namespace) -> int:
    fixes, _ = load_fixes(args.csv)
    events = EventLog(max_events=args.max_events)
    params = ExplorationParams(
        speed_limit_kmh=args.speed_limit_kmh,
        warning_duration_s=args.warning_seconds,
        min_record_distance_m=args.min_record_m,
        max_jump_distance_m=args.max_jump_m,
        accuracy_threshold_m=args.accuracy_m,
    )
    session = ExplorationSession(params, events)
    replay_exploration(fixes, session)
    result = session.result

    print("### 探索结果")
    if result is None:
        print("没有可用的定位数据")
        return 1
    print(
        f"status={result.status}, distance={result.formatted_distance}, "
        f"duration={format_hhmmss(result.duration_seconds)}, tier={result.reward_tier.value}, "
        f"max_speed={result.max_speed_kmh:.1f}km/h, points={len(result.path)}"
    )
    if args.events:
        print(events.export_text())
    if args.json:
        data = asdict(result)
        data["path"] = [{"lat": p.latitude, "lon": p.longitude, "t": t} for p, t in result.path]
        print(json.dumps(data, ensure_ascii=False, indent=2, default=str))
    return 0 if result.status != "failed_overspeed" else 1


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--csv", type=str, default="Path.csv", help="输入CSV路径（Path.csv 导出格式）")
    p.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 Asia/Shanghai")
    p.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p.add_argument("--events", action="store_true", help="输出完整诊断日志")
    p.add_argument("--max-events", type=int, default=200, help="诊断日志最多保留条数")


def _add_claim_thresholds(p: argparse.ArgumentParser) -> None:
    d = ClaimParams()
    p.add_argument("--accuracy-m", type=float, default=d.accuracy_threshold_m, help="定位精度阈值（米）")
    p.add_argument("--max-jump-m", type=float, default=d.max_jump_distance_m, help="GPS 跳点距离（米）")
    p.add_argument("--min-record-m", type=float, default=d.min_record_distance_m, help="最小记录距离（米）")
    p.add_argument("--speed-warning-kmh", type=float, default=d.speed_warning_kmh, help="速度警告阈值")
    p.add_argument("--speed-violation-kmh", type=float, default=d.speed_violation_kmh, help="超速停止阈值")
    p.add_argument("--closure-m", type=float, default=d.closure_threshold_m, help="闭合判定距离（米）")
    p.add_argument("--min-points", type=int, default=d.min_path_points, help="最少路径点数")
    p.add_argument("--min-distance-m", type=float, default=d.min_total_distance_m, help="最短行走距离（米）")
    p.add_argument("--min-area-m2", type=float, default=d.min_area_m2, help="最小面积（平方米）")
    p.add_argument("--min-compactness", type=float, default=d.min_compactness_pct, help="最小紧凑度（%%）")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="territory_claim")
    p.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_claim = sub.add_parser("claim", help="回放轨迹CSV，模拟一次完整圈地（过滤→闭合→验证→碰撞）")
    _add_common(p_claim)
    _add_claim_thresholds(p_claim)
    p_claim.add_argument("--user-id", type=str, default="local-user", help="当前用户ID")
    p_claim.add_argument(
        "--territories",
        type=str,
        default=None,
        help="他人领地快照（JSON数组，元素含 user_id 与 path:[{lat,lon}]）",
    )
    p_claim.add_argument("--out", type=str, default=None, help="圈地成功时导出领地 JSON 路径")
    p_claim.set_defaults(func=_cmd_claim)

    p_val = sub.add_parser("validate", help="把CSV中的点直接当作闭合路径进行几何验证（不做过滤）")
    _add_common(p_val)
    _add_claim_thresholds(p_val)
    p_val.set_defaults(func=_cmd_validate)

    d = ExplorationParams()
    p_exp = sub.add_parser("explore", help="回放轨迹CSV，模拟一次行走探索（超速倒计时、奖励等级）")
    _add_common(p_exp)
    p_exp.add_argument("--speed-limit-kmh", type=float, default=d.speed_limit_kmh, help="速度限制（km/h）")
    p_exp.add_argument("--warning-seconds", type=int, default=d.warning_duration_s, help="超速警告倒计时（秒）")
    p_exp.add_argument("--min-record-m", type=float, default=d.min_record_distance_m, help="最小记录距离（米）")
    p_exp.add_argument("--max-jump-m", type=float, default=d.max_jump_distance_m, help="GPS 跳点距离（米）")
    p_exp.add_argument("--accuracy-m", type=float, default=d.accuracy_threshold_m, help="定位精度阈值（米）")
    p_exp.set_defaults(func=_cmd_explore)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if getattr(args, "csv", None) and not Path(args.csv).exists():
        print(f"找不到文件：{args.csv!r}", file=sys.stderr)
        return 2
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
