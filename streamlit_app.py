from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import streamlit as st

from territory_claim.csv_io import load_fixes
from territory_claim.events import EventLog
from territory_claim.exploration import ExplorationSession
from territory_claim.models import DEFAULT_TZ, ClaimParams, ExplorationParams, TimestampedFix
from territory_claim.payload import load_territories_json
from territory_claim.replay import replay_claim, replay_exploration
from territory_claim.session import ClaimSession
from territory_claim.timeutils import dt_from_epoch_ms, format_hhmmss


@st.cache_data(show_spinner=False)
def _load_fixes(path_csv: str, mtime: float) -> list[TimestampedFix]:
    _ = mtime  # part of cache key so updated files reload automatically
    fixes, _summary = load_fixes(path_csv)
    return fixes


def _event_rows(events: EventLog, tz_name: str) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for e in events:
        rows.append(
            {
                "time": "" if e.timestamp_ms is None else dt_from_epoch_ms(e.timestamp_ms, tz_name).strftime("%H:%M:%S"),
                "stage": e.stage,
                "passed": e.passed,
                "value": None if e.value is None else round(e.value, 2),
                "threshold": e.threshold,
                "message": e.message,
            }
        )
    return rows


def _claim_tab(fixes: list[TimestampedFix], params: ClaimParams, user_id: str, territories_json: str, tz_name: str) -> None:
    territories = []
    if territories_json:
        tp = Path(territories_json)
        if not tp.exists():
            st.error(f"找不到领地快照：{territories_json!r}（将按无他人领地处理）")
        else:
            territories = load_territories_json(tp)

    events = EventLog()
    session = ClaimSession(user_id=user_id, params=params, events=events, territories=territories, tz_name=tz_name)
    stats = replay_claim(fixes, session)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("会话状态", session.state.value)
    c2.metric("路径点数", str(len(session.path)))
    c3.metric("接收定位", str(stats.fixes))
    c4.metric("他人领地", str(len(territories)))

    verdict = session.verdict
    if verdict is not None:
        st.subheader("验证结果")
        v1, v2, v3 = st.columns(3)
        v1.metric("面积（㎡）", f"{verdict.computed_area:.0f}")
        v2.metric("行走距离（米）", f"{verdict.computed_distance:.0f}")
        v3.metric("紧凑度", f"{verdict.compactness_ratio:.0f}%")
        if verdict.passed:
            st.success(verdict.message)
        else:
            st.error(verdict.message)
    else:
        st.info("轨迹未闭合，尚未验证。")

    if session.last_collision.message:
        st.warning(session.last_collision.message)

    if session.payload is not None:
        with st.expander("领地数据（将提交到服务器的行）", expanded=False):
            st.json(session.payload.to_row())

    st.subheader("各结果计数")
    st.dataframe([{"outcome": k, "count": n} for k, n in sorted(stats.outcomes.items())], use_container_width=True)

    st.subheader("诊断日志")
    st.dataframe(_event_rows(events, tz_name), use_container_width=True, height=420)


def _explore_tab(fixes: list[TimestampedFix], params: ExplorationParams, tz_name: str) -> None:
    events = EventLog()
    session = ExplorationSession(params, events)
    replay_exploration(fixes, session)
    result = session.result
    if result is None:
        st.info("没有可用的定位数据。")
        return

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("状态", result.status)
    c2.metric("行走距离", result.formatted_distance)
    c3.metric("时长", format_hhmmss(result.duration_seconds))
    c4.metric("奖励等级", result.reward_tier.value)
    st.caption(f"最高速度 {result.max_speed_kmh:.1f} km/h，记录点 {len(result.path)} 个")

    st.subheader("诊断日志")
    st.dataframe(_event_rows(events, tz_name), use_container_width=True, height=420)


def main() -> None:
    st.set_page_config(page_title="圈地轨迹回放", layout="wide")
    st.title("圈地轨迹回放：过滤、闭合、验证与碰撞检测")

    with st.sidebar:
        st.subheader("数据")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        path_csv = st.text_input("Path.csv 路径", value="sample_data/Path.csv")
        territories_json = st.text_input("他人领地快照 JSON（可留空）", value="")
        user_id = st.text_input("当前用户ID", value="local-user")

        d = ClaimParams()
        with st.expander("圈地参数", expanded=False):
            accuracy = st.number_input("定位精度阈值（米）", value=d.accuracy_threshold_m, step=5.0)
            max_jump = st.number_input("GPS 跳点距离（米）", value=d.max_jump_distance_m, step=10.0)
            min_record = st.number_input("最小记录距离（米）", value=d.min_record_distance_m, step=1.0)
            speed_warning = st.number_input("速度警告（km/h）", value=d.speed_warning_kmh, step=1.0)
            speed_violation = st.number_input("超速停止（km/h）", value=d.speed_violation_kmh, step=1.0)
            closure = st.number_input("闭合距离（米）", value=d.closure_threshold_m, step=5.0)
            min_area = st.number_input("最小面积（㎡）", value=d.min_area_m2, step=50.0)
            min_compactness = st.number_input("最小紧凑度（%）", value=d.min_compactness_pct, step=5.0)

        e = ExplorationParams()
        with st.expander("探索参数", expanded=False):
            speed_limit = st.number_input("速度限制（km/h）", value=e.speed_limit_kmh, step=1.0)
            warning_seconds = st.number_input("超速倒计时（秒）", value=e.warning_duration_s, step=1)

    p = Path(path_csv)
    if not p.exists():
        st.error(f"找不到文件：{path_csv!r}。可先运行 scripts/generate_sample_path_csv.py 生成示例数据。")
        return

    try:
        fixes = _load_fixes(path_csv, p.stat().st_mtime)
    except KeyError as exc:
        st.exception(exc)
        return

    claim_params = replace(
        ClaimParams(),
        accuracy_threshold_m=float(accuracy),
        max_jump_distance_m=float(max_jump),
        min_record_distance_m=float(min_record),
        speed_warning_kmh=float(speed_warning),
        speed_violation_kmh=float(speed_violation),
        closure_threshold_m=float(closure),
        min_area_m2=float(min_area),
        min_compactness_pct=float(min_compactness),
    )
    explore_params = replace(ExplorationParams(), speed_limit_kmh=float(speed_limit), warning_duration_s=int(warning_seconds))

    tab_claim, tab_explore = st.tabs(["圈地", "探索"])
    with tab_claim:
        _claim_tab(fixes, claim_params, user_id, territories_json, tz_name)
    with tab_explore:
        _explore_tab(fixes, explore_params, tz_name)

    st.caption("说明：回放按定位时间顺序投递，并按采样间隔模拟定时器 tick；不绘制地图。")


if __name__ == "__main__":
    main()
