"""
Production Dashboard: Interactive Dashboard

Run with:  streamlit run app.py
"""

import streamlit as st
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd

from production_dashboard.config import (
    AGG_FUNCS,
    DATASETS,
    MAX_PIVOT_FIELDS,
    MONTH_MERGED_DATASETS,
    PROCESSES,
)
from production_dashboard.dashboard import (
    get_available_months,
    get_downtime_summary,
    get_key_issues,
    get_mold_summary,
    get_oee_summary,
    get_pivot,
    get_pivot_fields,
    get_production_overview,
    get_quality_breakdown,
    get_quality_summary,
    issues_by_process,
)
from production_dashboard.export import export_issues, export_pivot
from production_dashboard.issues import PRESETS
from production_dashboard.loaders import load_export, months_in
from production_dashboard.pivot import PivotSpec
from production_dashboard.simulator import generate_all
from production_dashboard.store import ConfigStore, JsonRecordStore
from production_dashboard.transforms import downtime_reasons, issues_to_frame

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Production Dashboard",
    page_icon="🏭",
    layout="wide",
    initial_sidebar_state="expanded",
)

SEVERITY_COLORS = {
    "critical": "#e74c3c",
    "warning": "#f39c12",
    "caution": "#f1c40f",
}

store = JsonRecordStore()
settings = ConfigStore()


# ---------------------------------------------------------------------------
# Data loading (cached)
# ---------------------------------------------------------------------------
@st.cache_data
def load_demo_data():
    return generate_all()


def dataset(name: str) -> list[dict]:
    records = store.get_all(name)
    if records or not use_demo:
        return records
    return load_demo_data().get(name, [])


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title("Production Dashboard")
st.sidebar.markdown("생산 · 품질 · 설비 현황")
st.sidebar.divider()

use_demo = st.sidebar.checkbox("Use simulated data when nothing is uploaded", value=True)

available_months = get_available_months(dataset("production"))
month_options = [None] + available_months
selected_month = st.sidebar.selectbox(
    "Select Month",
    month_options,
    index=len(month_options) - 1,
    format_func=lambda m: "All" if m is None else f"{m}월",
)

page = st.sidebar.radio(
    "Navigate",
    ["Overview", "Quality", "OEE", "Pivot", "Downtime", "Molds", "Key Issues", "Upload"],
)


# ---------------------------------------------------------------------------
# Helper: metric card
# ---------------------------------------------------------------------------
def metric_card(label: str, value: str, color: str = "#3498db"):
    st.markdown(
        f"""
        <div style="background: linear-gradient(135deg, {color}22, {color}11);
                    border-left: 4px solid {color};
                    border-radius: 8px; padding: 16px; margin-bottom: 8px;">
            <div style="font-size: 13px; color: #888; font-weight: 600;">{label}</div>
            <div style="font-size: 28px; font-weight: 700; color: #222; margin: 4px 0;">{value}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


# ===========================================================================
# PAGE: Overview
# ===========================================================================
if page == "Overview":
    st.title("Production Overview")
    overview = get_production_overview(dataset("production"), selected_month)
    quality = get_quality_summary(dataset("production"), dataset("price"), selected_month)

    cols = st.columns(4)
    with cols[0]:
        metric_card("생산수량", f"{overview['production']:,.0f}")
    with cols[1]:
        metric_card("양품수량", f"{overview['good']:,.0f}", "#2ecc71")
    with cols[2]:
        metric_card("불량률", f"{overview['defect_rate']:.2f}%", "#e74c3c")
    with cols[3]:
        metric_card("불량금액", f"{quality['defect_amount']:,.0f}", "#f39c12")

    if quality["unmatched"]:
        st.caption(
            f"{quality['unmatched']} rows had no price-list match and count as 0: "
            f"{', '.join(quality['unmatched_items'][:10])}"
        )
    for warning in overview["warnings"]:
        st.warning(warning)

    groups = overview["groups"]
    if not groups.empty:
        fig = px.bar(groups, x="process", y=["good", "defect"], barmode="stack", title="공정별 생산")
        st.plotly_chart(fig, use_container_width=True)

# ===========================================================================
# PAGE: Quality
# ===========================================================================
elif page == "Quality":
    st.title("Quality")
    process_filter = st.selectbox("Process (items table)", ["All", *PROCESSES])
    breakdown = get_quality_breakdown(
        dataset("production"), dataset("price"), selected_month,
        process=None if process_filter == "All" else process_filter,
    )
    overall = breakdown["overall"]

    cols = st.columns(4)
    with cols[0]:
        metric_card("수율", f"{overall['yield_rate']:.1f}%", "#2ecc71")
    with cols[1]:
        metric_card("불량률", f"{overall['defect_rate']:.2f}%", "#e74c3c")
    with cols[2]:
        metric_card("폐기율", f"{overall['scrap_rate']:.2f}%", "#95a5a6")
    with cols[3]:
        metric_card("불량금액", f"{overall['defect_amount']:,.0f}", "#f39c12")

    processes = breakdown["processes"]
    if not processes.empty:
        fig = px.bar(processes, x="process", y=["defect", "scrap"], barmode="group", title="공정별 불량 / 폐기")
        st.plotly_chart(fig, use_container_width=True)

    items = breakdown["items"]
    if not items.empty:
        st.subheader("품목별 불량")
        st.dataframe(items.round(2), use_container_width=True, hide_index=True)

# ===========================================================================
# PAGE: OEE
# ===========================================================================
elif page == "OEE":
    st.title("OEE")
    summary = get_oee_summary(
        dataset("production"), dataset("availability"), selected_month, price_list=dataset("price"),
    )
    overall = summary["overall"]

    cols = st.columns(4)
    with cols[0]:
        metric_card("OEE", f"{overall['oee']:.1f}%")
    with cols[1]:
        metric_card("시간가동율", f"{overall['time_availability']:.1f}%", "#2ecc71")
    with cols[2]:
        metric_card("성능가동율", f"{overall['performance_rate']:.0f}%", "#95a5a6")
    with cols[3]:
        metric_card("양품률", f"{overall['quality_rate']:.1f}%", "#9b59b6")

    st.caption("성능가동율 is fixed at 100%: the exports carry no rated-speed data.")
    if summary["unmeasured_groups"]:
        st.info(
            "No availability data for "
            + ", ".join(" / ".join(key) for key in summary["unmeasured_groups"])
            + "; assumed 100%."
        )

    groups = summary["groups"]
    if not groups.empty:
        fig = go.Figure()
        fig.add_trace(go.Bar(x=groups["process"], y=groups["oee"], name="OEE"))
        fig.add_trace(go.Scatter(x=groups["process"], y=groups["time_availability"],
                                 name="시간가동율", mode="lines+markers"))
        fig.update_layout(yaxis_title="%", height=400)
        st.plotly_chart(fig, use_container_width=True)
        st.dataframe(groups.round(2), use_container_width=True, hide_index=True)

# ===========================================================================
# PAGE: Pivot
# ===========================================================================
elif page == "Pivot":
    st.title("Pivot")
    records = dataset("production")
    fields = get_pivot_fields(records)
    saved = settings.load_pivot_spec()

    def _keep(options, chosen):
        return [field for field in chosen if field in options]

    col1, col2 = st.columns(2)
    with col1:
        row_fields = st.multiselect(
            "Rows", fields["dimensions"], default=_keep(fields["dimensions"], saved.row_fields),
            max_selections=MAX_PIVOT_FIELDS,
        )
        value_options = [None] + fields["values"]
        value_field = st.selectbox(
            "Value", value_options,
            index=value_options.index(saved.value_field) if saved.value_field in value_options else 0,
            format_func=lambda v: "(count rows)" if v is None else v,
        )
    with col2:
        col_fields = st.multiselect(
            "Columns", fields["dimensions"], default=_keep(fields["dimensions"], saved.col_fields),
            max_selections=MAX_PIVOT_FIELDS,
        )
        agg_func = st.selectbox("Aggregation", AGG_FUNCS, index=AGG_FUNCS.index(saved.agg_func))

    spec = PivotSpec(tuple(row_fields), tuple(col_fields), value_field, agg_func)
    settings.update_pivot_spec(spec)

    result = get_pivot(records, spec, selected_month)
    if result.is_empty:
        st.info("Select at least one row or column field.")
    else:
        st.dataframe(result.to_frame(), use_container_width=True, hide_index=True)
        st.download_button(
            "Download CSV", export_pivot(result), file_name=f"pivot_{selected_month or 'all'}.csv",
            mime="text/csv",
        )

# ===========================================================================
# PAGE: Downtime
# ===========================================================================
elif page == "Downtime":
    st.title("Downtime")
    availability = dataset("availability")
    summary = get_downtime_summary(availability, selected_month)

    cols = st.columns(3)
    with cols[0]:
        metric_card("Records", f"{summary['record_count']:,}")
    with cols[1]:
        metric_card("총 비가동시간", f"{summary['total_downtime_minutes']:,.0f} 분", "#e74c3c")
    with cols[2]:
        metric_card("최다 비가동 설비", summary["top_equipment"] or "-", "#f39c12")

    table = pd.DataFrame(summary["equipment"])
    if not table.empty:
        fig = px.bar(table, x="equipment", y=["operating_minutes", "downtime_minutes"], barmode="stack")
        st.plotly_chart(fig, use_container_width=True)

        equipment = st.selectbox("Equipment detail", table["equipment"].tolist())
        reasons = downtime_reasons(availability, equipment)
        if reasons:
            st.dataframe(pd.DataFrame(reasons, columns=["reason", "minutes"]), hide_index=True)

# ===========================================================================
# PAGE: Molds
# ===========================================================================
elif page == "Molds":
    st.title("Molds")
    molds = get_mold_summary(dataset("mold_status"), dataset("mold_repair"), selected_month)

    cols = st.columns(4)
    with cols[0]:
        metric_card("총 금형", f"{molds['total_molds']:,}")
    with cols[1]:
        metric_card("수리 건수", f"{molds['total_repairs']:,}", "#f39c12")
    with cols[2]:
        metric_card("총 수리금액", f"{molds['total_repair_cost']:,.0f}", "#e74c3c")
    with cols[3]:
        metric_card("평균 사용율", f"{molds['avg_usage_rate']:.1f}%", "#2ecc71")

    if molds["needs_inspection"]:
        st.warning(
            f"{molds['needs_inspection']} molds at or above the cleaning/polishing limit: "
            f"{', '.join(molds['inspection_molds'][:20])}"
        )

    left, right = st.columns(2)
    with left:
        if molds["grade_counts"]:
            fig = px.pie(names=list(molds["grade_counts"]), values=list(molds["grade_counts"].values()),
                         title="등급별 금형")
            st.plotly_chart(fig, use_container_width=True)
    with right:
        if molds["repair_type_counts"]:
            fig = px.bar(x=list(molds["repair_type_counts"]), y=list(molds["repair_type_counts"].values()),
                         labels={"x": "유형", "y": "건수"}, title="유형별 수리")
            st.plotly_chart(fig, use_container_width=True)

    monthly = pd.DataFrame(molds["monthly_repairs"])
    if not monthly.empty:
        fig = go.Figure()
        fig.add_trace(go.Bar(x=monthly["period"], y=monthly["cost"], name="수리금액"))
        fig.add_trace(go.Scatter(x=monthly["period"], y=monthly["count"], name="건수",
                                 mode="lines+markers", yaxis="y2"))
        fig.update_layout(yaxis2={"overlaying": "y", "side": "right"}, height=400)
        st.plotly_chart(fig, use_container_width=True)

# ===========================================================================
# PAGE: Key Issues
# ===========================================================================
elif page == "Key Issues":
    st.title("Key Issues")
    profile = settings.load_profile()

    preset_names = list(PRESETS) + ["custom"]
    chosen = st.radio(
        "Threshold preset", preset_names,
        index=preset_names.index(profile.name) if profile.name in preset_names else 1,
        horizontal=True,
    )
    if chosen != "custom":
        profile = PRESETS[chosen]

    with st.expander("Custom thresholds"):
        availability = st.number_input("시간가동율 <", value=profile.availability_threshold)
        ct_excess = st.number_input("CT 초과 >", value=profile.ct_excess_threshold)
        defect = st.number_input("불량률 >", value=profile.defect_rate_threshold)
        material_top = st.number_input("자재불량 TOP", value=profile.material_defect_top, step=1)
        packaging_top = st.number_input("검포장불량 TOP", value=profile.packaging_defect_top, step=1)
        if st.button("Apply"):
            profile = profile.customize(
                availability_threshold=availability,
                ct_excess_threshold=ct_excess,
                defect_rate_threshold=defect,
                material_defect_top=int(material_top),
                packaging_defect_top=int(packaging_top),
            )
    settings.update_profile(profile)

    board = get_key_issues(
        profile,
        detail=dataset("detail"),
        ct=dataset("ct"),
        material_defects=dataset("material_defect"),
        packaging=dataset("packaging_status"),
        month=selected_month,
    )

    cols = st.columns(3)
    for col, severity in zip(cols, SEVERITY_COLORS):
        with col:
            metric_card(severity, str(board["counts"][severity]), SEVERITY_COLORS[severity])

    counts = issues_by_process(board["issues"])
    if not counts.empty:
        fig = px.bar(counts, x="process", y="count", color="severity",
                     color_discrete_map=SEVERITY_COLORS, barmode="stack")
        st.plotly_chart(fig, use_container_width=True)

    st.dataframe(issues_to_frame(board["issues"]).round(1), use_container_width=True, hide_index=True)
    st.download_button("Download CSV", export_issues(board["issues"]), file_name="key_issues.csv",
                       mime="text/csv")

# ===========================================================================
# PAGE: Upload
# ===========================================================================
elif page == "Upload":
    st.title("Upload Exports")
    name = st.selectbox("Dataset", list(DATASETS), format_func=lambda key: DATASETS[key])
    upload = st.file_uploader("CSV / Excel export", type=["csv", "xlsx"])

    if upload is not None and st.button("Save"):
        records = load_export(upload.getvalue(), upload.name)
        if name in MONTH_MERGED_DATASETS:
            months = months_in(records)
            store.merge_months(name, records, months)
            st.success(f"{len(records)} rows saved for months {months}")
        else:
            store.replace_all(name, records)
            st.success(f"{len(records)} rows saved")

    st.divider()
    for key, label in DATASETS.items():
        st.caption(f"{label}: {len(store.get_all(key)):,} records")
