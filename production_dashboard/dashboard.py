"""
Dashboard-ready output functions.

These are the primary entry points for the Streamlit front end.
Each function takes raw records plus explicit configuration (month, pivot
selection, threshold profile) and returns plain dicts, dataclasses or
DataFrames suitable for rendering cards, charts, and tables. Nothing is
cached between calls.
"""

import logging
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from .config import (
    FIELD_CANDIDATES,
    OTHER_REPAIR_TYPE,
    PIVOT_HIDDEN_FIELDS,
    PIVOT_VALUE_FIELDS,
    UNCATEGORISED,
)
from .issues import (
    Issue,
    ThresholdProfile,
    count_by_severity,
    detect_issues,
    rank_issues,
)
from .kpis import ProductionTotals, defect_rate, rollup_metrics, uph
from .loaders.exports import months_in
from .loaders.utils import parse_number, safe_float
from .matcher import ReferenceIndex, rollup_defect_amount
from .pivot import PivotResult, PivotSpec, build_pivot
from .resolver import audit_fields, is_empty, resolve
from .transforms import (
    QUALITY_COLUMNS,
    availability_by_equipment,
    average_usage_rate,
    build_group_metrics,
    count_by_field,
    ct_excess_by_product,
    defect_rate_by_equipment,
    downtime_by_equipment,
    exclude_rows,
    filter_by_month,
    grade_counts,
    item_quality,
    material_defect_totals,
    metrics_to_frame,
    molds_due_for_inspection,
    packaging_defect_totals,
    priced_defect,
    process_quality,
    quality_row,
    repairs_by_month,
)

logger = logging.getLogger(__name__)

Records = Iterable[Mapping[str, Any]]

_AUDITED_FIELDS = (
    "process", "equipment", "item_code", "item_name",
    "production_qty", "good_qty", "defect_qty", "date",
)


def get_production_overview(
    production: Records,
    month: int | None = None,
    fields: Sequence[str] = ("process",),
) -> dict:
    """Headline production cards plus a per-group table.

    Returns
    -------
    Dict with keys: production, good, defect, scrap, defect_rate, uph,
    record_count, groups (DataFrame), warnings (ambiguous column messages).
    """
    records = filter_by_month(production, month)
    warnings = audit_fields(records, {name: FIELD_CANDIDATES[name] for name in _AUDITED_FIELDS})
    totals = ProductionTotals.from_records(exclude_rows(records))
    groups = build_group_metrics(records, fields=fields)

    return {
        "production": totals.production,
        "good": totals.good,
        "defect": totals.defect,
        "scrap": totals.scrap,
        "defect_rate": defect_rate(totals.defect, totals.production),
        "uph": uph(totals.production, totals.work_minutes),
        "record_count": totals.records,
        "groups": metrics_to_frame(groups, fields),
        "warnings": warnings,
    }


def get_quality_summary(
    production: Records,
    price_list: Records,
    month: int | None = None,
) -> dict:
    """Defect quantity and defect amount (priced through the price list).

    Returns
    -------
    Dict with keys: total_defect, defect_amount, matched, unmatched,
    unmatched_items, defect_rate.
    """
    records = exclude_rows(filter_by_month(production, month))
    index = ReferenceIndex(price_list)
    if index.size == 0:
        logger.warning("Price list is empty; defect amount will be 0")

    rollup = rollup_defect_amount(records, index)
    totals = ProductionTotals.from_records(records)
    return {
        "total_defect": rollup.total_defect,
        "defect_amount": rollup.defect_amount,
        "matched": rollup.matched,
        "unmatched": rollup.unmatched,
        "unmatched_items": list(rollup.unmatched_items),
        "defect_rate": defect_rate(totals.defect, totals.production),
    }


def get_quality_breakdown(
    production: Records,
    price_list: Records = (),
    month: int | None = None,
    process: str | None = None,
) -> dict:
    """Yield, defect and scrap rates for the plant, per process and per item.

    ``process`` narrows the item table only; the overall figures and the
    process table always cover every process.

    Returns
    -------
    Dict with keys: overall (quality row dict), processes (DataFrame),
    items (DataFrame, largest defect amount first).
    """
    records = exclude_rows(filter_by_month(production, month))
    index = ReferenceIndex(price_list)

    overall = ProductionTotals()
    for record in records:
        overall.add_record(record)
        overall.defect_amount += priced_defect(record, index)

    items = item_quality(records, index)
    if process is not None:
        items = [row for row in items if row["process"] == process]

    return {
        "overall": quality_row(overall),
        "processes": pd.DataFrame(process_quality(records, index), columns=["process", *QUALITY_COLUMNS]),
        "items": pd.DataFrame(items, columns=["item", "process", *QUALITY_COLUMNS]),
    }


def get_pivot(records: Records, spec: PivotSpec, month: int | None = None) -> PivotResult:
    """Pivot table over the month's records, without Laser or subtotal rows."""
    return build_pivot(exclude_rows(filter_by_month(records, month)), spec)


def get_oee_summary(
    production: Records,
    availability: Records | None = None,
    month: int | None = None,
    fields: Sequence[str] = ("process",),
    price_list: Records | None = None,
) -> dict:
    """Plant-level OEE plus the per-group breakdown.

    Returns
    -------
    Dict with keys: overall (GroupMetric dict), groups (DataFrame),
    unmeasured_groups (keys that used the default availability).
    """
    index = ReferenceIndex(price_list) if price_list is not None else None
    metrics = build_group_metrics(
        filter_by_month(production, month),
        filter_by_month(availability or [], month),
        fields=fields,
        price_index=index,
    )
    overall = rollup_metrics(metrics.values())
    return {
        "overall": overall.as_dict(),
        "groups": metrics_to_frame(metrics, fields),
        "unmeasured_groups": [key for key, m in metrics.items() if not m.availability_measured],
    }


def get_downtime_summary(availability: Records, month: int | None = None) -> dict:
    """Downtime per equipment for the month.

    Returns
    -------
    Dict with keys: equipment (list of dicts, most downtime first),
    total_downtime_minutes, top_equipment (name or None), record_count.
    """
    records = exclude_rows(filter_by_month(availability, month))
    rows = downtime_by_equipment(records)
    return {
        "equipment": rows,
        "total_downtime_minutes": sum(row["downtime_minutes"] for row in rows),
        "top_equipment": rows[0]["equipment"] if rows and rows[0]["downtime_minutes"] > 0 else None,
        "record_count": len(records),
    }


def get_mold_summary(
    mold_status: Records,
    mold_repairs: Records = (),
    month: int | None = None,
) -> dict:
    """Mold fleet snapshot plus repair history.

    The status export is a snapshot and is never filtered by month; the
    repair history is.

    Returns
    -------
    Dict with keys: total_molds, total_repairs, grade_counts,
    category_counts, repair_type_counts, total_repair_cost, avg_usage_rate,
    needs_inspection, inspection_molds, monthly_repairs (list of dicts).
    """
    molds = exclude_rows(mold_status)
    repairs = filter_by_month(mold_repairs, month)
    inspection = molds_due_for_inspection(molds)

    return {
        "total_molds": len(molds),
        "total_repairs": len(repairs),
        "grade_counts": grade_counts(molds),
        "category_counts": count_by_field(molds, "mold_category", UNCATEGORISED),
        "repair_type_counts": count_by_field(repairs, "repair_type", OTHER_REPAIR_TYPE),
        "total_repair_cost": sum(
            parse_number(resolve(r, FIELD_CANDIDATES["repair_cost"])) for r in repairs
        ),
        "avg_usage_rate": average_usage_rate(molds),
        "needs_inspection": len(inspection),
        "inspection_molds": inspection,
        "monthly_repairs": repairs_by_month(repairs),
    }


def build_group_stats(
    detail: Records,
    ct: Records | None = None,
) -> dict[tuple[str, str], dict[str, float]]:
    """Per (process, subject) metric values consumed by ``detect_issues``."""
    detail = list(detail)
    stats: dict[tuple[str, str], dict[str, float]] = {}
    for key, value in availability_by_equipment(detail).items():
        stats.setdefault(key, {})["time_availability"] = value
    for key, entry in defect_rate_by_equipment(detail).items():
        stats.setdefault(key, {})["defect_rate"] = entry["defect_rate"]
    for key, entry in ct_excess_by_product(ct or []).items():
        stats.setdefault(key, {})["ct_excess_rate"] = entry["ct_excess_rate"]
    return stats


def get_key_issues(
    profile: ThresholdProfile,
    detail: Records = (),
    ct: Records = (),
    material_defects: Records = (),
    packaging: Records = (),
    month: int | None = None,
    process: str | None = None,
) -> dict:
    """Issue board: threshold issues plus top-K material / packaging defects.

    Parameters
    ----------
    profile : Active threshold profile; switching it re-evaluates the same
        group statistics.
    detail : Detail export (equipment availability and defect counts).
    ct : Cycle-time export.
    material_defects : Material defect export (assembly).
    packaging : Packaging status export (assembly).
    month : Selected month, or None for all.
    process : Only return issues of this process.

    Returns
    -------
    Dict with keys: issues (list[Issue]), counts (per severity), profile.
    """
    stats = build_group_stats(filter_by_month(detail, month), filter_by_month(ct, month))
    issues: list[Issue] = detect_issues(stats, profile)

    material, main_types = material_defect_totals(filter_by_month(material_defects, month))
    issues += rank_issues(
        material, profile.material_defect_top, "자재불량", "조립",
        details={item: f"주요: {name}" for item, name in main_types.items()},
    )
    issues += rank_issues(
        packaging_defect_totals(filter_by_month(packaging, month)),
        profile.packaging_defect_top, "검포장불량", "조립",
        details=lambda subject, total: f"불량+폐기 {total:,.0f}개",
    )

    if process is not None:
        issues = [issue for issue in issues if issue.process == process]

    logger.info("Issue board: %d issues with profile '%s'", len(issues), profile.name)
    return {
        "issues": issues,
        "counts": count_by_severity(issues),
        "profile": profile.name,
    }


def get_available_months(records: Records) -> list[int]:
    """Return sorted list of months present in a dataset for UI dropdowns."""
    return months_in(records)


def get_pivot_fields(records: Records) -> dict[str, list[str]]:
    """Columns a pivot can group by, and columns holding numeric values.

    Returns
    -------
    Dict with keys: dimensions (every visible column, first-seen order) and
    values (columns whose non-empty values all parse as numbers, plus the
    known quantity columns that are present).
    """
    columns: list[str] = []
    numeric: dict[str, bool] = {}
    for record in records:
        for key, value in record.items():
            key = str(key)
            if key in PIVOT_HIDDEN_FIELDS:
                continue
            if key not in numeric:
                columns.append(key)
                numeric[key] = True
            if not is_empty(value) and safe_float(value) is None:
                numeric[key] = False

    values = [col for col in columns if col in PIVOT_VALUE_FIELDS or numeric[col]]
    return {"dimensions": columns, "values": values}


def issues_by_process(issues: Sequence[Issue]) -> pd.DataFrame:
    """Issue counts per process and severity, for the summary chart."""
    if not issues:
        return pd.DataFrame(columns=["process", "severity", "count"])
    df = pd.DataFrame([{"process": i.process, "severity": i.severity} for i in issues])
    return df.groupby(["process", "severity"]).size().reset_index(name="count")
