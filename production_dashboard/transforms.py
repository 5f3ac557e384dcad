"""
Data transforms: period filtering, row exclusion and per-group rollups of
raw export records into the inputs of the metric calculator and the issue
detector.
"""

import logging
import re
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from .config import (
    ASSEMBLY_PROCESS,
    DOWNTIME_META_COLUMNS,
    EMPTY_SENTINEL,
    EXCLUDED_PROCESSES,
    FIELD_CANDIDATES,
    MOLD_GRADES,
    MOLD_INSPECTION_RATE,
    PRICE_MARKERS,
    PROCESSES,
    TOTAL_ROW_LABELS,
    UNGRADED,
)
from .kpis import (
    AvailabilitySample,
    GroupMetric,
    ProductionTotals,
    combine_availability,
    compute_group_metric,
    ct_excess_rate,
    defect_rate,
    safe_ratio,
)
from .loaders.utils import extract_month, normalise_date, parse_number, safe_float
from .matcher import ReferenceIndex, extract_value
from .pivot import Key, record_key
from .resolver import is_empty, resolve

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

_DUPLICATE_SUFFIX = re.compile(r"_\d+$")


def _text(record: Record, field: str) -> str:
    value = resolve(record, FIELD_CANDIDATES[field])
    return "" if is_empty(value) else str(value).strip()


# ---------------------------------------------------------------------------
# Row selection
# ---------------------------------------------------------------------------

def is_total_row(record: Record) -> bool:
    """True for subtotal rows carried over from exports.

    A row is a subtotal when its process, equipment or item label is exactly
    "TOTAL", "합계" or "총계" (case-insensitive, trimmed).
    """
    for field in ("process", "equipment", "item_name"):
        if _text(record, field).lower() in TOTAL_ROW_LABELS:
            return True
    return False


def exclude_rows(records: Iterable[Record]) -> list[Record]:
    """Drop excluded processes (Laser) and subtotal rows."""
    kept = []
    dropped = 0
    for record in records:
        if _text(record, "process") in EXCLUDED_PROCESSES or is_total_row(record):
            dropped += 1
            continue
        kept.append(record)
    if dropped:
        logger.debug("Excluded %d rows (excluded processes / subtotals)", dropped)
    return kept


def filter_by_month(records: Iterable[Record], month: int | None) -> list[Record]:
    """Keep records of ``month``; undated or unparseable rows are kept too.

    Parameters
    ----------
    records : Records of one dataset.
    month : Calendar month 1-12, or None for no filtering.

    Returns
    -------
    Filtered list. A row whose date is missing or cannot be parsed belongs to
    every period; how many such rows were kept is logged at INFO.
    """
    records = list(records)
    if month is None:
        return records

    kept = []
    undated = 0
    for record in records:
        row_month = extract_month(resolve(record, FIELD_CANDIDATES["date"]))
        if row_month is None:
            undated += 1
            kept.append(record)
        elif row_month == month:
            kept.append(record)

    if undated:
        logger.info(
            "%d of %d rows have no usable date and are included in month %d",
            undated, len(records), month,
        )
    return kept


def group_records(records: Iterable[Record], fields: Sequence[str]) -> dict[Key, list[Record]]:
    """Bucket records by the resolved values of ``fields`` (first-seen order)."""
    groups: dict[Key, list[Record]] = {}
    for record in records:
        groups.setdefault(record_key(record, fields), []).append(record)
    return groups


# ---------------------------------------------------------------------------
# Production / OEE groups
# ---------------------------------------------------------------------------

def priced_defect(record: Record, price_index: ReferenceIndex) -> float:
    """Defect quantity x unit price of the matched price-list row; 0 when unmatched."""
    counterpart = price_index.match(record)
    if counterpart is None:
        return 0.0
    price = extract_value(counterpart, FIELD_CANDIDATES["unit_price"], PRICE_MARKERS)
    return parse_number(resolve(record, FIELD_CANDIDATES["defect_qty"])) * price


def group_production_totals(
    records: Iterable[Record],
    fields: Sequence[str] = ("process",),
    price_index: ReferenceIndex | None = None,
) -> dict[Key, ProductionTotals]:
    """Sum production quantities per group.

    When ``price_index`` is given, each record's defect quantity is priced
    through the matcher; unmatched records add nothing to ``defect_amount``.
    """
    totals: dict[Key, ProductionTotals] = {}
    for record in exclude_rows(records):
        group = totals.setdefault(record_key(record, fields), ProductionTotals())
        group.add_record(record)
        if price_index is not None:
            group.defect_amount += priced_defect(record, price_index)
    return totals


def group_availability_samples(
    records: Iterable[Record],
    fields: Sequence[str] = ("process",),
) -> dict[Key, list[AvailabilitySample]]:
    samples: dict[Key, list[AvailabilitySample]] = {}
    for record in exclude_rows(records):
        samples.setdefault(record_key(record, fields), []).append(
            AvailabilitySample.from_record(record)
        )
    return samples


def build_group_metrics(
    production: Iterable[Record],
    availability: Iterable[Record] | None = None,
    fields: Sequence[str] = ("process",),
    price_index: ReferenceIndex | None = None,
) -> dict[Key, GroupMetric]:
    """GroupMetric per group of production records.

    Availability observations are grouped by the same fields; a production
    group with no observation gets the default availability.
    """
    totals = group_production_totals(production, fields, price_index)
    samples = group_availability_samples(availability or [], fields)

    metrics = {key: compute_group_metric(group, samples.get(key)) for key, group in totals.items()}
    unmeasured = sum(1 for metric in metrics.values() if not metric.availability_measured)
    if unmeasured:
        logger.info(
            "%d of %d groups have no availability data; assuming full availability",
            unmeasured, len(metrics),
        )
    return metrics


# ---------------------------------------------------------------------------
# Per-equipment / per-product statistics for the issue board
# ---------------------------------------------------------------------------

def _process_records(
    records: Iterable[Record],
    processes: Sequence[str] | None,
) -> Iterable[tuple[str, Record]]:
    for record in exclude_rows(records):
        process = _text(record, "process")
        if processes is not None and process not in processes:
            continue
        yield process, record


def availability_by_equipment(
    records: Iterable[Record],
    processes: Sequence[str] | None = PROCESSES,
) -> dict[tuple[str, str], float]:
    """Mean time availability per (process, equipment).

    Equipment with no usable observation is left out rather than defaulted.
    """
    samples: dict[tuple[str, str], list[AvailabilitySample]] = {}
    for process, record in _process_records(records, processes):
        equipment = _text(record, "equipment")
        if not equipment:
            continue
        samples.setdefault((process, equipment), []).append(AvailabilitySample.from_record(record))

    result = {}
    for key, group in samples.items():
        value = combine_availability(group)
        if value is not None:
            result[key] = value
    return result


def defect_rate_by_equipment(
    records: Iterable[Record],
    processes: Sequence[str] | None = PROCESSES,
) -> dict[tuple[str, str], dict[str, float]]:
    """Defect rate per (process, equipment).

    The base is the production quantity; where a row reports none it is
    good + defect.
    """
    sums: dict[tuple[str, str], dict[str, float]] = {}
    for process, record in _process_records(records, processes):
        equipment = _text(record, "equipment")
        if not equipment:
            continue
        good = parse_number(resolve(record, FIELD_CANDIDATES["good_qty"]))
        defect = parse_number(resolve(record, FIELD_CANDIDATES["defect_qty"]))
        production = parse_number(resolve(record, FIELD_CANDIDATES["production_qty"]))
        if production <= 0:
            production = good + defect
        if production <= 0 and defect <= 0:
            continue
        entry = sums.setdefault((process, equipment), {"production": 0.0, "defect": 0.0})
        entry["production"] += production
        entry["defect"] += defect

    for entry in sums.values():
        entry["defect_rate"] = defect_rate(entry["defect"], entry["production"])
    return sums


def ct_excess_by_product(
    records: Iterable[Record],
    processes: Sequence[str] | None = PROCESSES,
) -> dict[tuple[str, str], dict[str, float]]:
    """Average actual vs. target cycle time per (process, product).

    Rows missing either cycle time are skipped.
    """
    sums: dict[tuple[str, str], dict[str, float]] = {}
    for process, record in _process_records(records, processes):
        product = _text(record, "item_name") or _text(record, "item_code")
        actual = parse_number(resolve(record, FIELD_CANDIDATES["actual_ct"]))
        target = parse_number(resolve(record, FIELD_CANDIDATES["standard_ct"]))
        if not product or actual <= 0 or target <= 0:
            continue
        entry = sums.setdefault((process, product), {"actual": 0.0, "target": 0.0, "count": 0})
        entry["actual"] += actual
        entry["target"] += target
        entry["count"] += 1

    result = {}
    for key, entry in sums.items():
        actual = entry["actual"] / entry["count"]
        target = entry["target"] / entry["count"]
        result[key] = {
            "actual_ct": actual,
            "standard_ct": target,
            "ct_excess_rate": ct_excess_rate(actual, target),
        }
    return result


def _assembly_records(records: Iterable[Record]) -> Iterable[Record]:
    # These datasets belong to assembly; rows without a process count as assembly
    for record in exclude_rows(records):
        process = _text(record, "process")
        if not process or process == ASSEMBLY_PROCESS:
            yield record


def material_defect_totals(records: Iterable[Record]) -> tuple[dict[str, float], dict[str, str]]:
    """Material defect quantity per item, and each item's main defect type.

    Defect-type columns are the ones whose header starts with "(", e.g.
    "(찍힘)". The main type is the one with the largest summed count.

    Returns
    -------
    (totals, main_types) keyed by item name.
    """
    totals: dict[str, float] = {}
    by_type: dict[str, dict[str, float]] = {}

    for record in _assembly_records(records):
        item = _text(record, "item_name") or _text(record, "item_code")
        total = parse_number(resolve(record, FIELD_CANDIDATES["material_defect_total"]))
        if not item or total <= 0:
            continue
        totals[item] = totals.get(item, 0.0) + total

        types = by_type.setdefault(item, {})
        for key, value in record.items():
            if not str(key).startswith("("):
                continue
            count = parse_number(value)
            if count > 0:
                name = str(key).strip("()").strip()
                types[name] = types.get(name, 0.0) + count

    main_types = {}
    for item, types in by_type.items():
        if types:
            main_types[item] = max(sorted(types), key=lambda name: types[name])
    return totals, main_types


def packaging_defect_totals(records: Iterable[Record]) -> dict[str, float]:
    """Defect + scrap quantity per equipment from the packaging status export."""
    totals: dict[str, float] = {}
    for record in _assembly_records(records):
        equipment = _text(record, "equipment")
        defect = parse_number(resolve(record, FIELD_CANDIDATES["defect_qty"]))
        scrap = parse_number(resolve(record, FIELD_CANDIDATES["scrap_qty"]))
        if equipment and defect + scrap > 0:
            totals[equipment] = totals.get(equipment, 0.0) + defect + scrap
    return totals


# ---------------------------------------------------------------------------
# Quality
# ---------------------------------------------------------------------------

QUALITY_COLUMNS = [
    "production", "good", "defect", "scrap", "defect_amount",
    "yield_rate", "defect_rate", "scrap_rate",
]


def quality_row(totals: ProductionTotals, **labels: str) -> dict:
    """Quantities and yield / defect / scrap rates (% of production) for one group."""
    row: dict[str, Any] = dict(labels)
    row.update({
        "production": totals.production,
        "good": totals.good,
        "defect": totals.defect,
        "scrap": totals.scrap,
        "defect_amount": totals.defect_amount,
        "yield_rate": safe_ratio(totals.good, totals.production),
        "defect_rate": defect_rate(totals.defect, totals.production),
        "scrap_rate": safe_ratio(totals.scrap, totals.production),
    })
    return row


def process_quality(
    records: Iterable[Record],
    price_index: ReferenceIndex | None = None,
) -> list[dict]:
    """One quality row per process, in first-seen order."""
    totals = group_production_totals(records, ("process",), price_index)
    return [quality_row(group, process=key[0]) for key, group in totals.items()]


def item_quality(
    records: Iterable[Record],
    price_index: ReferenceIndex | None = None,
) -> list[dict]:
    """One quality row per item, largest defect amount first.

    Items are keyed by name, falling back to code. Each item carries the
    process of its first row.
    """
    items: dict[str, tuple[str, ProductionTotals]] = {}
    for record in exclude_rows(records):
        item = _text(record, "item_name") or _text(record, "item_code") or EMPTY_SENTINEL
        if item not in items:
            items[item] = (_text(record, "process"), ProductionTotals())
        totals = items[item][1]
        totals.add_record(record)
        if price_index is not None:
            totals.defect_amount += priced_defect(record, price_index)

    rows = [quality_row(totals, item=item, process=process) for item, (process, totals) in items.items()]
    rows.sort(key=lambda row: (-row["defect_amount"], row["item"]))
    return rows


# ---------------------------------------------------------------------------
# Molds
# ---------------------------------------------------------------------------

_MOLD_GRADE = re.compile(r"^([A-E])\s*등급")


def mold_grade(value: Any) -> str:
    """Grade letter from labels like "A등급" / "B 등급"; UNGRADED otherwise."""
    text = "" if is_empty(value) else str(value).strip()
    match = _MOLD_GRADE.match(text)
    return match.group(1) if match else UNGRADED


def grade_counts(records: Iterable[Record]) -> dict[str, int]:
    """Molds per grade, A to E then ungraded; grades with no mold are left out."""
    counts: dict[str, int] = {}
    for record in records:
        grade = mold_grade(resolve(record, FIELD_CANDIDATES["mold_grade"]))
        counts[grade] = counts.get(grade, 0) + 1
    return {grade: counts[grade] for grade in (*MOLD_GRADES, UNGRADED) if grade in counts}


def count_by_field(records: Iterable[Record], field: str, default: str) -> dict[str, int]:
    """Records per resolved ``field`` value, most frequent first (ties by name)."""
    counts: dict[str, int] = {}
    for record in records:
        label = _text(record, field) or default
        counts[label] = counts.get(label, 0) + 1
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def average_usage_rate(records: Iterable[Record]) -> float:
    """Mean mold usage rate over molds that report one; 0 when none do."""
    rates = [
        rate for rate in (safe_float(resolve(r, FIELD_CANDIDATES["mold_usage_rate"])) for r in records)
        if rate is not None
    ]
    return sum(rates) / len(rates) if rates else 0.0


def molds_due_for_inspection(records: Iterable[Record]) -> list[str]:
    """Ids of molds whose cleaning/polishing rate reached MOLD_INSPECTION_RATE."""
    due = []
    for record in records:
        rate = parse_number(resolve(record, FIELD_CANDIDATES["mold_cleaning_rate"]))
        if rate >= MOLD_INSPECTION_RATE:
            due.append(_text(record, "mold_id") or EMPTY_SENTINEL)
    return due


def repairs_by_month(records: Iterable[Record]) -> list[dict]:
    """Repair count and cost per calendar month ("YYYY-MM"), oldest first.

    Repairs without a usable date are left out of the trend.
    """
    periods: dict[str, dict] = {}
    for record in records:
        stamp = normalise_date(resolve(record, FIELD_CANDIDATES["date"]))
        if stamp is None:
            continue
        period = stamp.strftime("%Y-%m")
        entry = periods.setdefault(period, {"period": period, "count": 0, "cost": 0.0})
        entry["count"] += 1
        entry["cost"] += parse_number(resolve(record, FIELD_CANDIDATES["repair_cost"]))
    return [periods[period] for period in sorted(periods)]


# ---------------------------------------------------------------------------
# Downtime
# ---------------------------------------------------------------------------

def downtime_by_equipment(records: Iterable[Record]) -> list[dict]:
    """Operating and downtime minutes per equipment, most downtime first.

    Returns
    -------
    List of dicts: equipment, operating_minutes, downtime_minutes,
    downtime_rate (% of operating + downtime).
    """
    sums: dict[str, dict[str, float]] = {}
    for record in exclude_rows(records):
        equipment = _text(record, "equipment") or EMPTY_SENTINEL
        entry = sums.setdefault(equipment, {"operating": 0.0, "downtime": 0.0})
        entry["operating"] += parse_number(resolve(record, FIELD_CANDIDATES["operating_minutes"]))
        entry["downtime"] += parse_number(resolve(record, FIELD_CANDIDATES["downtime_minutes"]))

    rows = [
        {
            "equipment": equipment,
            "operating_minutes": entry["operating"],
            "downtime_minutes": entry["downtime"],
            "downtime_rate": safe_ratio(entry["downtime"], entry["operating"] + entry["downtime"]),
        }
        for equipment, entry in sums.items()
    ]
    rows.sort(key=lambda row: (-row["downtime_minutes"], row["equipment"]))
    return rows


def downtime_reasons(records: Iterable[Record], equipment: str) -> list[tuple[str, float]]:
    """Minutes per downtime reason column for one equipment, largest first.

    Reason columns are every column that is not a known metadata column;
    duplicate-header suffixes ("_2") are folded into the base name.
    """
    reasons: dict[str, float] = {}
    for record in exclude_rows(records):
        if _text(record, "equipment") != equipment:
            continue
        for key, value in record.items():
            name = _DUPLICATE_SUFFIX.sub("", str(key).strip())
            if name in DOWNTIME_META_COLUMNS or str(key) in DOWNTIME_META_COLUMNS:
                continue
            minutes = parse_number(value)
            if minutes > 0:
                reasons[name] = reasons.get(name, 0.0) + minutes
    return sorted(reasons.items(), key=lambda item: (-item[1], item[0]))


# ---------------------------------------------------------------------------
# Display frames
# ---------------------------------------------------------------------------

def metrics_to_frame(metrics: Mapping[Key, GroupMetric], fields: Sequence[str]) -> pd.DataFrame:
    """One row per group: the key fields followed by the metric columns."""
    columns = list(fields) + list(GroupMetric().as_dict())
    rows = []
    for key, metric in metrics.items():
        row = dict(zip(fields, key))
        row.update(metric.as_dict())
        rows.append(row)
    df = pd.DataFrame(rows, columns=columns)
    logger.info("Built metrics frame with %d rows", len(df))
    return df


def issues_to_frame(issues: Sequence) -> pd.DataFrame:
    columns = [
        "id", "process", "subject", "metric", "current_value",
        "threshold", "diff", "severity", "detail",
    ]
    return pd.DataFrame([issue.as_dict() for issue in issues], columns=columns)
