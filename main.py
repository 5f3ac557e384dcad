"""
Production dashboard: end-to-end analytics pipeline.

Runs the full pipeline on simulated exports (or on export files given on the
command line) and prints smoke-test summaries.

Usage:
    python main.py
    python main.py production.csv availability.xlsx
"""

import logging
import sys
from pathlib import Path

from production_dashboard.dashboard import (
    get_available_months,
    get_downtime_summary,
    get_key_issues,
    get_mold_summary,
    get_oee_summary,
    get_pivot,
    get_production_overview,
    get_quality_breakdown,
    get_quality_summary,
)
from production_dashboard.export import export_issues, export_pivot, read_export
from production_dashboard.issues import PRESETS
from production_dashboard.loaders import load_export
from production_dashboard.pivot import PivotSpec
from production_dashboard.simulator import generate_all
from production_dashboard.store import InMemoryRecordStore

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _dataset_for(path: Path) -> str:
    stem = path.stem.lower()
    for name in (
        "availability", "detail", "ct", "material_defect", "packaging_status", "price",
        "mold_status", "mold_repair",
    ):
        if stem.startswith(name):
            return name
    return "production"


def main(paths: list[str]) -> None:
    """Run the full analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  PRODUCTION DASHBOARD")
    print("  Analytics Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Load source data
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING SOURCE DATA")
    print("-" * 40)

    store = InMemoryRecordStore()
    if paths:
        for raw in paths:
            path = Path(raw)
            name = _dataset_for(path)
            store.replace_all(name, load_export(path))
    else:
        logger.info("No export files given; using simulated data")
        for name, records in generate_all().items():
            store.replace_all(name, records)

    for name in store.names():
        print(f"  {name:<18} {len(store.get_all(name)):>6} records")

    production = store.get_all("production")
    months = get_available_months(production)
    month = months[-1] if months else None
    print(f"\n  Months available: {months}  ->  selected: {month}")

    # ------------------------------------------------------------------
    # 2. Dashboard outputs
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] DASHBOARD OUTPUTS")
    print("-" * 40)

    overview = get_production_overview(production, month)
    print(f"\n  Production {overview['production']:,.0f}  good {overview['good']:,.0f}  "
          f"defect {overview['defect']:,.0f}  ({overview['defect_rate']:.2f}%)")
    for warning in overview["warnings"]:
        print(f"  [WARN] {warning}")

    quality = get_quality_summary(production, store.get_all("price"), month)
    print(f"\n  Defect amount {quality['defect_amount']:,.0f} "
          f"(matched {quality['matched']}, unmatched {quality['unmatched']})")

    breakdown = get_quality_breakdown(production, store.get_all("price"), month)
    print(f"  Yield {breakdown['overall']['yield_rate']:.1f}%  "
          f"scrap {breakdown['overall']['scrap_rate']:.2f}%")
    print(breakdown["processes"][["process", "production", "yield_rate", "defect_rate", "scrap_rate"]]
          .round(2).to_string(index=False))

    oee = get_oee_summary(production, store.get_all("availability"), month)
    overall = oee["overall"]
    print(f"\n  OEE {overall['oee']:.1f}%  = A {overall['time_availability']:.1f} "
          f"x P {overall['performance_rate']:.0f} x Q {overall['quality_rate']:.1f}")
    print(oee["groups"][["process", "production", "time_availability", "quality_rate", "oee"]]
          .round(1).to_string(index=False))

    downtime = get_downtime_summary(store.get_all("availability"), month)
    print(f"\n  Downtime {downtime['total_downtime_minutes']:,.0f} min, "
          f"worst equipment: {downtime['top_equipment']}")

    molds = get_mold_summary(store.get_all("mold_status"), store.get_all("mold_repair"), month)
    print(f"\n  Molds {molds['total_molds']}  grades {molds['grade_counts']}  "
          f"avg usage {molds['avg_usage_rate']:.1f}%")
    print(f"  Repairs {molds['total_repairs']} costing {molds['total_repair_cost']:,.0f}, "
          f"{molds['needs_inspection']} molds due for inspection")

    pivot = get_pivot(production, PivotSpec.default(), month)
    print("\n  Pivot (process x product type, sum of production):")
    print(pivot.to_frame().to_string(index=False))

    # ------------------------------------------------------------------
    # 3. Issue board per preset
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] KEY ISSUES")
    print("-" * 40)

    board = None
    for name, profile in PRESETS.items():
        board = get_key_issues(
            profile,
            detail=store.get_all("detail"),
            ct=store.get_all("ct"),
            material_defects=store.get_all("material_defect"),
            packaging=store.get_all("packaging_status"),
            month=month,
        )
        print(f"  {name:<7} {len(board['issues']):>3} issues  {board['counts']}")

    # ------------------------------------------------------------------
    # 4. Acceptance checks
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    check1 = 0 <= overall["oee"] <= 100
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] Overall OEE within 0-100: {overall['oee']:.1f}")

    if not pivot.is_empty:
        column_sum = sum(pivot.col_totals.values())
        check2 = abs(column_sum - pivot.grand_total) < 1e-6
        print(f"  [{'PASS' if check2 else 'FAIL'}] Pivot column totals add up to grand total")

    exported = read_export(export_pivot(pivot))
    check3 = len(exported) == len(pivot.to_frame())
    print(f"  [{'PASS' if check3 else 'FAIL'}] Pivot export re-reads with {len(exported)} rows")

    if board is not None:
        issues_csv = read_export(export_issues(board["issues"]))
        check4 = len(issues_csv) == len(board["issues"])
        print(f"  [{'PASS' if check4 else 'FAIL'}] Issue export has {len(issues_csv)} rows")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main(sys.argv[1:])
