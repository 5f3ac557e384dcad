"""
Configuration: dataset names, field alias registry, threshold presets, constants.

FIELD_CANDIDATES maps each logical field to the ordered list of column names
it has appeared under across exports. Order is priority: the resolver tries
the first alias before the second, regardless of column order in the file.
"""

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# File paths: override with PRODUCTION_DASHBOARD_DATA_DIR
# ---------------------------------------------------------------------------
DATA_DIR = Path(
    os.environ.get(
        "PRODUCTION_DASHBOARD_DATA_DIR",
        Path(__file__).resolve().parent.parent / "data",
    )
)

RECORD_STORE_DIR = DATA_DIR / "records"
CONFIG_STORE_FILE = DATA_DIR / "settings.json"

# ---------------------------------------------------------------------------
# Logical datasets (one per upload type)
# ---------------------------------------------------------------------------
DATASETS: dict[str, str] = {
    "production": "생산실적",
    "availability": "가동율",
    "detail": "상세데이터",
    "ct": "CT",
    "material_defect": "자재불량",
    "wip_inventory": "재공재고",
    "repair_status": "불량수리현황",
    "packaging_status": "검포장현황",
    "price": "부품단가표",
    "mold_status": "금형현황",
    "mold_repair": "금형수리현황",
}

# Datasets merged by month on upload; everything else is replaced wholesale.
MONTH_MERGED_DATASETS = {"production"}

# ---------------------------------------------------------------------------
# Field alias registry
# ---------------------------------------------------------------------------
FIELD_CANDIDATES: dict[str, tuple[str, ...]] = {
    "process": ("공정", "공정명", "process"),
    "equipment": (
        "설비(라인)명", "설비/LINE", "설비/line", "LINE", "설비명", "설비", "라인명", "equipment",
    ),
    "item_code": ("품목코드", "부품코드", "itemCode", "item_code", "CODE"),
    "customer_pn": ("고객사 P/N", "customerPN", "customer_pn"),
    "item_name": ("품목명", "부품명", "품명", "itemName", "item_name", "product"),
    "product_type": ("품종", "품종(MODEL)", "productType"),
    "production_qty": ("생산수량", "productionQty", "production_qty"),
    "good_qty": ("양품수량", "goodQty", "good_qty"),
    "defect_qty": ("불량수량", "defectQty", "defect_qty"),
    "scrap_qty": ("폐기수량", "disposalQty", "scrap_qty"),
    "work_minutes": ("작업시간(분)", "작업시간", "workTime"),
    "date": ("생산일자", "일자", "날짜", "작업일자", "수리일자", "date"),
    "time_availability": (
        "시간가동율(%)", "시간가동율", "시간가동률(%)", "시간가동률", "가동율", "가동률",
    ),
    "operating_minutes": ("가동시간(분)", "가동시간", "operatingTime"),
    "scheduled_minutes": ("조업시간(분)", "조업시간", "scheduledTime"),
    "downtime_minutes": ("비가동합계", "비가동시간합계", "downtime"),
    "standard_ct": ("표준C/T", "표준CT", "목표CT", "기준CT", "standardCT"),
    "actual_ct": ("실제C/T", "실제CT", "실적CT", "actualCT"),
    "unit_price": ("단가", "price", "unit_price"),
    "material_defect_total": ("불량합계", "합계"),
    "mold_id": ("금형번호", "금형코드", "moldNo"),
    "mold_grade": ("금형등급", "등급"),
    "mold_category": ("금형구분",),
    "mold_usage_rate": ("금형사용율", "금형사용률", "사용율"),
    "mold_cleaning_rate": ("세척/연마율", "세척/연마률", "세척연마율"),
    "repair_type": ("유형", "수리유형"),
    "repair_cost": ("수리금액", "수리비용"),
}

# Last-resort key markers when a price column is named unpredictably
PRICE_MARKERS = ("단가", "price")


def candidates_for(field: str) -> tuple[str, ...]:
    """Return the alias list for a logical field, or the field itself."""
    return FIELD_CANDIDATES.get(field, (field,))


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------
PROCESSES = ("사출", "도장", "인쇄", "조립")
EXCLUDED_PROCESSES = {"Laser", "LASER", "laser"}
TOTAL_ROW_LABELS = ("total", "합계", "총계")

# Availability-export columns that are not downtime reasons
DOWNTIME_META_COLUMNS = {
    "", "col_0", "생산일자", "일자", "공정", "설비/LINE", "설비/line", "설비(라인)명",
    "주/야간", "주야간", "무인",
    "조업시간", "조업시간(분)", "가동시간", "가동시간(분)",
    "비가동합계", "비가동시간합계",
    "시간가동율", "시간가동율(%)", "시간가동률", "시간가동률(%)",
    "계획정지합계",
    "설비가동율", "설비가동율(%)", "설비가동률", "설비가동률(%)",
    "id", "month", "created_at", "user_id",
}

# Assembly-only datasets (material defects, packaging) carry no process column
ASSEMBLY_PROCESS = "조립"

# ---------------------------------------------------------------------------
# Molds
# ---------------------------------------------------------------------------
MOLD_GRADES = ("A", "B", "C", "D", "E")
UNGRADED = "미지정"
UNCATEGORISED = "미분류"
OTHER_REPAIR_TYPE = "기타"
# Molds at or above this cleaning/polishing rate (%) are due for inspection
MOLD_INSPECTION_RATE = 80.0

# ---------------------------------------------------------------------------
# Pivot
# ---------------------------------------------------------------------------
AGG_FUNCS = ("sum", "count", "avg", "min", "max")
MAX_PIVOT_FIELDS = 3
EMPTY_SENTINEL = "(empty)"
TOTAL_SENTINEL = "Total"

DEFAULT_PIVOT: dict = {
    "row_fields": ["공정"],
    "col_fields": ["품종"],
    "value_field": "생산수량",
    "agg_func": "sum",
}

# Numeric fields offered as pivot values
PIVOT_VALUE_FIELDS = (
    "생산수량", "양품수량", "불량수량", "폐기수량", "작업시간(분)", "작업인원", "UPH", "UPPH",
)

# Record keys never offered as pivot dimensions
PIVOT_HIDDEN_FIELDS = {"id", "month", "created_at", "updated_at"}

# ---------------------------------------------------------------------------
# Composite metrics
# ---------------------------------------------------------------------------
# No independent speed measurement exists in the exports; placeholder value.
PERFORMANCE_RATE = 100.0
# Groups with no usable availability observation are assumed fully available.
DEFAULT_TIME_AVAILABILITY = 100.0

# ---------------------------------------------------------------------------
# Threshold presets
# ---------------------------------------------------------------------------
# availability_threshold: flag groups below this time availability (%)
# ct_excess_threshold: flag products whose cycle time exceeds target by more (%)
# defect_rate_threshold: flag equipment whose defect rate exceeds this (%)
# *_top: number of rank-based entries to report
THRESHOLD_PRESETS: dict[str, dict] = {
    "strict": {
        "availability_threshold": 95.0,
        "ct_excess_threshold": 5.0,
        "defect_rate_threshold": 2.0,
        "material_defect_top": 5,
        "packaging_defect_top": 5,
    },
    "normal": {
        "availability_threshold": 90.0,
        "ct_excess_threshold": 10.0,
        "defect_rate_threshold": 3.0,
        "material_defect_top": 3,
        "packaging_defect_top": 3,
    },
    "loose": {
        "availability_threshold": 85.0,
        "ct_excess_threshold": 15.0,
        "defect_rate_threshold": 5.0,
        "material_defect_top": 3,
        "packaging_defect_top": 3,
    },
}
DEFAULT_PRESET = "normal"

SEVERITY_CRITICAL_DIFF = 20.0
SEVERITY_WARNING_DIFF = 10.0

# ---------------------------------------------------------------------------
# Display / export
# ---------------------------------------------------------------------------
# Decimals used on screen and in exported tables, per aggregation
DISPLAY_DECIMALS: dict[str, int] = {
    "sum": 0,
    "count": 0,
    "avg": 2,
    "min": 2,
    "max": 2,
}
RATE_DECIMALS = 1
