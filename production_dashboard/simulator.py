"""
Simulated export generator for the production dashboard.

Generates realistic daily records for an injection / painting / printing /
assembly plant. Column naming deliberately varies between datasets the way
real exports do ("설비(라인)명" vs "설비/LINE", "시간가동율(%)" vs
"시간가동률"), so the resolver is exercised end to end.
All values are synthetic; no real operational data is used.
"""

import numpy as np
import pandas as pd

from .config import PROCESSES

# ---------------------------------------------------------------------------
# Typical plant parameters (realistic ranges)
# ---------------------------------------------------------------------------
_EQUIPMENT = {
    "사출": ["IM-01", "IM-02", "IM-03", "IM-04"],
    "도장": ["PT-L1", "PT-L2"],
    "인쇄": ["PR-01", "PR-02"],
    "조립": ["AS-L1", "AS-L2", "AS-L3"],
    "Laser": ["LS-01"],
}

# (item code, item name, product type, unit price, standard CT seconds)
_ITEMS = [
    ("P-1001", "FRONT COVER", "A-MODEL", 1250, 32.0),
    ("P-1002", "REAR COVER", "A-MODEL", 1180, 30.0),
    ("P-2001", "BUTTON KEY", "B-MODEL", 320, 12.0),
    ("P-2002", "SIDE DECO", "B-MODEL", 540, 18.0),
    ("P-3001", "BRACKET", "C-MODEL", 210, 9.5),
    ("P-3002", "LENS WINDOW", "C-MODEL", 2300, 41.0),
]

# Items produced but missing from the price list (unmatched joins)
_UNPRICED_ITEMS = [("P-9001", "SAMPLE JIG", "C-MODEL", 0, 20.0)]

_DEFECT_TYPES = ["(찍힘)", "(스크래치)", "(이물)", "(변형)"]
_DOWNTIME_REASONS = ["금형교체", "자재대기", "설비고장", "품질확인"]

# Availability level per process (mean %, std)
_AVAILABILITY = {"사출": (91, 5), "도장": (88, 6), "인쇄": (93, 3), "조립": (95, 2), "Laser": (90, 4)}


def _dates(year: int, month: int, days: int) -> pd.DatetimeIndex:
    return pd.date_range(f"{year}-{month:02d}-01", periods=days, freq="D")


def generate_price_list() -> list[dict]:
    """Price list with mixed key coverage: some rows only carry a name."""
    rows = []
    for i, (code, name, _, price, _) in enumerate(_ITEMS):
        rows.append({
            "품목코드": code if i % 3 else "",
            "품목명": name,
            "단가": f"{price:,}",
        })
    return rows


def generate_production(
    year: int = 2025,
    month: int = 1,
    days: int = 10,
    seed: int = 42,
) -> list[dict]:
    """Generate daily production records per process, equipment and item."""
    rng = np.random.default_rng(seed + month)
    rows = []
    items = _ITEMS + _UNPRICED_ITEMS

    for date in _dates(year, month, days):
        for process, equipment_list in _EQUIPMENT.items():
            for equipment in equipment_list:
                code, name, product_type, _, _ = items[rng.integers(len(items))]
                production = int(rng.integers(400, 1200))
                defect = int(production * rng.uniform(0.005, 0.06))
                scrap = int(defect * rng.uniform(0, 0.3))
                rows.append({
                    "생산일자": date.strftime("%Y-%m-%d"),
                    "공정": process,
                    "설비(라인)명": equipment,
                    "품목코드": code,
                    "품목명": name,
                    "품종": product_type,
                    "생산수량": production,
                    "양품수량": production - defect,
                    "불량수량": defect,
                    "폐기수량": scrap,
                    "작업시간(분)": int(rng.integers(420, 600)),
                })

    # Subtotal row as exported by the MES
    rows.append({"생산일자": "", "공정": "합계", "생산수량": sum(r["생산수량"] for r in rows)})
    return rows


def generate_availability(
    year: int = 2025,
    month: int = 1,
    days: int = 10,
    seed: int = 42,
) -> list[dict]:
    """Daily availability export: scheduled, operating and downtime minutes.

    The rate column uses the "률" spelling and the equipment column the
    "설비/LINE" header, unlike the production export.
    """
    rng = np.random.default_rng(seed + 100 + month)
    rows = []
    for date in _dates(year, month, days):
        for process, equipment_list in _EQUIPMENT.items():
            mean, std = _AVAILABILITY[process]
            for equipment in equipment_list:
                scheduled = 600
                rate = float(np.clip(rng.normal(mean, std), 55, 100))
                operating = round(scheduled * rate / 100)
                downtime = scheduled - operating
                split = rng.dirichlet(np.ones(len(_DOWNTIME_REASONS))) * downtime
                row = {
                    "생산일자": date.strftime("%Y/%m/%d"),
                    "공정": process,
                    "설비/LINE": equipment,
                    "조업시간(분)": scheduled,
                    "가동시간(분)": operating,
                    "비가동합계": downtime,
                    "시간가동률(%)": round(rate, 1),
                }
                for reason, minutes in zip(_DOWNTIME_REASONS, split):
                    row[reason] = int(round(minutes))
                rows.append(row)
    return rows


def generate_detail(
    year: int = 2025,
    month: int = 1,
    days: int = 10,
    seed: int = 42,
) -> list[dict]:
    """Detail export: per equipment-day availability (as a 0-1 fraction) and quantities."""
    rng = np.random.default_rng(seed + 200 + month)
    rows = []
    for date in _dates(year, month, days):
        for process in PROCESSES:
            mean, std = _AVAILABILITY[process]
            for equipment in _EQUIPMENT[process]:
                good = int(rng.integers(400, 1100))
                defect = int(good * rng.uniform(0.005, 0.07))
                rows.append({
                    "일자": date.strftime("%Y%m%d"),
                    "공정명": process,
                    "설비명": equipment,
                    "시간가동율": round(float(np.clip(rng.normal(mean, std), 55, 100)) / 100, 3),
                    "양품수량": good,
                    "불량수량": defect,
                })
    return rows


def generate_ct(
    year: int = 2025,
    month: int = 1,
    days: int = 10,
    seed: int = 42,
) -> list[dict]:
    """Cycle-time export: standard vs. actual CT per item."""
    rng = np.random.default_rng(seed + 300 + month)
    rows = []
    for date in _dates(year, month, days):
        for process in PROCESSES:
            for _, name, _, _, standard in _ITEMS:
                rows.append({
                    "일자": date.strftime("%Y-%m-%d"),
                    "공정": process,
                    "품목명": name,
                    "표준C/T": standard,
                    "실적CT": round(standard * rng.uniform(0.92, 1.25), 1),
                })
    return rows


def generate_material_defects(
    year: int = 2025,
    month: int = 1,
    days: int = 10,
    seed: int = 42,
) -> list[dict]:
    """Assembly material-defect export with parenthesised defect-type columns."""
    rng = np.random.default_rng(seed + 400 + month)
    rows = []
    for date in _dates(year, month, days):
        for _, name, _, _, _ in _ITEMS:
            counts = rng.poisson(lam=[3, 2, 1, 0.5])
            row = {"일자": date.strftime("%Y-%m-%d"), "부품명": name}
            for defect_type, count in zip(_DEFECT_TYPES, counts):
                row[defect_type] = int(count)
            row["불량합계"] = int(counts.sum())
            rows.append(row)
    return rows


def generate_packaging(
    year: int = 2025,
    month: int = 1,
    days: int = 10,
    seed: int = 42,
) -> list[dict]:
    """Assembly packaging-inspection export."""
    rng = np.random.default_rng(seed + 500 + month)
    rows = []
    for date in _dates(year, month, days):
        for equipment in _EQUIPMENT["조립"]:
            rows.append({
                "일자": date.strftime("%Y-%m-%d"),
                "라인명": equipment,
                "검사수량": int(rng.integers(800, 1500)),
                "불량수량": int(rng.poisson(6)),
                "폐기수량": int(rng.poisson(2)),
            })
    return rows


# Mold fleet: (category, number of molds)
_MOLD_FLEET = [("사출금형", 8), ("프레스금형", 3), ("지그", 2)]
_MOLD_GRADE_LABELS = ["A등급", "B등급", "C등급", "D등급", "E등급", ""]
_REPAIR_TYPES = ["수정", "연마", "부품교체", "용접"]


def generate_mold_status(seed: int = 42) -> list[dict]:
    """Mold status snapshot; some molds are ungraded or lack a usage rate."""
    rng = np.random.default_rng(seed + 600)
    rows = []
    number = 1
    for category, count in _MOLD_FLEET:
        for _ in range(count):
            usage = round(float(rng.uniform(30, 110)), 1)
            rows.append({
                "금형번호": f"M-{number:03d}",
                "금형구분": category,
                "금형등급": _MOLD_GRADE_LABELS[rng.integers(len(_MOLD_GRADE_LABELS))],
                "금형사용율": "" if rng.random() < 0.1 else f"{usage}%",
                "세척/연마율": round(float(rng.uniform(20, 100)), 1),
            })
            number += 1
    return rows


def generate_mold_repairs(
    year: int = 2025,
    month: int = 1,
    days: int = 10,
    seed: int = 42,
) -> list[dict]:
    """Mold repair history; repair dates are Excel serial numbers."""
    rng = np.random.default_rng(seed + 700 + month)
    molds = sum(count for _, count in _MOLD_FLEET)
    epoch = pd.Timestamp("1899-12-30")
    rows = []
    for date in _dates(year, month, days):
        for _ in range(int(rng.poisson(0.6))):
            rows.append({
                "수리일자": (date - epoch).days,
                "금형번호": f"M-{int(rng.integers(1, molds + 1)):03d}",
                "유형": _REPAIR_TYPES[rng.integers(len(_REPAIR_TYPES))],
                "수리금액": f"{int(rng.integers(5, 80)) * 10000:,}",
            })
    return rows


def generate_all(year: int = 2025, months: tuple[int, ...] = (1, 2), days: int = 10, seed: int = 42) -> dict[str, list[dict]]:
    """All simulated datasets, keyed like ``config.DATASETS``."""
    data: dict[str, list[dict]] = {
        "production": [],
        "availability": [],
        "detail": [],
        "ct": [],
        "material_defect": [],
        "packaging_status": [],
        "price": generate_price_list(),
        "mold_status": generate_mold_status(seed),
        "mold_repair": [],
    }
    for month in months:
        data["production"] += generate_production(year, month, days, seed)
        data["availability"] += generate_availability(year, month, days, seed)
        data["detail"] += generate_detail(year, month, days, seed)
        data["ct"] += generate_ct(year, month, days, seed)
        data["material_defect"] += generate_material_defects(year, month, days, seed)
        data["packaging_status"] += generate_packaging(year, month, days, seed)
        data["mold_repair"] += generate_mold_repairs(year, month, days, seed)
    return data
