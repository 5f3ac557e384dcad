"""
Unit tests for period filtering, row exclusion and per-group rollups.

Run: python -m pytest tests/test_transforms.py -v
"""

import logging

import pytest

from production_dashboard.matcher import ReferenceIndex
from production_dashboard.transforms import (
    availability_by_equipment,
    average_usage_rate,
    build_group_metrics,
    count_by_field,
    ct_excess_by_product,
    defect_rate_by_equipment,
    downtime_by_equipment,
    downtime_reasons,
    exclude_rows,
    filter_by_month,
    grade_counts,
    group_production_totals,
    is_total_row,
    issues_to_frame,
    item_quality,
    material_defect_totals,
    metrics_to_frame,
    mold_grade,
    molds_due_for_inspection,
    packaging_defect_totals,
    process_quality,
    repairs_by_month,
)


# =====================================================================
# Row selection
# =====================================================================

class TestFilterByMonth:

    def test_none_keeps_everything(self, production_records):
        assert len(filter_by_month(production_records, None)) == len(production_records)

    def test_undated_rows_belong_to_every_month(self, production_records):
        january = filter_by_month(production_records, 1)
        february = filter_by_month(production_records, 2)
        assert len(january) == 5
        assert len(february) == 2
        assert {"생산일자": "", "공정": "합계", "생산수량": 1649} in february

    def test_undated_rows_are_logged(self, production_records, caplog):
        with caplog.at_level(logging.INFO, logger="production_dashboard.transforms"):
            filter_by_month(production_records, 2)
        assert "1 of 6 rows have no usable date" in caplog.text

    def test_mixed_date_layouts(self):
        records = [
            {"일자": "20250310"},
            {"일자": "2025/03/01"},
            {"일자": "03/15/2025"},
            {"일자": "2025-04-01"},
        ]
        assert len(filter_by_month(records, 3)) == 3

    def test_unparseable_date_is_kept(self):
        records = [{"일자": "not a date"}, {"일자": "2025-05-01"}]
        assert filter_by_month(records, 6) == [{"일자": "not a date"}]

    def test_excel_serial_dates_are_dated(self):
        # 45660 is 2025-01-03, 45700 is 2025-02-12
        records = [{"생산일자": 45660}, {"생산일자": 45700}]
        assert filter_by_month(records, 1) == [{"생산일자": 45660}]


class TestExcludeRows:

    def test_laser_and_subtotals_dropped(self, production_records):
        kept = exclude_rows(production_records)
        assert len(kept) == 4
        assert all(r["공정"] not in ("Laser", "합계") for r in kept)

    def test_total_row_detection(self):
        assert is_total_row({"공정": "합계"})
        assert is_total_row({"품목명": " Total "})
        assert not is_total_row({"공정": "사출", "설비(라인)명": "IM-01", "품목명": "FRONT COVER"})

    def test_names_containing_total_are_kept(self):
        record = {"공정": "조립", "설비(라인)명": "AS-L1", "품목명": "TOTALIZER COVER", "생산수량": 10}
        assert not is_total_row(record)
        assert exclude_rows([record]) == [record]


# =====================================================================
# Production / OEE groups
# =====================================================================

class TestGroupProductionTotals:

    def test_sums_per_process(self, production_records):
        totals = group_production_totals(production_records)
        assert set(totals) == {("사출",), ("조립",)}
        assert totals[("사출",)].production == 350
        assert totals[("사출",)].good == 320
        assert totals[("사출",)].defect == 30
        assert totals[("조립",)].records == 1

    def test_defect_amount_through_price_list(self, production_records, price_list):
        totals = group_production_totals(production_records, price_index=ReferenceIndex(price_list))
        # P-1 by code (15 + 10) x 1000, REAR COVER by name 5 x 500
        assert totals[("사출",)].defect_amount == pytest.approx(27500)
        assert totals[("조립",)].defect_amount == 0

    def test_two_level_grouping(self, production_records):
        totals = group_production_totals(production_records, fields=("process", "product_type"))
        assert totals[("사출", "A")].production == 250
        assert totals[("사출", "B")].production == 100


class TestBuildGroupMetrics:

    def test_availability_joined_by_group(self, production_records, availability_records):
        metrics = build_group_metrics(
            filter_by_month(production_records, 1), availability_records,
        )
        injection = metrics[("사출",)]
        # 80% and 95%, both over 600 scheduled minutes
        assert injection.time_availability == pytest.approx(87.5)
        assert injection.quality_rate == pytest.approx(280 / 300 * 100)
        assert injection.oee == pytest.approx(87.5 * 280 / 300)
        assert injection.availability_measured

    def test_unmeasured_group_defaults(self, production_records, availability_records, caplog):
        with caplog.at_level(logging.INFO, logger="production_dashboard.transforms"):
            metrics = build_group_metrics(production_records, availability_records)
        assembly = metrics[("조립",)]
        assert assembly.time_availability == 100.0
        assert not assembly.availability_measured
        assert "1 of 2 groups have no availability data" in caplog.text

    def test_availability_group_without_production_ignored(self, production_records, availability_records):
        metrics = build_group_metrics(production_records, availability_records)
        assert ("도장",) not in metrics

    def test_metrics_to_frame(self, production_records):
        metrics = build_group_metrics(production_records)
        df = metrics_to_frame(metrics, ("process",))
        assert list(df["process"]) == ["사출", "조립"]
        assert {"oee", "time_availability", "defect_rate", "availability_measured"} <= set(df.columns)

    def test_empty_frame_has_columns(self):
        df = metrics_to_frame({}, ("process",))
        assert df.empty
        assert "oee" in df.columns


# =====================================================================
# Issue board statistics
# =====================================================================

class TestEquipmentStatistics:

    def test_availability_mean_of_fractions(self, detail_records):
        result = availability_by_equipment(filter_by_month(detail_records, 1))
        assert result[("사출", "IM-01")] == pytest.approx(82.0)
        assert result[("도장", "PT-L1")] == pytest.approx(95.0)
        assert ("사출", "IM-02") not in result

    def test_equipment_without_observation_left_out(self):
        records = [{"공정": "사출", "설비명": "IM-09", "양품수량": 10}]
        assert availability_by_equipment(records) == {}

    def test_process_restriction(self):
        records = [{"공정": "Packing", "설비명": "PK-1", "시간가동율": 70}]
        assert availability_by_equipment(records) == {}
        assert availability_by_equipment(records, processes=None) == {("Packing", "PK-1"): 70.0}

    def test_defect_rate_uses_good_plus_defect(self, detail_records):
        result = defect_rate_by_equipment(detail_records)
        assert result[("사출", "IM-01")]["production"] == 200
        assert result[("사출", "IM-01")]["defect_rate"] == pytest.approx(3.0)
        assert result[("도장", "PT-L1")]["defect_rate"] == pytest.approx(10.0)
        assert result[("사출", "IM-02")]["defect_rate"] == 0.0

    def test_defect_rate_prefers_production_qty(self):
        records = [{"공정": "인쇄", "설비명": "PR-01", "생산수량": 400, "양품수량": 100, "불량수량": 8}]
        assert defect_rate_by_equipment(records)[("인쇄", "PR-01")]["defect_rate"] == pytest.approx(2.0)

    def test_ct_excess_of_averages(self, ct_records):
        result = ct_excess_by_product(ct_records)
        assert result[("사출", "FRONT COVER")]["ct_excess_rate"] == pytest.approx(20.0)
        assert result[("사출", "BRACKET")]["ct_excess_rate"] == pytest.approx(5.0)

    def test_ct_rows_without_target_skipped(self):
        records = [{"공정": "사출", "품목명": "X", "실적CT": 12, "표준C/T": ""}]
        assert ct_excess_by_product(records) == {}


class TestAssemblyTotals:

    def test_material_totals(self, material_records):
        totals, main_types = material_defect_totals(material_records)
        assert totals == {"FRONT COVER": 8, "BRACKET": 2}
        assert main_types["BRACKET"] == "찍힘"

    def test_material_main_type_tie_broken_by_name(self, material_records):
        # 찍힘 4 + 0 and 이물 1 + 3 tie at 4
        _, main_types = material_defect_totals(material_records)
        assert main_types["FRONT COVER"] == min("찍힘", "이물")

    def test_material_other_process_ignored(self):
        records = [{"공정": "사출", "부품명": "X", "(찍힘)": 1, "불량합계": 1}]
        assert material_defect_totals(records) == ({}, {})

    def test_packaging_defect_plus_scrap(self, packaging_records):
        assert packaging_defect_totals(packaging_records) == {"AS-L1": 8, "AS-L2": 6}


# =====================================================================
# Quality
# =====================================================================

class TestItemQuality:

    def test_unpriced_item_has_zero_amount(self, production_records, price_list):
        rows = item_quality(filter_by_month(production_records, 1), ReferenceIndex(price_list))
        jig = next(row for row in rows if row["item"] == "SAMPLE JIG")
        assert jig["defect_amount"] == 0
        assert jig["yield_rate"] == pytest.approx(100.0)

    def test_falls_back_to_item_code(self):
        records = [
            {"공정": "인쇄", "품목코드": "P-7", "생산수량": 10, "불량수량": 1},
            {"공정": "인쇄", "품목코드": "P-7", "생산수량": 30, "불량수량": 1},
        ]
        rows = item_quality(records)
        assert len(rows) == 1
        assert rows[0]["item"] == "P-7"
        assert rows[0]["defect_rate"] == pytest.approx(5.0)

    def test_ties_ordered_by_name(self):
        records = [{"품목명": "B"}, {"품목명": "A"}]
        assert [row["item"] for row in item_quality(records)] == ["A", "B"]

    def test_process_quality_skips_laser(self, production_records):
        processes = [row["process"] for row in process_quality(production_records)]
        assert processes == ["사출", "조립"]


# =====================================================================
# Molds
# =====================================================================

class TestMolds:

    @pytest.mark.parametrize("value, expected", [
        ("A등급", "A"),
        ("C 등급", "C"),
        ("E등급(폐기예정)", "E"),
        ("F등급", "미지정"),
        ("특급", "미지정"),
        ("", "미지정"),
        (None, "미지정"),
    ])
    def test_mold_grade(self, value, expected):
        assert mold_grade(value) == expected

    def test_grade_counts_fixed_order(self):
        records = [{"금형등급": "C등급"}, {"금형등급": "-"}, {"금형등급": "A등급"}, {"금형등급": "C등급"}]
        assert list(grade_counts(records).items()) == [("A", 1), ("C", 2), ("미지정", 1)]

    def test_count_by_field_ties_by_name(self):
        records = [{"유형": "수정"}, {"유형": "교체"}, {"유형": " "}]
        assert list(count_by_field(records, "repair_type", "기타")) == ["교체", "기타", "수정"]

    def test_usage_rate_ignores_missing(self):
        records = [{"금형사용율": "60%"}, {"금형사용율": None}, {"금형사용율": 100}]
        assert average_usage_rate(records) == pytest.approx(80.0)

    def test_inspection_reads_percent_text(self):
        records = [{"금형번호": "M-9", "세척/연마율": "80%"}, {"금형번호": "M-8", "세척/연마율": "79.9"}]
        assert molds_due_for_inspection(records) == ["M-9"]

    def test_repairs_by_month_skips_undated(self):
        records = [
            {"수리일자": 45700, "수리금액": 1000},
            {"수리일자": "", "수리금액": 500},
            {"수리일자": "2025-01-31", "수리금액": "2,000"},
        ]
        assert repairs_by_month(records) == [
            {"period": "2025-01", "count": 1, "cost": 2000.0},
            {"period": "2025-02", "count": 1, "cost": 1000.0},
        ]


# =====================================================================
# Downtime
# =====================================================================

class TestDowntime:

    def test_by_equipment_sorted(self, availability_records):
        rows = downtime_by_equipment(availability_records)
        assert [r["equipment"] for r in rows] == ["IM-01", "IM-02", "PT-L1"]
        assert rows[0]["downtime_minutes"] == 120
        assert rows[0]["downtime_rate"] == pytest.approx(20.0)
        assert rows[2]["downtime_rate"] == 0.0

    def test_reasons_skip_metadata_columns(self, availability_records):
        assert downtime_reasons(availability_records, "IM-01") == [("금형교체", 70.0), ("자재대기", 50.0)]
        assert downtime_reasons(availability_records, "IM-02") == [("금형교체", 30.0)]
        assert downtime_reasons(availability_records, "PT-L1") == []

    def test_reasons_fold_duplicate_headers(self):
        records = [{"설비/LINE": "IM-05", "금형교체": 10, "금형교체_2": 5, "비가동합계": 15}]
        assert downtime_reasons(records, "IM-05") == [("금형교체", 15.0)]


def test_issues_to_frame_empty():
    df = issues_to_frame([])
    assert df.empty
    assert list(df.columns)[:3] == ["id", "process", "subject"]
