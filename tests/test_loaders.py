"""
Unit tests for export loading and value parsing helpers.

Run: python -m pytest tests/test_loaders.py -v
"""

import io
import zipfile
from datetime import date, datetime

import openpyxl
import pandas as pd
import pytest

from production_dashboard.loaders import (
    extract_month,
    load_export,
    months_in,
    normalise_date,
    normalise_percentage,
    parse_number,
    safe_float,
)

CSV_EXPORT = (
    "\ufeff 공정 ,생산수량,,비고\n"
    "사출,100,,\n"
    "합계,100,,\n"
    ",,,\n"
    "도장,50,x,메모\n"
).encode("utf-8")


def _write_workbook(path, header, rows):
    """Helper: write a single-sheet workbook."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


# =====================================================================
# CSV
# =====================================================================

class TestLoadCsv:

    def test_from_bytes(self):
        records = load_export(CSV_EXPORT, "production.csv")
        assert records == [
            {"공정": "사출", "생산수량": "100", "비고": ""},
            {"공정": "도장", "생산수량": "50", "비고": "메모"},
        ]

    def test_from_file_like(self):
        assert len(load_export(io.BytesIO(CSV_EXPORT))) == 2

    def test_from_path(self, tmp_path):
        path = tmp_path / "ct.csv"
        path.write_bytes(CSV_EXPORT)
        assert load_export(path)[0]["공정"] == "사출"

    def test_values_kept_as_text(self):
        records = load_export("품목코드,단가\n007,\"1,250\"\n".encode("utf-8"), "price.csv")
        assert records == [{"품목코드": "007", "단가": "1,250"}]

    def test_header_only(self):
        assert load_export("공정,생산수량\n".encode("utf-8"), "empty.csv") == []


# =====================================================================
# Excel
# =====================================================================

class TestLoadExcel:

    def test_duplicate_and_blank_headers(self, tmp_path):
        path = _write_workbook(
            tmp_path / "availability.xlsx",
            ["일자", None, "설비/LINE", "금형교체", "금형교체"],
            [
                ["2025-01-03", "junk", "IM-01", 10, 5],
                ["TOTAL", None, None, 10, 5],
            ],
        )
        records = load_export(path)
        assert records == [
            {"일자": "2025-01-03", "설비/LINE": "IM-01", "금형교체": 10, "금형교체_2": 5},
        ]

    def test_from_bytes_with_name(self, tmp_path):
        path = _write_workbook(tmp_path / "detail.xlsx", ["공정명", "설비명"], [["사출", "IM-01"]])
        records = load_export(path.read_bytes(), "detail.xlsx")
        assert records == [{"공정명": "사출", "설비명": "IM-01"}]

    def test_invalid_workbook_raises(self):
        with pytest.raises(zipfile.BadZipFile):
            load_export(b"not a workbook", "broken.xlsx")


def test_months_in():
    records = [{"일자": "2025-03-02"}, {"일자": "20250101"}, {"일자": ""}, {"비고": "x"}]
    assert months_in(records) == [1, 3]


# =====================================================================
# Value parsing
# =====================================================================

class TestSafeFloat:

    @pytest.mark.parametrize("raw, expected", [
        ("1,200", 1200.0),
        (" 78% ", 78.0),
        (3, 3.0),
        ("0.5", 0.5),
    ])
    def test_numbers(self, raw, expected):
        assert safe_float(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "=SUM(A1:A3)", True, float("nan"), float("inf")])
    def test_non_numbers(self, raw):
        assert safe_float(raw) is None

    def test_parse_number_defaults_to_zero(self):
        assert parse_number("n/a") == 0.0
        assert parse_number("12") == 12.0


class TestNormalisePercentage:

    def test_fraction_scaled(self):
        assert normalise_percentage(0.78, assume_decimal=True) == pytest.approx(78.0)

    def test_percentage_unchanged(self):
        assert normalise_percentage(78.0, assume_decimal=True) == 78.0
        assert normalise_percentage(0.78) == 0.78

    def test_none(self):
        assert normalise_percentage(None, assume_decimal=True) is None


class TestExtractMonth:

    @pytest.mark.parametrize("raw, expected", [
        ("2025-03-01", 3),
        ("2025/11/30", 11),
        ("2025.07.04", 7),
        ("12/25/2024", 12),
        ("20250105", 1),
        (20250105, 1),
        (datetime(2025, 6, 1, 8, 30), 6),
        (date(2025, 9, 1), 9),
        (pd.Timestamp("2025-10-15"), 10),
        (45660, 1),
        (45660.75, 1),
        ("45700", 2),
    ])
    def test_layouts(self, raw, expected):
        assert extract_month(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "  ", "20251301", "next week", pd.NaT, float("nan"), True])
    def test_unusable(self, raw):
        assert extract_month(raw) is None


class TestNormaliseDate:

    def test_excel_serial_number(self):
        assert normalise_date(45660) == pd.Timestamp("2025-01-03")

    def test_serial_number_text_from_csv(self):
        assert normalise_date(" 45660 ") == pd.Timestamp("2025-01-03")

    def test_compact_date_number(self):
        assert normalise_date(20250103) == pd.Timestamp("2025-01-03")

    def test_timestamp_passthrough(self):
        stamp = pd.Timestamp("2025-04-30 13:00")
        assert normalise_date(stamp) is stamp
