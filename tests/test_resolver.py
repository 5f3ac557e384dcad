"""
Unit tests for field resolution across inconsistently named exports.

Run: python -m pytest tests/test_resolver.py -v
"""

import logging
import math

import pytest

from production_dashboard.config import FIELD_CANDIDATES
from production_dashboard.resolver import (
    audit_fields,
    is_empty,
    normalize_key,
    resolve,
    resolve_column,
    resolve_field,
)


# =====================================================================
# Helpers
# =====================================================================

class TestHelpers:

    def test_normalize_key(self):
        assert normalize_key("  Production Qty ") == "productionqty"
        assert normalize_key("시간 가동율 (%)") == "시간가동율(%)"

    @pytest.mark.parametrize("value", [None, float("nan"), "", "   "])
    def test_empty_values(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", [0, 0.0, "0", "abc", False])
    def test_non_empty_values(self, value):
        assert not is_empty(value)


# =====================================================================
# Exact match
# =====================================================================

class TestExactMatch:

    def test_candidate_priority_beats_column_order(self):
        record = {"공정명": "도장", "공정": "사출"}
        assert resolve(record, ("공정", "공정명")) == "사출"

    def test_empty_value_falls_through_to_next_candidate(self):
        record = {"공정": "", "공정명": "조립"}
        assert resolve(record, ("공정", "공정명")) == "조립"

    def test_nan_value_falls_through(self):
        record = {"공정": float("nan"), "공정명": "조립"}
        assert resolve(record, ("공정", "공정명")) == "조립"

    def test_zero_is_a_value(self):
        record = {"불량수량": 0}
        assert resolve(record, FIELD_CANDIDATES["defect_qty"]) == 0

    def test_exact_beats_fuzzy_of_higher_priority_candidate(self):
        # "생산수량" only fuzzily matches; "productionQty" is exact
        record = {"생산수량 합계": 5, "productionQty": 7}
        assert resolve(record, FIELD_CANDIDATES["production_qty"]) == 7


# =====================================================================
# Fuzzy match
# =====================================================================

class TestFuzzyMatch:

    def test_whitespace_and_case_insensitive(self):
        assert resolve({" 생산 수량 ": "100"}, ("생산수량",)) == "100"
        assert resolve({"Production_Qty": 5}, ("production_qty",)) == 5

    def test_key_containing_candidate(self):
        record = {"설비 시간가동율(%)": 85}
        assert resolve(record, ("시간가동율",)) == 85

    def test_key_contained_in_candidate(self):
        record = {"가동율": 77}
        assert resolve(record, ("시간가동율",)) == 77

    def test_equal_key_preferred_over_overlap(self):
        record = {"생산수량합계": 1, "생산 수량": 2}
        assert resolve(record, ("생산수량",)) == 2

    def test_fuzzy_skips_empty_values(self):
        record = {"설비 시간가동율": "", "라인 시간가동율": 90}
        assert resolve(record, ("시간가동율",)) == 90

    def test_absent_returns_default(self):
        assert resolve({"x": 1}, ("qty",)) is None
        assert resolve({"x": 1}, ("qty",), default=0) == 0

    def test_blank_key_never_matches(self):
        assert resolve({"  ": 5}, ("qty",)) is None

    def test_empty_record_and_candidates(self):
        assert resolve({}, ("qty",)) is None
        assert resolve({"qty": 1}, ()) is None
        assert not resolve_field({}, ("qty",)).found


# =====================================================================
# Determinism and ambiguity
# =====================================================================

class TestDeterminism:

    def test_idempotent(self):
        record = {"설비 시간가동율": 80, "생산 수량": "1,200", "공정": "사출"}
        for field in ("time_availability", "production_qty", "process"):
            first = resolve(record, FIELD_CANDIDATES[field])
            second = resolve(record, FIELD_CANDIDATES[field])
            assert first == second

    def test_resolution_reports_key(self):
        result = resolve_field({"생산 수량": 10}, ("생산수량",))
        assert result.found
        assert result.key == "생산 수량"
        assert result.value == 10
        assert result.ambiguous == ()

    def test_ambiguous_fuzzy_match_is_flagged(self):
        record = {"시간가동율A": 80, "시간가동율B": 90}
        result = resolve_field(record, ("시간가동율",))
        assert result.key == "시간가동율A"
        assert result.value == 80
        assert result.ambiguous == ("시간가동율A", "시간가동율B")


class TestResolveColumn:

    def test_picks_column_name(self):
        columns = ["설비명", "생산 수량", "양품수량"]
        assert resolve_column(columns, FIELD_CANDIDATES["production_qty"]) == "생산 수량"

    def test_missing_column(self):
        assert resolve_column(["a", "b"], ("qty",)) is None


class TestAuditFields:

    def test_warns_once_per_field(self, caplog):
        records = [
            {"시간가동율A": 80, "시간가동율B": 90},
            {"시간가동율A": 70, "시간가동율B": 60},
        ]
        with caplog.at_level(logging.WARNING, logger="production_dashboard.resolver"):
            warnings = audit_fields(records, {"availability": ("시간가동율",)})

        assert len(warnings) == 1
        assert "availability" in warnings[0]
        assert "시간가동율A" in warnings[0]
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    def test_unambiguous_dataset(self):
        records = [{"공정": "사출", "생산수량": 10}]
        fields = {"process": FIELD_CANDIDATES["process"], "qty": FIELD_CANDIDATES["production_qty"]}
        assert audit_fields(records, fields) == []

    def test_empty_dataset(self):
        assert audit_fields([], {"process": ("공정",)}) == []

    def test_nan_is_empty(self):
        assert is_empty(math.nan)
