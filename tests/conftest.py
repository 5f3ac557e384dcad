"""Shared record fixtures for the production dashboard tests."""

import pytest


@pytest.fixture
def production_records():
    """Two processes, two months, plus a Laser row and a subtotal row."""
    return [
        {"생산일자": "2025-01-03", "공정": "사출", "설비(라인)명": "IM-01", "품목코드": "P-1",
         "품목명": "FRONT COVER", "품종": "A", "생산수량": 200, "양품수량": 185, "불량수량": 15},
        {"생산일자": "2025-01-04", "공정": "사출", "설비(라인)명": "IM-02", "품목코드": "P-2",
         "품목명": "REAR COVER", "품종": "B", "생산수량": 100, "양품수량": 95, "불량수량": 5},
        {"생산일자": "2025-01-04", "공정": "조립", "설비(라인)명": "AS-L1", "품목코드": "P-9",
         "품목명": "SAMPLE JIG", "품종": "A", "생산수량": 300, "양품수량": 300, "불량수량": 0},
        {"생산일자": "2025-02-02", "공정": "사출", "설비(라인)명": "IM-01", "품목코드": "P-1",
         "품목명": "FRONT COVER", "품종": "A", "생산수량": 50, "양품수량": 40, "불량수량": 10},
        {"생산일자": "2025-01-05", "공정": "Laser", "설비(라인)명": "LS-01", "품목코드": "P-1",
         "품목명": "FRONT COVER", "품종": "A", "생산수량": 999, "양품수량": 0, "불량수량": 999},
        {"생산일자": "", "공정": "합계", "생산수량": 1649},
    ]


@pytest.fixture
def price_list():
    return [
        {"품목코드": "P-1", "품목명": "FRONT COVER", "단가": "1,000"},
        {"품목코드": "", "품목명": "rear  cover", "단가": "500"},
    ]


@pytest.fixture
def detail_records():
    """Detail export: availability as 0-1 fractions, good / defect counts."""
    return [
        {"일자": "20250110", "공정명": "사출", "설비명": "IM-01", "시간가동율": 0.80,
         "양품수량": 97, "불량수량": 3},
        {"일자": "20250111", "공정명": "사출", "설비명": "IM-01", "시간가동율": 0.84,
         "양품수량": 97, "불량수량": 3},
        {"일자": "20250110", "공정명": "도장", "설비명": "PT-L1", "시간가동율": 0.95,
         "양품수량": 90, "불량수량": 10},
        {"일자": "20250210", "공정명": "사출", "설비명": "IM-02", "시간가동율": 0.50,
         "양품수량": 100, "불량수량": 0},
    ]


@pytest.fixture
def ct_records():
    return [
        {"일자": "2025-01-10", "공정": "사출", "품목명": "FRONT COVER", "표준C/T": 30, "실적CT": 36},
        {"일자": "2025-01-11", "공정": "사출", "품목명": "FRONT COVER", "표준C/T": 30, "실적CT": 36},
        {"일자": "2025-01-10", "공정": "사출", "품목명": "BRACKET", "표준C/T": 10, "실적CT": 10.5},
    ]


@pytest.fixture
def material_records():
    return [
        {"일자": "2025-01-10", "부품명": "FRONT COVER", "(찍힘)": 4, "(이물)": 1, "불량합계": 5},
        {"일자": "2025-01-11", "부품명": "FRONT COVER", "(찍힘)": 0, "(이물)": 3, "불량합계": 3},
        {"일자": "2025-01-10", "부품명": "BRACKET", "(찍힘)": 2, "(이물)": 0, "불량합계": 2},
        {"일자": "2025-01-10", "부품명": "LENS", "(찍힘)": 0, "(이물)": 0, "불량합계": 0},
    ]


@pytest.fixture
def packaging_records():
    return [
        {"일자": "2025-01-10", "라인명": "AS-L1", "불량수량": 5, "폐기수량": 1},
        {"일자": "2025-01-11", "라인명": "AS-L1", "불량수량": 2, "폐기수량": 0},
        {"일자": "2025-01-10", "라인명": "AS-L2", "불량수량": 3, "폐기수량": 3},
        {"일자": "2025-01-10", "라인명": "AS-L3", "불량수량": 0, "폐기수량": 0},
    ]


@pytest.fixture
def availability_records():
    return [
        {"생산일자": "2025/01/03", "공정": "사출", "설비/LINE": "IM-01", "조업시간(분)": 600,
         "가동시간(분)": 480, "비가동합계": 120, "시간가동률(%)": 80.0, "금형교체": 70, "자재대기": 50},
        {"생산일자": "2025/01/04", "공정": "사출", "설비/LINE": "IM-02", "조업시간(분)": 600,
         "가동시간(분)": 570, "비가동합계": 30, "시간가동률(%)": 95.0, "금형교체": 30, "자재대기": 0},
        {"생산일자": "2025/01/04", "공정": "도장", "설비/LINE": "PT-L1", "조업시간(분)": 300,
         "가동시간(분)": 300, "비가동합계": 0, "시간가동률(%)": 100.0, "금형교체": 0, "자재대기": 0},
    ]


@pytest.fixture
def mold_status_records():
    """Mold snapshot: one ungraded mold, one without a category or usage rate."""
    return [
        {"금형번호": "M-01", "금형구분": "사출금형", "금형등급": "A등급", "금형사용율": 70, "세척/연마율": 85},
        {"금형번호": "M-02", "금형구분": "사출금형", "금형등급": "B 등급", "금형사용율": "90%", "세척/연마율": 40},
        {"금형번호": "M-03", "금형구분": "", "금형등급": "특급", "금형사용율": "", "세척/연마율": 80},
    ]


@pytest.fixture
def mold_repair_records():
    return [
        {"수리일자": "2025-01-10", "금형번호": "M-01", "유형": "수정", "수리금액": "150,000"},
        {"수리일자": "2025-01-20", "금형번호": "M-02", "유형": "수정", "수리금액": 50000},
        {"수리일자": "2025-02-03", "금형번호": "M-01", "유형": "", "수리금액": ""},
    ]
