"""
Shared utilities for record parsing: number coercion, percentage scaling,
date normalisation and month extraction.
"""

import logging
import math
import numbers
import re
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

_EXCEL_EPOCH = pd.Timestamp("1899-12-30")
_NUMERIC_TEXT = re.compile(r"\d+(\.\d+)?")
# Smallest integer read as YYYYMMDD rather than an Excel serial number
_COMPACT_DATE_MIN = 10_000_000


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values.

    Handles thousands separators ("1,200") and percentage strings ("78%").
    NaN and infinities are treated as non-numeric.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, str):
        val = val.strip().replace(",", "")
        if not val or val.startswith("="):
            return None
        if val.endswith("%"):
            val = val[:-1].strip()
    try:
        result = float(val)
    except (ValueError, TypeError):
        return None
    if not math.isfinite(result):
        return None
    return result


def parse_number(val: Any) -> float:
    """Coerce a value to float, returning 0.0 for anything unparseable."""
    result = safe_float(val)
    return 0.0 if result is None else result


def normalise_percentage(val: float | None, assume_decimal: bool = False) -> float | None:
    """Normalise percentage to 0-100 range.

    If assume_decimal is True, values in (0, 1] are multiplied by 100
    (e.g. 0.78 -> 78.0). Values already in 0-100 range are left as-is.
    """
    if val is None:
        return None
    if assume_decimal and 0 < val <= 1.0:
        return val * 100.0
    return val


def normalise_date(val: Any) -> pd.Timestamp | None:
    """Convert Excel serial number, YYYYMMDD number or datetime to pd.Timestamp.

    Excel serial numbers use the 1899-12-30 epoch. Eight-digit integers
    (20250103) are compact dates. Numeric strings, as read from CSV exports,
    are treated like numbers. Returns None for blank or unparseable values.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, pd.Timestamp):
        return None if pd.isna(val) else val
    if isinstance(val, str):
        val = val.strip()
        if not val:
            return None
        if _NUMERIC_TEXT.fullmatch(val):
            val = float(val)
    if isinstance(val, numbers.Real):
        if not math.isfinite(val):
            return None
        if val >= _COMPACT_DATE_MIN:
            try:
                return pd.to_datetime(str(int(val)), format="%Y%m%d")
            except (ValueError, OverflowError):
                logger.debug("Could not convert compact date %s", val)
                return None
        try:
            return _EXCEL_EPOCH + pd.Timedelta(days=int(val))
        except (ValueError, OverflowError):
            logger.debug("Could not convert serial number %s to date", val)
            return None
    try:
        result = pd.Timestamp(val)
    except (ValueError, TypeError, OverflowError):
        logger.debug("Could not parse date value: %s", val)
        return None
    return None if pd.isna(result) else result


def extract_month(val: Any) -> int | None:
    """Return the calendar month (1-12) of a date-like value, or None.

    Accepts everything ``normalise_date`` does: datetime/date/Timestamp
    objects, Excel serial numbers, YYYYMMDD numbers and date strings such as
    YYYY-MM-DD, YYYY/MM/DD, YYYY.MM.DD or MM/DD/YYYY.
    """
    timestamp = normalise_date(val)
    return None if timestamp is None else timestamp.month
