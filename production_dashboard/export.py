"""
Delimited-text export of dashboard tables.

Exports are UTF-8 with a byte-order marker so spreadsheet tools pick the
encoding up, comma-separated, with fields containing a comma double-quoted.
Numbers use the same half-up rounding as the on-screen tables.
"""

import csv
import io
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

import pandas as pd

from .config import RATE_DECIMALS

logger = logging.getLogger(__name__)

BOM = "\ufeff"


def round_half_up(value: Any, decimals: int = 0) -> float | int:
    """Round like the display does (0.5 -> 1), returning int for 0 decimals.

    Non-numeric input rounds to 0.
    """
    try:
        quantum = Decimal(1).scaleb(-decimals)
        rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return 0 if decimals == 0 else 0.0
    if not rounded.is_finite():
        return 0 if decimals == 0 else 0.0
    if decimals == 0:
        return int(rounded)
    return float(rounded)


def to_csv_bytes(frame: pd.DataFrame) -> bytes:
    """Serialise a display frame; header order is the frame's column order."""
    text = frame.to_csv(index=False, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    return (BOM + text).encode("utf-8")


def read_export(data: bytes) -> pd.DataFrame:
    """Parse an export produced by this module back into a DataFrame."""
    return pd.read_csv(io.BytesIO(data), encoding="utf-8-sig", keep_default_na=False)


def export_pivot(result, decimals: int | None = None) -> bytes:
    """Export a PivotResult exactly as displayed (including totals)."""
    frame = result.to_frame(decimals)
    logger.info("Exporting pivot table with %d lines", len(frame))
    return to_csv_bytes(frame)


def export_records(records: Iterable[Mapping[str, Any]]) -> bytes:
    """Export raw records; the header follows the first record's key order."""
    records = list(records)
    if not records:
        return BOM.encode("utf-8")
    columns = list(records[0].keys())
    frame = pd.DataFrame([{col: record.get(col, "") for col in columns} for record in records])
    return to_csv_bytes(frame[columns])


def export_issues(issues) -> bytes:
    """Export an issue list with rates rounded like the issue board."""
    rows = []
    for issue in issues:
        row = issue.as_dict()
        row["current_value"] = round_half_up(row["current_value"], RATE_DECIMALS)
        row["diff"] = round_half_up(row["diff"], RATE_DECIMALS)
        rows.append(row)
    columns = [
        "id", "process", "subject", "metric", "current_value",
        "threshold", "diff", "severity", "detail",
    ]
    return to_csv_bytes(pd.DataFrame(rows, columns=columns))
