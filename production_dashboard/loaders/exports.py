"""
Loader for monthly CSV / Excel exports uploaded by operators.

Every export becomes a list of records (one dict per data row, keys in
header order). Values are kept as the strings (CSV) or cell values (Excel)
found in the file; numeric coercion happens later through the resolver and
``parse_number``.

Assumptions
-----------
- The first row is the header.
- Blank headers and pandas-style "Unnamed: N" placeholders are dropped.
- Header names are stripped; a repeated header gets a "_2", "_3" suffix.
- Subtotal rows (first non-empty value "TOTAL"/"합계"/"총계") are dropped.
"""

import io
import logging
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Mapping

import openpyxl
import pandas as pd

from ..config import FIELD_CANDIDATES, TOTAL_ROW_LABELS
from ..resolver import is_empty, resolve
from .utils import extract_month

logger = logging.getLogger(__name__)

_EXCEL_SUFFIXES = (".xlsx", ".xlsm")


def _clean_headers(raw: Iterable[Any]) -> list[str | None]:
    """Stripped header names; None marks a column to drop."""
    headers: list[str | None] = []
    seen: dict[str, int] = {}
    for value in raw:
        name = "" if is_empty(value) else str(value).strip()
        if not name or name.startswith("Unnamed"):
            headers.append(None)
            continue
        seen[name] = seen.get(name, 0) + 1
        headers.append(name if seen[name] == 1 else f"{name}_{seen[name]}")
    return headers


def _is_total(record: Mapping[str, Any]) -> bool:
    for value in record.values():
        if is_empty(value):
            continue
        return str(value).strip().lower() in TOTAL_ROW_LABELS
    return False


def _rows_to_records(headers: list[str | None], rows: Iterable[Iterable[Any]]) -> tuple[list[dict], int]:
    records = []
    skipped = 0
    for row in rows:
        record = {
            header: value
            for header, value in zip(headers, row)
            if header is not None
        }
        if all(is_empty(value) for value in record.values()):
            continue
        if _is_total(record):
            skipped += 1
            continue
        records.append(record)
    return records, skipped


def _read_excel(source) -> tuple[list[str | None], list[tuple]]:
    wb = openpyxl.load_workbook(source, data_only=True, read_only=True)
    try:
        ws = wb[wb.sheetnames[0]]
        rows = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()
    if not rows:
        return [], []
    return _clean_headers(rows[0]), rows[1:]


def _read_csv(source) -> tuple[list[str | None], list[tuple]]:
    df = pd.read_csv(source, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    return _clean_headers(df.columns), list(df.itertuples(index=False, name=None))


def load_export(source: str | Path | bytes | BinaryIO, name: str | None = None) -> list[dict]:
    """Load one uploaded export into records.

    Parameters
    ----------
    source : File path, raw bytes, or a binary file-like object (e.g. a
        Streamlit upload).
    name : Original file name; decides CSV vs. Excel when ``source`` is not
        a path. Defaults to the path's name.

    Returns
    -------
    List of records. Empty when the file has no data rows.
    """
    if name is None:
        name = str(getattr(source, "name", source if isinstance(source, (str, Path)) else ""))
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    is_excel = Path(name).suffix.lower() in _EXCEL_SUFFIXES

    try:
        headers, rows = _read_excel(source) if is_excel else _read_csv(source)
    except Exception:
        logger.exception("Failed to open export: %s", name)
        raise

    if not any(header is not None for header in headers):
        logger.warning("Export '%s' has no usable header row", name)
        return []

    records, skipped = _rows_to_records(headers, rows)
    if skipped:
        logger.info("Dropped %d subtotal rows from '%s'", skipped, name)
    logger.info("Loaded %d records from '%s'", len(records), name)
    return records


def months_in(records: Iterable[Mapping[str, Any]]) -> list[int]:
    """Sorted calendar months present in the records' date column."""
    months = set()
    for record in records:
        month = extract_month(resolve(record, FIELD_CANDIDATES["date"]))
        if month is not None:
            months.add(month)
    return sorted(months)
