"""
Pivot builder: group records by up to three row fields and three column
fields and aggregate one value field per cell.

Each record feeds exactly one cell accumulator in a single pass. Displayed
values are derived from accumulators only at finalisation, and row, column
and grand totals are rolled up from the same accumulators, so an ``avg``
total is total-sum / total-count rather than a mean of cell averages.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from .config import (
    AGG_FUNCS,
    DEFAULT_PIVOT,
    DISPLAY_DECIMALS,
    EMPTY_SENTINEL,
    MAX_PIVOT_FIELDS,
    TOTAL_SENTINEL,
    candidates_for,
)
from .export import round_half_up
from .loaders.utils import parse_number
from .resolver import is_empty, resolve

logger = logging.getLogger(__name__)

Key = tuple[str, ...]


@dataclass(frozen=True)
class PivotSpec:
    """Versioned pivot configuration."""

    row_fields: tuple[str, ...] = ()
    col_fields: tuple[str, ...] = ()
    value_field: str | None = None
    agg_func: str = "sum"
    version: int = 1

    def __post_init__(self):
        object.__setattr__(self, "row_fields", tuple(self.row_fields or ()))
        object.__setattr__(self, "col_fields", tuple(self.col_fields or ()))
        if self.value_field is not None and not str(self.value_field).strip():
            object.__setattr__(self, "value_field", None)

        if len(self.row_fields) > MAX_PIVOT_FIELDS:
            raise ValueError(
                f"At most {MAX_PIVOT_FIELDS} row fields allowed, got {len(self.row_fields)}"
            )
        if len(self.col_fields) > MAX_PIVOT_FIELDS:
            raise ValueError(
                f"At most {MAX_PIVOT_FIELDS} column fields allowed, got {len(self.col_fields)}"
            )
        if self.agg_func not in AGG_FUNCS:
            raise ValueError(
                f"Unknown aggregation '{self.agg_func}'; expected one of {', '.join(AGG_FUNCS)}"
            )

    @property
    def is_degenerate(self) -> bool:
        return not self.row_fields and not self.col_fields

    def to_dict(self) -> dict:
        return {
            "row_fields": list(self.row_fields),
            "col_fields": list(self.col_fields),
            "value_field": self.value_field,
            "agg_func": self.agg_func,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PivotSpec":
        return cls(
            row_fields=tuple(data.get("row_fields") or ()),
            col_fields=tuple(data.get("col_fields") or ()),
            value_field=data.get("value_field"),
            agg_func=data.get("agg_func", "sum"),
            version=int(data.get("version", 1)),
        )

    @classmethod
    def default(cls) -> "PivotSpec":
        return cls.from_dict(DEFAULT_PIVOT)


class Cell:
    """Accumulator for one pivot cell (or one rolled-up total)."""

    __slots__ = ("sum", "count", "min", "max")

    def __init__(self):
        self.sum = 0.0
        self.count = 0
        self.min = None
        self.max = None

    def add(self, value: float) -> None:
        self.sum += value
        self.count += 1
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)

    def merge(self, other: "Cell") -> None:
        if other.count == 0:
            return
        self.sum += other.sum
        self.count += other.count
        self.min = other.min if self.min is None else min(self.min, other.min)
        self.max = other.max if self.max is None else max(self.max, other.max)

    def value(self, agg_func: str) -> float:
        if agg_func == "count":
            return float(self.count)
        if agg_func == "avg":
            return self.sum / self.count if self.count else 0.0
        if agg_func == "min":
            return self.min if self.min is not None else 0.0
        if agg_func == "max":
            return self.max if self.max is not None else 0.0
        return self.sum


@dataclass
class PivotResult:
    """Rectangular pivot table with totals.

    ``matrix[row][col]`` holds every row x column combination, including
    combinations with no records (value 0).
    """

    spec: PivotSpec
    rows: list[Key] = field(default_factory=list)
    cols: list[Key] = field(default_factory=list)
    matrix: dict[Key, dict[Key, float]] = field(default_factory=dict)
    row_totals: dict[Key, float] = field(default_factory=dict)
    col_totals: dict[Key, float] = field(default_factory=dict)
    grand_total: float = 0.0
    record_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.rows or not self.cols

    def to_frame(self, decimals: int | None = None) -> pd.DataFrame:
        """Display table: row-field columns, one column per key, Total row/col.

        Values are rounded with the display policy for the aggregation
        unless ``decimals`` is given.
        """
        if decimals is None:
            decimals = DISPLAY_DECIMALS.get(self.spec.agg_func, 2)

        row_headers = list(self.spec.row_fields) or [""]
        # Without column fields the single "Total" column already is the row total
        cols = self.cols if self.spec.col_fields else []
        labels = row_headers + [column_label(col) for col in cols]
        columns = labels + [_unique_header(TOTAL_SENTINEL, labels)]
        if self.is_empty:
            return pd.DataFrame(columns=columns)

        body = []
        for row in self.rows:
            values = [round_half_up(self.matrix[row][col], decimals) for col in cols]
            body.append(list(row) + values + [round_half_up(self.row_totals[row], decimals)])

        if self.spec.row_fields:
            footer = [TOTAL_SENTINEL] + [""] * (len(row_headers) - 1)
            footer += [round_half_up(self.col_totals[col], decimals) for col in cols]
            footer.append(round_half_up(self.grand_total, decimals))
            body.append(footer)

        return pd.DataFrame(body, columns=columns)


def _unique_header(name: str, taken: Sequence[str]) -> str:
    """``name``, or ``name_2``, ``name_3``... when a data column already uses it."""
    candidate = name
    suffix = 1
    while candidate in taken:
        suffix += 1
        candidate = f"{name}_{suffix}"
    return candidate


def column_label(key: Key) -> str:
    """Header text for a column key ("A / B" for multi-field keys)."""
    return " / ".join(key)


def record_key(record: Mapping[str, Any], fields: Sequence[str]) -> Key:
    """Tuple of resolved field values; "(empty)" for missing, ("Total",) for no fields."""
    if not fields:
        return (TOTAL_SENTINEL,)
    parts = []
    for name in fields:
        value = resolve(record, candidates_for(name))
        parts.append(EMPTY_SENTINEL if is_empty(value) else str(value).strip())
    return tuple(parts)


def build_pivot(records: Iterable[Mapping[str, Any]], spec: PivotSpec) -> PivotResult:
    """Group and aggregate records according to ``spec``.

    Parameters
    ----------
    records : Heterogeneous records; fields are looked up via the resolver.
    spec : Row/column fields (each at most 3), optional value field and
        aggregation function.

    Returns
    -------
    PivotResult. Empty when the spec has neither row nor column fields.
    """
    if spec.is_degenerate:
        logger.info("Pivot has no row or column fields; returning empty result")
        return PivotResult(spec=spec)

    value_candidates = candidates_for(spec.value_field) if spec.value_field else None

    cells: dict[Key, dict[Key, Cell]] = {}
    col_values: list[set[str]] = [set() for _ in spec.col_fields]
    record_count = 0

    for record in records:
        record_count += 1
        row_key = record_key(record, spec.row_fields)
        col_key = record_key(record, spec.col_fields)
        if spec.col_fields:
            for i, part in enumerate(col_key):
                col_values[i].add(part)

        if value_candidates is None:
            value = 1.0
        else:
            value = parse_number(resolve(record, value_candidates))

        cells.setdefault(row_key, {}).setdefault(col_key, Cell()).add(value)

    rows = sorted(cells)
    if spec.col_fields:
        cols = list(itertools.product(*(sorted(values) for values in col_values)))
    else:
        cols = [(TOTAL_SENTINEL,)] if rows else []

    agg = spec.agg_func
    matrix: dict[Key, dict[Key, float]] = {}
    row_totals: dict[Key, float] = {}
    col_cells: dict[Key, Cell] = {col: Cell() for col in cols}
    grand = Cell()
    empty = Cell()

    for row in rows:
        row_cells = cells[row]
        row_cell = Cell()
        matrix[row] = {}
        for col in cols:
            cell = row_cells.get(col, empty)
            matrix[row][col] = cell.value(agg)
            row_cell.merge(cell)
            col_cells[col].merge(cell)
        row_totals[row] = row_cell.value(agg)
        grand.merge(row_cell)

    result = PivotResult(
        spec=spec,
        rows=rows,
        cols=cols,
        matrix=matrix,
        row_totals=row_totals,
        col_totals={col: cell.value(agg) for col, cell in col_cells.items()},
        grand_total=grand.value(agg),
        record_count=record_count,
    )
    logger.info(
        "Built pivot %s x %s (%s) with %d rows x %d cols from %d records",
        list(spec.row_fields), list(spec.col_fields), agg,
        len(rows), len(cols), record_count,
    )
    return result
