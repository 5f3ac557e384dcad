"""
Cross-dataset matching: join a record to its counterpart in a reference
dataset (e.g. a production row to its price-list entry).

Keys are tried in a fixed priority order, first hit wins:
    item code  ->  alternate code (customer P/N)  ->  item name

A target only attempts a key type it actually has a value for. A miss is an
explicit ``None``; callers count it as unmatched and add zero to monetary
rollups.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from .config import FIELD_CANDIDATES, PRICE_MARKERS
from .loaders.utils import parse_number
from .resolver import is_empty, normalize_key, resolve

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_code(value: Any) -> str:
    """Codes compare trimmed, upper-cased, with whitespace removed."""
    return _WHITESPACE.sub("", str(value).strip().upper())


def normalize_name(value: Any) -> str:
    """Names compare trimmed, lower-cased, with whitespace runs collapsed."""
    return _WHITESPACE.sub(" ", str(value).strip().lower())


@dataclass(frozen=True)
class JoinKey:
    """Candidate lists for the three key types, in match priority order."""

    code: tuple[str, ...] = FIELD_CANDIDATES["item_code"]
    alt_code: tuple[str, ...] = FIELD_CANDIDATES["customer_pn"]
    name: tuple[str, ...] = FIELD_CANDIDATES["item_name"]

    def attempts(self):
        return (
            ("code", self.code, normalize_code),
            ("alt_code", self.alt_code, normalize_code),
            ("name", self.name, normalize_name),
        )


DEFAULT_JOIN_KEY = JoinKey()


class ReferenceIndex:
    """Lookup tables over a reference dataset, built in one pass.

    When two reference records share a key value the earlier one wins, so the
    result does not depend on dict ordering inside the tables.
    """

    def __init__(self, reference: Iterable[Mapping[str, Any]], key: JoinKey = DEFAULT_JOIN_KEY):
        self.key = key
        self._tables: dict[str, dict[str, Mapping[str, Any]]] = {
            kind: {} for kind, _, _ in key.attempts()
        }
        self.size = 0
        for record in reference:
            self.size += 1
            for kind, candidates, normalizer in key.attempts():
                value = resolve(record, candidates)
                if is_empty(value):
                    continue
                self._tables[kind].setdefault(normalizer(value), record)

        logger.debug(
            "Built reference index over %d records (%s)",
            self.size,
            ", ".join(f"{kind}={len(table)}" for kind, table in self._tables.items()),
        )

    def match(self, target: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """Return the matching reference record, or None."""
        for kind, candidates, normalizer in self.key.attempts():
            value = resolve(target, candidates)
            if is_empty(value):
                continue
            hit = self._tables[kind].get(normalizer(value))
            if hit is not None:
                return hit
        return None


def match(
    target: Mapping[str, Any],
    reference: Iterable[Mapping[str, Any]] | ReferenceIndex,
    key: JoinKey = DEFAULT_JOIN_KEY,
) -> Mapping[str, Any] | None:
    """Match one target record against a reference set (or a prebuilt index)."""
    index = reference if isinstance(reference, ReferenceIndex) else ReferenceIndex(reference, key)
    return index.match(target)


def extract_value(
    record: Mapping[str, Any] | None,
    candidates: Sequence[str],
    markers: Sequence[str] = (),
) -> float:
    """Resolve a numeric field, falling back to any key containing a marker.

    Returns the resolved value when it is strictly positive; otherwise the
    first strictly positive number under a key containing one of ``markers``
    (record order); otherwise 0.0.
    """
    if not record:
        return 0.0

    value = parse_number(resolve(record, candidates))
    if value > 0:
        return value

    wanted = [normalize_key(marker) for marker in markers if normalize_key(marker)]
    if not wanted:
        return 0.0
    for key, raw in record.items():
        norm = normalize_key(key)
        if any(marker in norm for marker in wanted):
            number = parse_number(raw)
            if number > 0:
                return number
    return 0.0


@dataclass
class DefectAmountRollup:
    """Monetary defect rollup with join coverage counters."""

    total_defect: float = 0.0
    defect_amount: float = 0.0
    matched: int = 0
    unmatched: int = 0
    unmatched_items: list[str] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return self.matched + self.unmatched


def rollup_defect_amount(
    records: Iterable[Mapping[str, Any]],
    reference: Iterable[Mapping[str, Any]] | ReferenceIndex,
    key: JoinKey = DEFAULT_JOIN_KEY,
) -> DefectAmountRollup:
    """Sum defect quantity and defect amount (quantity x unit price).

    Every record counts toward ``total_defect``. Records with no price-list
    counterpart add 0 to ``defect_amount`` and increment ``unmatched``.
    """
    index = reference if isinstance(reference, ReferenceIndex) else ReferenceIndex(reference, key)
    rollup = DefectAmountRollup()

    for record in records:
        defect = parse_number(resolve(record, FIELD_CANDIDATES["defect_qty"]))
        rollup.total_defect += defect

        counterpart = index.match(record)
        if counterpart is None:
            rollup.unmatched += 1
            item = resolve(record, key.code) or resolve(record, key.name)
            if not is_empty(item) and str(item) not in rollup.unmatched_items:
                rollup.unmatched_items.append(str(item))
            continue

        rollup.matched += 1
        price = extract_value(counterpart, FIELD_CANDIDATES["unit_price"], PRICE_MARKERS)
        rollup.defect_amount += defect * price

    if rollup.unmatched:
        logger.warning(
            "%d of %d records had no price-list match; their defect amount counts as 0",
            rollup.unmatched, rollup.record_count,
        )
    return rollup
