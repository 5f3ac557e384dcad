"""
Field resolution across exports with inconsistent column naming.

Every logical field lookup goes through ``resolve`` so that a renamed or
re-spaced column in a new upload degrades to a fuzzy match instead of a
missing value. Resolution order:

1. exact key match, candidates in priority order;
2. normalised match (trimmed, lower-cased, whitespace removed), candidates in
   priority order; for each candidate an equal key beats a key that merely
   contains, or is contained by, the candidate;
3. absent.

When step 2 finds several keys for the winning candidate the first key in
record order wins; ``audit_fields`` reports such columns once per dataset.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Resolution:
    """Outcome of a field lookup: the value, the key it came from, rivals."""

    value: Any = None
    key: str | None = None
    ambiguous: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.key is not None


def normalize_key(name: Any) -> str:
    """Trim, lower-case and strip all whitespace from a column name."""
    return _WHITESPACE.sub("", str(name).strip().lower())


def is_empty(value: Any) -> bool:
    """True for None, NaN and blank strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _fuzzy_keys(keys: Sequence[tuple[str, str]], wanted: str) -> tuple[list[str], list[str]]:
    """Split keys into those equal to and those overlapping ``wanted``."""
    equal, overlap = [], []
    for key, norm in keys:
        if norm == wanted:
            equal.append(key)
        elif wanted in norm or norm in wanted:
            overlap.append(key)
    return equal, overlap


def _resolve_keys(
    keys: Sequence[str],
    candidates: Sequence[str],
) -> tuple[str | None, tuple[str, ...]]:
    """Core strategy shared by record and column resolution.

    ``keys`` must already be filtered to usable (non-empty) entries.
    Returns (winning key, competing keys) where competing keys is non-empty
    only for an ambiguous fuzzy match.
    """
    key_set = set(keys)
    for candidate in candidates:
        if candidate in key_set:
            return candidate, ()

    normalized = [(key, normalize_key(key)) for key in keys]
    normalized = [(key, norm) for key, norm in normalized if norm]

    for candidate in candidates:
        wanted = normalize_key(candidate)
        if not wanted:
            continue
        equal, overlap = _fuzzy_keys(normalized, wanted)
        if equal:
            return equal[0], tuple(equal) if len(equal) > 1 else ()
        if overlap:
            return overlap[0], tuple(overlap) if len(overlap) > 1 else ()
    return None, ()


def resolve_field(record: Mapping[str, Any], candidates: Sequence[str]) -> Resolution:
    """Resolve a logical field in one record, reporting which key won."""
    if not record or not candidates:
        return Resolution()

    usable = [str(key) for key, value in record.items() if not is_empty(value)]
    key, ambiguous = _resolve_keys(usable, candidates)
    if key is None:
        return Resolution()

    if ambiguous:
        logger.debug(
            "Ambiguous resolution for %s: picked %r among %s",
            candidates[0], key, ambiguous,
        )
    return Resolution(value=record[key], key=key, ambiguous=ambiguous)


def resolve(
    record: Mapping[str, Any],
    candidates: Sequence[str],
    default: Any = None,
) -> Any:
    """Return the value of the first matching candidate field, or ``default``."""
    resolution = resolve_field(record, candidates)
    return resolution.value if resolution.found else default


def resolve_column(columns: Iterable[Any], candidates: Sequence[str]) -> str | None:
    """Pick the column name a logical field lives under in a table header."""
    keys = [str(col) for col in columns if not is_empty(col)]
    key, _ = _resolve_keys(keys, candidates)
    return key


def audit_fields(
    records: Sequence[Mapping[str, Any]],
    fields: Mapping[str, Sequence[str]],
) -> list[str]:
    """Flag logical fields whose fuzzy resolution is ambiguous in a dataset.

    Parameters
    ----------
    records : Records of one dataset.
    fields : Mapping of logical field name -> candidate list.

    Returns
    -------
    One human-readable message per ambiguous field. Each is also logged at
    WARNING level. An empty list means every field resolved unambiguously
    (or not at all).
    """
    warnings: list[str] = []
    if not records:
        return warnings

    seen_headers: set[tuple[str, ...]] = set()
    flagged: set[str] = set()
    for record in records:
        header = tuple(str(key) for key in record)
        if header in seen_headers:
            continue
        seen_headers.add(header)

        for field, candidates in fields.items():
            if field in flagged:
                continue
            key, ambiguous = _resolve_keys(list(header), candidates)
            if key is not None and ambiguous:
                flagged.add(field)
                message = (
                    f"Field '{field}' matched several columns {list(ambiguous)}; "
                    f"using '{key}' by candidate priority."
                )
                logger.warning(message)
                warnings.append(message)

    return warnings
