"""
Record and configuration stores.

Datasets are replaced wholesale on upload, or merged by month: rows of the
uploaded months are removed, then the new rows appended. Nothing derived
(pivots, metrics, issues) is ever stored.

The configuration store is a small JSON key-value file holding the active
threshold profile and the pivot selection. A missing or malformed entry
falls back to the defaults; the engine never sees a broken configuration.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from .config import CONFIG_STORE_FILE, DEFAULT_PRESET, FIELD_CANDIDATES, RECORD_STORE_DIR
from .issues import ThresholdProfile, get_profile
from .loaders.utils import extract_month
from .pivot import PivotSpec
from .resolver import resolve

logger = logging.getLogger(__name__)

PROFILE_KEY = "threshold_profile"
PIVOT_KEY = "pivot_spec"


def _merge(existing: list[dict], records: Iterable[Mapping[str, Any]], months: Iterable[int]):
    months = set(months)
    kept = [
        record for record in existing
        if extract_month(resolve(record, FIELD_CANDIDATES["date"])) not in months
    ]
    removed = len(existing) - len(kept)
    merged = kept + [dict(record) for record in records]
    return merged, removed


# ---------------------------------------------------------------------------
# Record stores
# ---------------------------------------------------------------------------

class InMemoryRecordStore:
    """Dataset name -> list of records, held in process memory."""

    def __init__(self):
        self._data: dict[str, list[dict]] = {}

    def get_all(self, name: str) -> list[dict]:
        return [dict(record) for record in self._data.get(name, [])]

    def replace_all(self, name: str, records: Iterable[Mapping[str, Any]]) -> int:
        self._data[name] = [dict(record) for record in records]
        logger.info("Replaced dataset '%s' with %d records", name, len(self._data[name]))
        return len(self._data[name])

    def merge_months(self, name: str, records: Iterable[Mapping[str, Any]], months: Iterable[int]) -> int:
        """Replace the rows of ``months`` and keep every other row."""
        merged, removed = _merge(self._data.get(name, []), records, months)
        self._data[name] = merged
        logger.info(
            "Merged dataset '%s': removed %d rows of the uploaded months, now %d records",
            name, removed, len(merged),
        )
        return len(merged)

    def names(self) -> list[str]:
        return sorted(self._data)


class JsonRecordStore(InMemoryRecordStore):
    """Record store persisted as one JSON file per dataset."""

    def __init__(self, directory: Path | str = RECORD_STORE_DIR):
        super().__init__()
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def get_all(self, name: str) -> list[dict]:
        path = self._path(name)
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.exception("Failed to read dataset file %s", path)
            raise
        return [dict(record) for record in records]

    def _write(self, name: str, records: list[dict]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(name)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False, default=str)
        tmp.replace(path)

    def replace_all(self, name: str, records: Iterable[Mapping[str, Any]]) -> int:
        records = [dict(record) for record in records]
        self._write(name, records)
        logger.info("Replaced dataset '%s' with %d records", name, len(records))
        return len(records)

    def merge_months(self, name: str, records: Iterable[Mapping[str, Any]], months: Iterable[int]) -> int:
        merged, removed = _merge(self.get_all(name), records, months)
        self._write(name, merged)
        logger.info(
            "Merged dataset '%s': removed %d rows of the uploaded months, now %d records",
            name, removed, len(merged),
        )
        return len(merged)

    def names(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(path.stem for path in self.directory.glob("*.json"))


# ---------------------------------------------------------------------------
# Configuration store
# ---------------------------------------------------------------------------

class ConfigStore:
    """JSON key-value file for the threshold profile and pivot selection."""

    def __init__(self, path: Path | str = CONFIG_STORE_FILE):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable settings file %s (%s); using defaults", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Settings file %s is not a JSON object; using defaults", self.path)
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def load_profile(self) -> ThresholdProfile:
        raw = self.get(PROFILE_KEY)
        if raw is None:
            return get_profile(DEFAULT_PRESET)
        try:
            return ThresholdProfile.from_dict(raw)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Stored threshold profile is invalid (%s); using '%s'", exc, DEFAULT_PRESET)
            return get_profile(DEFAULT_PRESET)

    def save_profile(self, profile: ThresholdProfile) -> None:
        self.set(PROFILE_KEY, profile.to_dict())

    def update_profile(self, profile: ThresholdProfile) -> bool:
        """Save ``profile`` only if it differs from the stored one; True when written."""
        if profile == self.load_profile():
            return False
        self.save_profile(profile)
        logger.info("Saved threshold profile '%s'", profile.name)
        return True

    def load_pivot_spec(self) -> PivotSpec:
        raw = self.get(PIVOT_KEY)
        if raw is None:
            return PivotSpec.default()
        try:
            return PivotSpec.from_dict(raw)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Stored pivot selection is invalid (%s); using the default", exc)
            return PivotSpec.default()

    def save_pivot_spec(self, spec: PivotSpec) -> None:
        self.set(PIVOT_KEY, spec.to_dict())

    def update_pivot_spec(self, spec: PivotSpec) -> bool:
        """Save ``spec`` only if it differs from the stored one; True when written."""
        if spec == self.load_pivot_spec():
            return False
        self.save_pivot_spec(spec)
        return True
