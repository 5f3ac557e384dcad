"""
Composite metric computation. Pure functions with no side effects.

Provides guarded ratios, time-availability observations, per-group OEE
(availability x performance x quality) and the production-weighted rollup
of group metrics into a plant-level figure.

Policies
--------
- A group with no usable availability observation is assumed fully
  available (DEFAULT_TIME_AVAILABILITY) and flagged ``availability_measured``
  False.
- Performance rate is the PERFORMANCE_RATE constant; the exports carry no
  rated-speed data.
- Every ratio with a zero denominator is 0.
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from .config import DEFAULT_TIME_AVAILABILITY, FIELD_CANDIDATES, PERFORMANCE_RATE
from .loaders.utils import normalise_percentage, parse_number, safe_float
from .resolver import resolve

logger = logging.getLogger(__name__)


def safe_ratio(numerator: float, denominator: float, scale: float = 100.0) -> float:
    """Return numerator / denominator * scale, or 0.0 when undefined."""
    if not denominator:
        return 0.0
    result = numerator / denominator * scale
    if not math.isfinite(result):
        return 0.0
    return result


def defect_rate(defect: float, production: float) -> float:
    """Defect quantity as a percentage of production."""
    return safe_ratio(defect, production)


def ct_excess_rate(actual: float, target: float) -> float:
    """How far actual cycle time exceeds target, in percent of target."""
    return safe_ratio(actual - target, target)


def ct_efficiency(standard: float, actual: float) -> float:
    """Standard cycle time over actual cycle time, in percent."""
    return safe_ratio(standard, actual)


def uph(production: float, minutes: float) -> float:
    """Units per hour of work time."""
    return safe_ratio(production, minutes, scale=60.0)


# ---------------------------------------------------------------------------
# Production totals
# ---------------------------------------------------------------------------

@dataclass
class ProductionTotals:
    """Summed quantities for one group of production records."""

    production: float = 0.0
    good: float = 0.0
    defect: float = 0.0
    scrap: float = 0.0
    work_minutes: float = 0.0
    defect_amount: float = 0.0
    records: int = 0

    def add_record(self, record: Mapping[str, Any]) -> None:
        self.production += parse_number(resolve(record, FIELD_CANDIDATES["production_qty"]))
        self.good += parse_number(resolve(record, FIELD_CANDIDATES["good_qty"]))
        self.defect += parse_number(resolve(record, FIELD_CANDIDATES["defect_qty"]))
        self.scrap += parse_number(resolve(record, FIELD_CANDIDATES["scrap_qty"]))
        self.work_minutes += parse_number(resolve(record, FIELD_CANDIDATES["work_minutes"]))
        self.records += 1

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "ProductionTotals":
        totals = cls()
        for record in records:
            totals.add_record(record)
        return totals


# ---------------------------------------------------------------------------
# Time availability
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AvailabilitySample:
    """One availability observation (typically one equipment-day)."""

    rate: float | None = None
    operating_minutes: float | None = None
    scheduled_minutes: float | None = None
    downtime_minutes: float | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "AvailabilitySample":
        return cls(
            rate=safe_float(resolve(record, FIELD_CANDIDATES["time_availability"])),
            operating_minutes=safe_float(resolve(record, FIELD_CANDIDATES["operating_minutes"])),
            scheduled_minutes=safe_float(resolve(record, FIELD_CANDIDATES["scheduled_minutes"])),
            downtime_minutes=safe_float(resolve(record, FIELD_CANDIDATES["downtime_minutes"])),
        )

    def availability(self) -> float | None:
        """Time availability (%) from the best source this sample offers.

        Order: reported percentage in (0, 100] (0-1 fractions are scaled),
        operating / scheduled minutes, operating / (operating + downtime).
        Derived values are clamped to 100.
        """
        rate = normalise_percentage(self.rate, assume_decimal=True)
        if rate is not None and 0 < rate <= 100:
            return rate

        operating = self.operating_minutes
        if operating is None or operating < 0:
            return None
        if self.scheduled_minutes and self.scheduled_minutes > 0:
            return min(safe_ratio(operating, self.scheduled_minutes), 100.0)

        downtime = self.downtime_minutes or 0.0
        if downtime >= 0 and operating + downtime > 0:
            return min(safe_ratio(operating, operating + downtime), 100.0)
        return None

    @property
    def weight(self) -> float:
        if self.scheduled_minutes and self.scheduled_minutes > 0:
            return self.scheduled_minutes
        return 1.0


def combine_availability(samples: Iterable[AvailabilitySample]) -> float | None:
    """Weighted mean availability of usable samples (weight: scheduled minutes, else 1)."""
    weighted = 0.0
    total_weight = 0.0
    for sample in samples:
        value = sample.availability()
        if value is None:
            continue
        weighted += value * sample.weight
        total_weight += sample.weight
    if total_weight == 0:
        return None
    return weighted / total_weight


# ---------------------------------------------------------------------------
# Group metric
# ---------------------------------------------------------------------------

@dataclass
class GroupMetric:
    production: float = 0.0
    good: float = 0.0
    defect: float = 0.0
    defect_amount: float = 0.0
    time_availability: float = DEFAULT_TIME_AVAILABILITY
    performance_rate: float = PERFORMANCE_RATE
    quality_rate: float = 0.0
    oee: float = 0.0
    availability_measured: bool = False

    @property
    def defect_rate(self) -> float:
        return defect_rate(self.defect, self.production)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["defect_rate"] = self.defect_rate
        return data


def compute_oee(time_availability: float, performance_rate: float, quality_rate: float) -> float:
    """OEE (%) from three percentages."""
    return time_availability * performance_rate * quality_rate / 10000


def compute_group_metric(
    totals: ProductionTotals,
    samples: Iterable[AvailabilitySample] | None = None,
) -> GroupMetric:
    """Combine production totals and optional availability samples.

    Parameters
    ----------
    totals : Summed production quantities for the group.
    samples : Availability observations for the group, if an availability
        export covers it.

    Returns
    -------
    GroupMetric. Time availability defaults to 100 when unmeasured.
    """
    measured = combine_availability(samples or ())
    availability = DEFAULT_TIME_AVAILABILITY if measured is None else measured
    quality = safe_ratio(totals.good, totals.production)

    return GroupMetric(
        production=totals.production,
        good=totals.good,
        defect=totals.defect,
        defect_amount=totals.defect_amount,
        time_availability=availability,
        performance_rate=PERFORMANCE_RATE,
        quality_rate=quality,
        oee=compute_oee(availability, PERFORMANCE_RATE, quality),
        availability_measured=measured is not None,
    )


def rollup_metrics(metrics: Iterable[GroupMetric]) -> GroupMetric:
    """Combine group metrics into one overall figure.

    Time availability is a production-weighted mean of the groups, so a
    low-volume group cannot skew the headline. When no group produced
    anything the plain mean is used; with no groups the default applies.
    """
    metrics = list(metrics)
    if not metrics:
        logger.warning("No group metrics to roll up; returning defaults")
        return GroupMetric()

    production = sum(m.production for m in metrics)
    good = sum(m.good for m in metrics)

    weighted = sum(m.time_availability * m.production for m in metrics if m.production > 0)
    weight = sum(m.production for m in metrics if m.production > 0)
    if weight > 0:
        availability = weighted / weight
    else:
        availability = sum(m.time_availability for m in metrics) / len(metrics)

    quality = safe_ratio(good, production)
    return GroupMetric(
        production=production,
        good=good,
        defect=sum(m.defect for m in metrics),
        defect_amount=sum(m.defect_amount for m in metrics),
        time_availability=availability,
        performance_rate=PERFORMANCE_RATE,
        quality_rate=quality,
        oee=compute_oee(availability, PERFORMANCE_RATE, quality),
        availability_measured=any(m.availability_measured for m in metrics),
    )
