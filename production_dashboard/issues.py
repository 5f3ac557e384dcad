"""
Key-issue detection: compare per-group metrics against a threshold profile.

Two kinds of issue are produced:

- threshold issues: a group's metric is on the wrong side of its boundary
  (below for availability, above for defect rate and cycle-time excess);
  ``diff = |value - threshold|`` drives the severity tier;
- rank issues: the top-K subjects by magnitude (material defects,
  packaging defects), emitted whenever data exists.

Profiles are plain values. Switching presets only changes which profile is
passed in; the group metrics are not recomputed.
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Mapping

from .config import (
    DEFAULT_PRESET,
    SEVERITY_CRITICAL_DIFF,
    SEVERITY_WARNING_DIFF,
    THRESHOLD_PRESETS,
)

logger = logging.getLogger(__name__)

CRITICAL = "critical"
WARNING = "warning"
CAUTION = "caution"
SEVERITIES = (CRITICAL, WARNING, CAUTION)

BELOW = "below"
ABOVE = "above"

GroupKey = tuple[str, str]


@dataclass(frozen=True)
class SeverityTiers:
    critical: float = SEVERITY_CRITICAL_DIFF
    warning: float = SEVERITY_WARNING_DIFF

    def classify(self, diff: float) -> str:
        if diff >= self.critical:
            return CRITICAL
        if diff >= self.warning:
            return WARNING
        return CAUTION


@dataclass(frozen=True)
class MetricRule:
    """One threshold check applied to every group that reports ``field``."""

    metric: str
    field: str
    direction: str
    threshold: float
    severity_weight: float = 1.0
    unit: str = "%"

    def violated(self, value: float) -> bool:
        if self.direction == BELOW:
            return value < self.threshold
        return value > self.threshold


@dataclass(frozen=True)
class ThresholdProfile:
    """Named set of thresholds; presets plus one user-edited custom profile."""

    name: str = DEFAULT_PRESET
    availability_threshold: float = 90.0
    ct_excess_threshold: float = 10.0
    defect_rate_threshold: float = 3.0
    material_defect_top: int = 3
    packaging_defect_top: int = 3
    tiers: SeverityTiers = field(default_factory=SeverityTiers)
    version: int = 1

    def rules(self) -> list[MetricRule]:
        return [
            MetricRule("시간가동율", "time_availability", BELOW, self.availability_threshold),
            MetricRule("CT 초과", "ct_excess_rate", ABOVE, self.ct_excess_threshold),
            # Defect rates sit in single digits; weight them so tiers stay meaningful
            MetricRule("불량률", "defect_rate", ABOVE, self.defect_rate_threshold, severity_weight=3.0),
        ]

    def customize(self, **overrides) -> "ThresholdProfile":
        """Return a ``custom`` profile with the given fields changed."""
        if "tiers" in overrides and isinstance(overrides["tiers"], Mapping):
            overrides["tiers"] = SeverityTiers(**overrides["tiers"])
        return replace(self, name="custom", **overrides)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ThresholdProfile":
        data = dict(data)
        tiers = data.pop("tiers", None) or {}
        known = {name for name in cls.__dataclass_fields__ if name != "tiers"}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown profile keys: %s", sorted(unknown))
        kwargs = {key: value for key, value in data.items() if key in known}
        for key in ("availability_threshold", "ct_excess_threshold", "defect_rate_threshold"):
            if key in kwargs:
                kwargs[key] = float(kwargs[key])
        for key in ("material_defect_top", "packaging_defect_top", "version"):
            if key in kwargs:
                kwargs[key] = int(kwargs[key])
        tiers = SeverityTiers(**{key: float(value) for key, value in dict(tiers).items()})
        return cls(tiers=tiers, **kwargs)


def get_profile(name: str = DEFAULT_PRESET) -> ThresholdProfile:
    """Return a preset profile by name (``strict``, ``normal``, ``loose``)."""
    if name not in THRESHOLD_PRESETS:
        raise KeyError(f"Unknown threshold preset '{name}'")
    return ThresholdProfile(name=name, **THRESHOLD_PRESETS[name])


PRESETS: dict[str, ThresholdProfile] = {name: get_profile(name) for name in THRESHOLD_PRESETS}


@dataclass
class Issue:
    id: str
    process: str
    subject: str
    metric: str
    current_value: float
    threshold: float
    diff: float
    severity: str
    detail: str = ""

    def as_dict(self) -> dict:
        return asdict(self)


def _threshold_detail(rule: MetricRule, value: float, diff: float) -> str:
    word = "미달" if rule.direction == BELOW else "초과"
    return f"기준 {rule.threshold:g}{rule.unit} 대비 {diff:.1f}%p {word} (현재 {value:.1f}{rule.unit})"


def detect_issues(
    group_stats: Mapping[GroupKey, Mapping[str, float | None]],
    profile: ThresholdProfile,
) -> list[Issue]:
    """Evaluate every group against every rule of the profile.

    Parameters
    ----------
    group_stats : Mapping of (process, subject) -> metric values, e.g.
        ``{("사출", "M-01"): {"time_availability": 82.0, "defect_rate": 1.2}}``.
        Metrics missing or None for a group are not evaluated.
    profile : Threshold profile.

    Returns
    -------
    Issues sorted by ``diff`` descending (ties by id).
    """
    issues: list[Issue] = []
    rules = profile.rules()

    for (process, subject), stats in group_stats.items():
        for rule in rules:
            value = stats.get(rule.field)
            if value is None or not rule.violated(value):
                continue
            diff = abs(value - rule.threshold)
            issues.append(Issue(
                id=f"{rule.field}-{process}-{subject}",
                process=process,
                subject=subject,
                metric=rule.metric,
                current_value=value,
                threshold=rule.threshold,
                diff=diff,
                severity=profile.tiers.classify(diff * rule.severity_weight),
                detail=_threshold_detail(rule, value, diff),
            ))

    issues.sort(key=lambda issue: (-issue.diff, issue.id))
    logger.info(
        "Detected %d threshold issues across %d groups (profile '%s')",
        len(issues), len(group_stats), profile.name,
    )
    return issues


def _rank_severity(rank: int) -> str:
    if rank == 0:
        return CRITICAL
    if rank == 1:
        return WARNING
    return CAUTION


def rank_issues(
    totals: Mapping[str, float],
    top_k: int,
    metric: str,
    process: str,
    details: Mapping[str, str] | Callable[[str, float], str] | None = None,
) -> list[Issue]:
    """Top-K subjects by magnitude; no threshold exemption.

    Subjects with a non-positive total are not ranked. Ties break by subject
    name so the output is stable.
    """
    ranked = sorted(
        ((subject, value) for subject, value in totals.items() if value > 0),
        key=lambda item: (-item[1], item[0]),
    )[:max(top_k, 0)]

    issues = []
    for rank, (subject, value) in enumerate(ranked):
        if callable(details):
            detail = details(subject, value)
        elif details:
            detail = details.get(subject, "")
        else:
            detail = ""
        issues.append(Issue(
            id=f"{metric}-{process}-{subject}",
            process=process,
            subject=subject,
            metric=metric,
            current_value=value,
            threshold=0.0,
            diff=value,
            severity=_rank_severity(rank),
            detail=detail,
        ))
    return issues


def count_by_severity(issues: list[Issue]) -> dict[str, int]:
    counts = {severity: 0 for severity in SEVERITIES}
    for issue in issues:
        counts[issue.severity] = counts.get(issue.severity, 0) + 1
    return counts
