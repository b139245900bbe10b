"""Lab metrics for a single A/B test.

Rules per test type:
- CTR:  metric "ctr", comparable variants B..E, slots A..E
- CR:   metric "cr",  comparable variant B only, slots A..B
- RICH: computed exactly like CTR (no metric field of its own)

Variant A is the control. Values are read from the variant document
(`doc[key][metric_key]`) and may be loosely formatted strings.

Thresholds are business rules, not statistical tests.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

from growthlab.models.domain import MetricKey, TestType
from growthlab.variants.normalize import VARIANT_KEYS

CONTROL_VARIANT = "A"

# Leader uplift at or above this ratio is a strong win
SIGNIFICANCE_UPLIFT = 0.15

# Goal 1 = control value * multiplier when the test sets none
DEFAULT_TARGET_MULTIPLIER = 1.2

PROGRESS_FLOOR = 0.0
PROGRESS_CEILING = 100.0

_TEST_TYPE_ALIASES: dict[str, TestType] = {
    "CTR": "CTR",
    "CRT": "CTR",
    "CR": "CR",
    "RICH": "RICH",
    "РИЧ": "RICH",
}

_NON_NUMERIC = re.compile(r"[^0-9.]")


@dataclass
class LeaderResult:
    """Best comparable variant versus the control.

    Attributes:
        leader_variant: Winning variant key, or None when nothing beats 0.
        leader_value: Leader's metric value (0 without a leader).
        leader_uplift: (leader - control) / control, 0 without a baseline.
        is_leader_significant: Uplift reached SIGNIFICANCE_UPLIFT.
        has_any_data: Control or leader has a positive value.
    """

    leader_variant: str | None
    leader_value: float
    leader_uplift: float
    is_leader_significant: bool
    has_any_data: bool


@dataclass
class LabCardMetrics:
    """Derived statistics for one test, as rendered on its lab card."""

    test_type: TestType
    metric_key: MetricKey
    control_value: float
    leader: LeaderResult
    goal1: float
    goal2: float
    goal1_progress: float
    goal2_progress: float
    prepared_variants: int


def classify_test_type(raw: Any) -> TestType:
    """Map a stored test type to CTR, CR or RICH.

    Case-insensitive; "CRT" is a known typo for CTR and the Cyrillic
    "РИЧ" means RICH. Anything else is CTR.
    """
    key = str(raw if raw is not None else "").strip().upper()
    return _TEST_TYPE_ALIASES.get(key, "CTR")


def parse_metric(value: Any) -> float:
    """Parse a loosely formatted metric value.

    Accepts numbers, "12,5" (comma decimal) and strings with stray
    characters such as "12.5%". Returns 0 for None, blank or unparsable
    input; never NaN or infinity.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = _NON_NUMERIC.sub("", str(value).replace(",", ".", 1))
    if not text:
        return 0.0
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def clamp(n: float, lo: float = PROGRESS_FLOOR, hi: float = PROGRESS_CEILING) -> float:
    return max(lo, min(hi, n))


def get_metric_key(test_type: Any) -> MetricKey:
    return "cr" if classify_test_type(test_type) == "CR" else "ctr"


def get_available_variants(test_type: Any) -> list[str]:
    """Variant slots a test of this type may fill."""
    if classify_test_type(test_type) == "CR":
        return ["A", "B"]
    return list(VARIANT_KEYS)


def get_comparable_variants(test_type: Any) -> list[str]:
    """Variants compared against the control A."""
    if classify_test_type(test_type) == "CR":
        return ["B"]
    return ["B", "C", "D", "E"]


def get_value(metrics: Any, variant: str, metric_key: str) -> float:
    """Read one variant's metric from a variant document."""
    if not isinstance(metrics, dict):
        return 0.0
    record = metrics.get(variant)
    if not isinstance(record, dict):
        return 0.0
    return parse_metric(record.get(metric_key))


def calc_goal1(val_a: float, target_multiplier: Any = None) -> float:
    """Goal 1: control value times the target multiplier.

    No baseline (control <= 0) means no goal. An unset or non-positive
    multiplier falls back to DEFAULT_TARGET_MULTIPLIER.
    """
    if val_a <= 0:
        return 0.0
    multiplier = parse_metric(target_multiplier)
    if multiplier <= 0:
        multiplier = DEFAULT_TARGET_MULTIPLIER
    return val_a * multiplier


def calc_goal2(benchmark: Any) -> float:
    """Goal 2: an externally set benchmark, compared as-is."""
    return parse_metric(benchmark)


def calc_progress(current: float, goal: float) -> float:
    """Percent of goal reached, clamped to [0, 100]."""
    if goal <= 0 or current <= 0:
        return 0.0
    return clamp(current / goal * 100)


def calc_uplift_ratio(val_a: float, val_x: float) -> float:
    """Relative improvement over control (0.15 = +15%)."""
    if val_a <= 0 or val_x <= 0:
        return 0.0
    return (val_x - val_a) / val_a


def pick_leader(metrics: Any, test_type: Any) -> LeaderResult:
    """Pick the best comparable variant.

    Scans the comparable set left to right and only replaces the leader
    on a strictly greater value, so ties go to the earliest key.
    """
    metric_key = get_metric_key(test_type)
    val_a = get_value(metrics, CONTROL_VARIANT, metric_key)

    leader_variant: str | None = None
    leader_value = 0.0
    for variant in get_comparable_variants(test_type):
        value = get_value(metrics, variant, metric_key)
        if value > leader_value:
            leader_value = value
            leader_variant = variant

    leader_uplift = calc_uplift_ratio(val_a, leader_value) if leader_variant else 0.0

    return LeaderResult(
        leader_variant=leader_variant,
        leader_value=leader_value,
        leader_uplift=leader_uplift,
        is_leader_significant=bool(leader_variant) and leader_uplift >= SIGNIFICANCE_UPLIFT,
        has_any_data=val_a > 0 or leader_value > 0,
    )


def count_prepared_variants(metrics: Any, test_type: Any) -> int:
    """Count comparable variants that already have a measured value."""
    metric_key = get_metric_key(test_type)
    return sum(
        1 for variant in get_comparable_variants(test_type)
        if get_value(metrics, variant, metric_key) > 0
    )


def compute_test_metrics(
    variants: Any,
    test_type: Any,
    target_multiplier: Any = None,
    benchmark: Any = None,
) -> LabCardMetrics:
    """Compute everything a lab card shows for one test.

    Args:
        variants: Variant document (normalized or raw dict).
        test_type: Stored test type, classified here.
        target_multiplier: Multiplier for goal 1.
        benchmark: Goal 2 benchmark value.

    Returns:
        LabCardMetrics with leader, goals and progress.
    """
    kind = classify_test_type(test_type)
    metric_key = get_metric_key(kind)
    val_a = get_value(variants, CONTROL_VARIANT, metric_key)
    leader = pick_leader(variants, kind)
    goal1 = calc_goal1(val_a, target_multiplier)
    goal2 = calc_goal2(benchmark)

    return LabCardMetrics(
        test_type=kind,
        metric_key=metric_key,
        control_value=val_a,
        leader=leader,
        goal1=goal1,
        goal2=goal2,
        goal1_progress=calc_progress(leader.leader_value, goal1),
        goal2_progress=calc_progress(leader.leader_value, goal2),
        prepared_variants=count_prepared_variants(variants, kind),
    )
