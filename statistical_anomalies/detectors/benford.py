"""
Benford's Law (digit-law) analysis.

Compares the observed leading or second digit distribution of a sample with
the theoretical logarithmic distribution:
1. Chi-square goodness of fit, bucketed against fixed critical values
2. Mean Absolute Deviation (MAD) with conformity grading
3. Per-digit z-scores using the binomial proportion standard error

Only amounts with magnitude >= 10 are tested. Callers gate on sample size
(100+ recommended); smaller samples are still computed.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd
from scipy import stats

from ..config import (
    BENFORD_MIN_MAGNITUDE,
    CHI2_CRITICAL,
    DEGREES_OF_FREEDOM,
    EXPECTED_PROPORTIONS,
    P_VALUE_RANGES,
    Conformity,
    DigitPosition,
    Thresholds,
)
from ..data_loader import Sample, SampleItem, from_amounts
from .digits import extract_digit


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class DigitStat:
    """Observed vs expected frequency of one digit. Percentages are 0-100."""
    digit: int
    observed_count: int
    expected_count: float
    observed_pct: float
    expected_pct: float
    deviation: float
    z_score: float

    @property
    def is_anomalous(self) -> bool:
        return abs(self.z_score) > Thresholds.DIGIT_Z_ANOMALY

    @property
    def direction(self) -> str:
        return "over-represented" if self.deviation > 0 else "under-represented"


@dataclass(frozen=True)
class GoodnessOfFitResult:
    """
    Digit distribution test result.

    For an empty sample the statistic fields (chi_square, p_value,
    p_value_range, mad, conformity) are None and digit_analysis is empty.
    """
    position: DigitPosition
    sample_size: int
    observed: Mapping[int, int]
    expected: Mapping[int, float]
    degrees_of_freedom: int
    chi_square: Optional[float] = None
    p_value: Optional[float] = None
    p_value_range: Optional[str] = None
    mad: Optional[float] = None
    conformity: Optional[Conformity] = None
    digit_analysis: Tuple[DigitStat, ...] = ()
    items_by_digit: Mapping[int, Tuple[SampleItem, ...]] = field(
        default_factory=dict, compare=False, repr=False
    )

    @property
    def is_computed(self) -> bool:
        return self.sample_size > 0

    @property
    def anomalous_digits(self) -> Tuple[DigitStat, ...]:
        return tuple(d for d in self.digit_analysis if d.is_anomalous)

    @property
    def critical_value(self) -> float:
        """Critical value at alpha 0.05."""
        return CHI2_CRITICAL[self.position][0]

    def to_frame(self) -> pd.DataFrame:
        """Per-digit table."""
        return pd.DataFrame(
            [vars(d) for d in self.digit_analysis],
            columns=["digit", "observed_count", "expected_count", "observed_pct",
                     "expected_pct", "deviation", "z_score"],
        )


# =============================================================================
# Statistics
# =============================================================================

def chi_square_statistic(observed: Mapping[int, int], expected: Mapping[int, float]) -> float:
    """Sum over categories of (observed - expected)^2 / expected."""
    chi_sq = 0.0
    for digit, exp in expected.items():
        if exp > 0:
            diff = observed.get(digit, 0) - exp
            chi_sq += diff * diff / exp
    return chi_sq


def p_value_range(chi_square: float, position: DigitPosition = DigitPosition.FIRST) -> str:
    """Bucket a chi-square statistic against the fixed critical values."""
    for critical, label in zip(CHI2_CRITICAL[position], P_VALUE_RANGES):
        if chi_square < critical:
            return label
    return P_VALUE_RANGES[-1]


def classify_conformity(mad: float) -> Conformity:
    if mad <= Thresholds.MAD_ACCEPTABLE:
        return Conformity.ACCEPTABLE
    if mad <= Thresholds.MAD_MARGINAL:
        return Conformity.MARGINAL
    return Conformity.NONCONFORMING


def mean_absolute_deviation(
    observed: Mapping[int, int],
    proportions: Mapping[int, float],
    total: int,
) -> float:
    """Average over digits of |observed proportion - expected proportion|."""
    return sum(
        abs(observed.get(digit, 0) / total - exp)
        for digit, exp in proportions.items()
    ) / len(proportions)


def _digit_stats(
    observed: Mapping[int, int],
    expected: Mapping[int, float],
    proportions: Mapping[int, float],
    total: int,
) -> Tuple[DigitStat, ...]:
    result = []
    for digit, exp_pct in proportions.items():
        obs_pct = observed[digit] / total
        deviation = obs_pct - exp_pct
        se = math.sqrt(exp_pct * (1 - exp_pct) / total)
        result.append(DigitStat(
            digit=digit,
            observed_count=observed[digit],
            expected_count=expected[digit],
            observed_pct=obs_pct * 100,
            expected_pct=exp_pct * 100,
            deviation=deviation * 100,
            z_score=deviation / se if se > 0 else 0.0,
        ))
    return tuple(result)


# =============================================================================
# Analysis
# =============================================================================

def analyze_benford(
    data: Union[Sample, Iterable[float]],
    position: Union[DigitPosition, str] = DigitPosition.FIRST,
) -> GoodnessOfFitResult:
    """
    Test a sample's first or second digit distribution against Benford's Law.

    Args:
        data: Sample (or bare amounts) to test
        position: "first" (df=8) or "second" (df=9)

    Returns:
        GoodnessOfFitResult; sample_size=0 with no statistics when no amount
        qualifies.
    """
    position = DigitPosition(position)
    sample = data if isinstance(data, Sample) else from_amounts(data)
    proportions = EXPECTED_PROPORTIONS[position]

    grouped: Dict[int, List[SampleItem]] = defaultdict(list)
    for item in sample:
        if abs(item.amount) < BENFORD_MIN_MAGNITUDE:
            continue
        digit = extract_digit(item.amount, position.value)
        if digit is not None and digit in proportions:
            grouped[digit].append(item)

    total = sum(len(members) for members in grouped.values())
    observed = {digit: len(grouped.get(digit, ())) for digit in proportions}
    expected = {digit: exp * total for digit, exp in proportions.items()}

    if total == 0:
        return GoodnessOfFitResult(
            position=position,
            sample_size=0,
            observed=observed,
            expected=expected,
            degrees_of_freedom=DEGREES_OF_FREEDOM[position],
        )

    chi_sq = chi_square_statistic(observed, expected)
    mad = mean_absolute_deviation(observed, proportions, total)
    df = DEGREES_OF_FREEDOM[position]

    return GoodnessOfFitResult(
        position=position,
        sample_size=total,
        observed=observed,
        expected=expected,
        degrees_of_freedom=df,
        chi_square=chi_sq,
        p_value=float(stats.chi2.sf(chi_sq, df=df)),
        p_value_range=p_value_range(chi_sq, position),
        mad=mad,
        conformity=classify_conformity(mad),
        digit_analysis=_digit_stats(observed, expected, proportions, total),
        items_by_digit={digit: tuple(members) for digit, members in grouped.items()},
    )


def analyze_second_digit(data: Union[Sample, Iterable[float]]) -> GoodnessOfFitResult:
    return analyze_benford(data, DigitPosition.SECOND)


SEGMENT_KEYS = ("vendor", "account", "month")


def _segment_key(item: SampleItem, segment_by: str) -> str:
    if segment_by == "vendor":
        return item.vendor or "unknown"
    if segment_by == "account":
        return item.account or "unknown"
    return item.date[:7] if item.date else "unknown"


def analyze_by_segment(
    sample: Sample,
    segment_by: str,
    min_samples: int = Thresholds.MIN_BENFORD,
    position: Union[DigitPosition, str] = DigitPosition.FIRST,
) -> Dict[str, GoodnessOfFitResult]:
    """
    Run the digit test separately per vendor, account or month (YYYY-MM).

    Segments holding fewer than `min_samples` amounts are skipped.
    """
    if segment_by not in SEGMENT_KEYS:
        raise ValueError(f"segment_by must be one of {SEGMENT_KEYS}, got {segment_by!r}")

    segments: Dict[str, List[SampleItem]] = defaultdict(list)
    for item in sample:
        segments[_segment_key(item, segment_by)].append(item)

    return {
        key: analyze_benford(Sample(items=tuple(items), source=f"{sample.source}:{key}"), position)
        for key, items in sorted(segments.items())
        if len(items) >= min_samples
    }


def score_benford_deviation(chi_square: float, critical_value: float, mad: float) -> float:
    """
    0-100 deviation score from the chi-square ratio to its critical value,
    raised for large MAD.
    """
    if chi_square > critical_value * 2:
        score = 90
    elif chi_square > critical_value * 1.5:
        score = 75
    elif chi_square > critical_value:
        score = 60
    elif chi_square > critical_value * 0.75:
        score = 40
    else:
        score = 20

    if mad > 0.022:
        score = min(100, score + 15)
    elif mad > 0.015:
        score = min(100, score + 8)

    return float(score)

