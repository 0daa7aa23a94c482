"""
Dispersion-based outlier detection.

Two independent methods over the same sample:
1. Z-score - distance from the mean in sample standard deviations (n-1)
2. IQR - Tukey fences around the quartiles (mild 1.5x, extreme 3x)

Both need at least 30 amounts; below that the detectors return None.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from ..config import IQRClass, Severity, Thresholds
from ..data_loader import Sample, SampleItem


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class ZScoreItem:
    item: SampleItem
    z_score: float
    is_outlier: bool


@dataclass(frozen=True)
class ZScoreResult:
    sample_size: int
    mean: float
    std: float
    threshold: float
    items: Tuple[ZScoreItem, ...]

    @property
    def outliers(self) -> Tuple[ZScoreItem, ...]:
        return tuple(i for i in self.items if i.is_outlier)

    @property
    def max_abs_z(self) -> float:
        return max((abs(i.z_score) for i in self.outliers), default=0.0)

    @property
    def is_reportable(self) -> bool:
        """Non-empty outlier set that is still a small minority of the sample."""
        count = len(self.outliers)
        return 0 < count < self.sample_size * Thresholds.ZSCORE_MAX_OUTLIER_SHARE

    @property
    def severity(self) -> Severity:
        max_z = self.max_abs_z
        if max_z > Thresholds.ZSCORE_HIGH:
            return Severity.HIGH
        if max_z > Thresholds.ZSCORE_MEDIUM:
            return Severity.MEDIUM
        return Severity.LOW


@dataclass(frozen=True)
class Quartiles:
    q1: float
    q2: float
    q3: float

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1


@dataclass(frozen=True)
class IQRItem:
    item: SampleItem
    classification: IQRClass


@dataclass(frozen=True)
class IQRResult:
    sample_size: int
    quartiles: Quartiles
    multiplier: float
    items: Tuple[IQRItem, ...]

    @property
    def extreme(self) -> Tuple[IQRItem, ...]:
        return tuple(i for i in self.items if i.classification is IQRClass.EXTREME)

    @property
    def mild(self) -> Tuple[IQRItem, ...]:
        return tuple(i for i in self.items if i.classification is IQRClass.MILD)


@dataclass(frozen=True)
class OutlierResult:
    """Both methods' per-item classifications for one sample."""
    zscore: ZScoreResult
    iqr: IQRResult

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "id": [z.item.id for z in self.zscore.items],
            "amount": [z.item.amount for z in self.zscore.items],
            "z_score": [z.z_score for z in self.zscore.items],
            "z_outlier": [z.is_outlier for z in self.zscore.items],
            "iqr_class": [i.classification.value for i in self.iqr.items],
        })


# =============================================================================
# Statistical Helpers
# =============================================================================

def _median(sorted_values: np.ndarray) -> float:
    n = len(sorted_values)
    if n == 0:
        return 0.0
    mid = n // 2
    if n % 2:
        return float(sorted_values[mid])
    return float((sorted_values[mid - 1] + sorted_values[mid]) / 2)


def quartiles(values) -> Quartiles:
    """
    Quartiles by the median-of-halves method.

    The lower half is sorted[0:floor(n/2)], the upper half sorted[ceil(n/2):n];
    the middle element of an odd-sized sample belongs to neither.
    """
    ordered = np.sort(np.asarray(values, dtype=float))
    n = len(ordered)
    lower = ordered[: n // 2]
    upper = ordered[(n + 1) // 2:]
    return Quartiles(q1=_median(lower), q2=_median(ordered), q3=_median(upper))


def classify_iqr(value: float, q: Quartiles, multiplier: float = Thresholds.IQR_MULTIPLIER) -> IQRClass:
    iqr = q.iqr
    extreme = Thresholds.IQR_EXTREME_MULTIPLIER
    if value < q.q1 - extreme * iqr or value > q.q3 + extreme * iqr:
        return IQRClass.EXTREME
    if value < q.q1 - multiplier * iqr or value > q.q3 + multiplier * iqr:
        return IQRClass.MILD
    return IQRClass.NONE


# =============================================================================
# Detectors
# =============================================================================

def zscore_outliers(
    sample: Sample,
    threshold: float = Thresholds.ZSCORE,
    min_samples: int = Thresholds.MIN_OUTLIER,
) -> Optional[ZScoreResult]:
    """
    Flag amounts with |z| > threshold.

    Returns None for samples smaller than `min_samples`. A zero standard
    deviation yields z = 0 for every item.
    """
    n = len(sample)
    if n < min_samples:
        return None

    amounts = sample.amounts
    # fsum is exactly rounded, so the statistics do not depend on item order
    mean = math.fsum(amounts) / n
    std = math.sqrt(math.fsum((amounts - mean) ** 2) / (n - 1)) if n > 1 else 0.0

    if std == 0:
        z_scores = np.zeros(n)
    else:
        z_scores = (amounts - mean) / std

    items = tuple(
        ZScoreItem(item=item, z_score=float(z), is_outlier=bool(abs(z) > threshold))
        for item, z in zip(sample.items, z_scores)
    )
    return ZScoreResult(sample_size=n, mean=mean, std=std, threshold=threshold, items=items)


def iqr_outliers(
    sample: Sample,
    multiplier: float = Thresholds.IQR_MULTIPLIER,
    min_samples: int = Thresholds.MIN_OUTLIER,
) -> Optional[IQRResult]:
    """Classify every amount as none, mild or extreme. None below `min_samples`."""
    n = len(sample)
    if n < min_samples:
        return None

    q = quartiles(sample.amounts)
    items = tuple(
        IQRItem(item=item, classification=classify_iqr(item.amount, q, multiplier))
        for item in sample.items
    )
    return IQRResult(sample_size=n, quartiles=q, multiplier=multiplier, items=items)


def detect_outliers(
    sample: Sample,
    zscore_threshold: float = Thresholds.ZSCORE,
    iqr_multiplier: float = Thresholds.IQR_MULTIPLIER,
    min_samples: int = Thresholds.MIN_OUTLIER,
) -> Optional[OutlierResult]:
    """Run both methods. None when the sample is too small."""
    zscore = zscore_outliers(sample, zscore_threshold, min_samples)
    iqr = iqr_outliers(sample, iqr_multiplier, min_samples)
    if zscore is None or iqr is None:
        return None
    return OutlierResult(zscore=zscore, iqr=iqr)


def score_outlier_density(outlier_count: int, total_count: int) -> float:
    """0-100 score for the share of outliers (about 0.3% expected at 3 sigma)."""
    if total_count == 0:
        return 0.0
    ratio = outlier_count / total_count
    if ratio > 0.10:
        return 90.0
    if ratio > 0.05:
        return 75.0
    if ratio > 0.02:
        return 55.0
    if ratio > 0.01:
        return 35.0
    return 15.0
