"""
Amount clustering and structuring detection.

1. Range clustering - share of amounts in fixed value bands
2. Structuring - amounts just below round reporting thresholds,
   [0.9 * threshold, threshold), compared to a 10% baseline

Requires at least 50 amounts.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from ..config import (
    AMOUNT_BANDS,
    CTR_THRESHOLD,
    STRUCTURING_THRESHOLDS,
    Severity,
    Thresholds,
)
from ..data_loader import Sample, SampleItem


@dataclass(frozen=True)
class AmountBand:
    low: float
    high: float
    count: int
    percentage: float
    total: float
    items: Tuple[SampleItem, ...]

    @property
    def label(self) -> str:
        high = "∞" if np.isinf(self.high) else f"${self.high:,.0f}"
        return f"${self.low:,.0f} - {high}"

    @property
    def is_concentrated(self) -> bool:
        return self.percentage > Thresholds.BAND_CONCENTRATION_PCT and self.count > Thresholds.BAND_MIN_COUNT


@dataclass(frozen=True)
class ThresholdBucket:
    threshold: int
    lower_bound: float
    count: int
    expected: float
    items: Tuple[SampleItem, ...]

    @property
    def is_suspicious(self) -> bool:
        return (
            self.count > self.expected * Thresholds.STRUCTURING_MULTIPLE
            and self.count >= Thresholds.STRUCTURING_MIN_COUNT
        )

    @property
    def severity(self) -> Severity:
        return Severity.HIGH if self.threshold == CTR_THRESHOLD else Severity.MEDIUM


@dataclass(frozen=True)
class ClusterResult:
    sample_size: int
    bands: Tuple[AmountBand, ...]
    thresholds: Tuple[ThresholdBucket, ...]

    @property
    def concentrated_bands(self) -> Tuple[AmountBand, ...]:
        return tuple(b for b in self.bands if b.is_concentrated)

    @property
    def suspicious_thresholds(self) -> Tuple[ThresholdBucket, ...]:
        return tuple(t for t in self.thresholds if t.is_suspicious)

    def bands_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {"range": b.label, "count": b.count, "percentage": b.percentage, "total": b.total}
            for b in self.bands
        ], columns=["range", "count", "percentage", "total"])

    def thresholds_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {"threshold": t.threshold, "count": t.count, "expected": t.expected,
             "suspicious": t.is_suspicious}
            for t in self.thresholds
        ], columns=["threshold", "count", "expected", "suspicious"])


def _select(sample: Sample, mask: np.ndarray) -> Tuple[SampleItem, ...]:
    return tuple(item for item, keep in zip(sample.items, mask) if keep)


def amount_bands(sample: Sample) -> Tuple[AmountBand, ...]:
    """Count, share and total of amounts in each [low, high) band."""
    amounts = sample.amounts
    n = len(amounts)
    bands = []
    for low, high in AMOUNT_BANDS:
        mask = (amounts >= low) & (amounts < high)
        count = int(mask.sum())
        bands.append(AmountBand(
            low=low,
            high=high,
            count=count,
            percentage=count / n * 100 if n else 0.0,
            total=float(np.sort(amounts[mask]).sum()),
            items=_select(sample, mask),
        ))
    return tuple(bands)


def threshold_buckets(sample: Sample) -> Tuple[ThresholdBucket, ...]:
    """Amounts in [0.9 * threshold, threshold) for each round threshold."""
    amounts = sample.amounts
    expected = len(amounts) * Thresholds.STRUCTURING_BASELINE_SHARE
    buckets = []
    for threshold in STRUCTURING_THRESHOLDS:
        lower = threshold * Thresholds.STRUCTURING_BAND
        mask = (amounts >= lower) & (amounts < threshold)
        buckets.append(ThresholdBucket(
            threshold=threshold,
            lower_bound=lower,
            count=int(mask.sum()),
            expected=expected,
            items=_select(sample, mask),
        ))
    return tuple(buckets)


def detect_clusters(
    sample: Sample,
    min_samples: int = Thresholds.MIN_CLUSTER,
) -> Optional[ClusterResult]:
    """Band and structuring analysis; None below `min_samples`."""
    if len(sample) < min_samples:
        return None
    return ClusterResult(
        sample_size=len(sample),
        bands=amount_bands(sample),
        thresholds=threshold_buckets(sample),
    )


def score_clustering_anomaly(cluster_count: int, expected_clusters: int) -> float:
    """0-100 score: too few occupied bands is concentration, too many is fragmentation."""
    if expected_clusters <= 0:
        return 0.0
    ratio = cluster_count / expected_clusters
    if ratio < 0.5:
        return 70.0
    if ratio > 2.0:
        return 60.0
    if ratio < 0.75 or ratio > 1.5:
        return 40.0
    return 20.0
