"""
Statistical analyzers.

1. digits: leading and second significant digit extraction
2. benford: Benford's Law goodness of fit (chi-square, MAD, digit z-scores)
3. outliers: Z-score and IQR dispersion outliers
4. clustering: amount bands and just-below-threshold structuring

Each analyzer reads a Sample and returns its own immutable result.
"""

from .digits import first_digit, second_digit, extract_digit
from .benford import (
    DigitStat,
    GoodnessOfFitResult,
    analyze_benford,
    analyze_second_digit,
    analyze_by_segment,
    score_benford_deviation,
)
from .outliers import (
    OutlierResult,
    ZScoreResult,
    IQRResult,
    Quartiles,
    quartiles,
    classify_iqr,
    zscore_outliers,
    iqr_outliers,
    detect_outliers,
    score_outlier_density,
)
from .clustering import (
    AmountBand,
    ThresholdBucket,
    ClusterResult,
    detect_clusters,
    score_clustering_anomaly,
)

__all__ = [
    # Digits
    "first_digit",
    "second_digit",
    "extract_digit",
    # Benford
    "DigitStat",
    "GoodnessOfFitResult",
    "analyze_benford",
    "analyze_second_digit",
    "analyze_by_segment",
    "score_benford_deviation",
    # Outliers
    "OutlierResult",
    "ZScoreResult",
    "IQRResult",
    "Quartiles",
    "quartiles",
    "classify_iqr",
    "zscore_outliers",
    "iqr_outliers",
    "detect_outliers",
    "score_outlier_density",
    # Clustering
    "AmountBand",
    "ThresholdBucket",
    "ClusterResult",
    "detect_clusters",
    "score_clustering_anomaly",
]
