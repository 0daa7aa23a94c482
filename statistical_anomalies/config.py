"""
Configuration and constants for statistical anomaly detection.

All lookup tables are module-level constants built once at import and never
mutated. Tuning parameters that callers may override live in `Thresholds`
(defaults) and `EngineConfig` (per-run values).
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple

MODULE_NAME = "statistical_anomalies"
DEFAULT_CURRENCY = "USD"


# === Enumerations ===
class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class FindingStatus(str, Enum):
    OPEN = "open"
    CONFIRMED = "confirmed"
    REFUTED = "refuted"
    INCONCLUSIVE = "inconclusive"


class Likelihood(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DigitPosition(str, Enum):
    FIRST = "first"
    SECOND = "second"


class Conformity(str, Enum):
    ACCEPTABLE = "acceptable"
    MARGINAL = "marginal"
    NONCONFORMING = "nonconforming"


class IQRClass(str, Enum):
    NONE = "none"
    MILD = "mild"
    EXTREME = "extreme"


class Category(str, Enum):
    """Finding categories. The composite scorer iterates all members."""
    BENFORD_NONCONFORMITY = "benford_nonconformity"
    BENFORD_DIGIT_ANOMALY = "benford_digit_anomaly"
    Z_SCORE_OUTLIER = "z_score_outlier"
    IQR_OUTLIER = "iqr_outlier"
    AMOUNT_CLUSTERING = "amount_clustering"
    THRESHOLD_CLUSTERING = "threshold_clustering"


# === Benford's Law ===
# Expected first-digit proportions (digits 1-9)
BENFORD_FIRST_DIGIT: Mapping[int, float] = MappingProxyType({
    1: 0.301, 2: 0.176, 3: 0.125, 4: 0.097,
    5: 0.079, 6: 0.067, 7: 0.058, 8: 0.051, 9: 0.046,
})

# Expected second-digit proportions (digits 0-9)
BENFORD_SECOND_DIGIT: Mapping[int, float] = MappingProxyType({
    0: 0.120, 1: 0.114, 2: 0.109, 3: 0.104, 4: 0.100,
    5: 0.097, 6: 0.093, 7: 0.090, 8: 0.088, 9: 0.085,
})

EXPECTED_PROPORTIONS: Mapping[DigitPosition, Mapping[int, float]] = MappingProxyType({
    DigitPosition.FIRST: BENFORD_FIRST_DIGIT,
    DigitPosition.SECOND: BENFORD_SECOND_DIGIT,
})

# Chi-square critical values at alpha 0.05, 0.01, 0.001 (df=8 first, df=9 second)
CHI2_CRITICAL: Mapping[DigitPosition, Tuple[float, float, float]] = MappingProxyType({
    DigitPosition.FIRST: (15.507, 20.090, 26.125),
    DigitPosition.SECOND: (16.919, 21.666, 27.877),
})

DEGREES_OF_FREEDOM: Mapping[DigitPosition, int] = MappingProxyType({
    DigitPosition.FIRST: 8,
    DigitPosition.SECOND: 9,
})

# p-value buckets, ordered by the critical value that closes them
P_VALUE_RANGES = ("p > 0.05", "0.01 < p < 0.05", "0.001 < p < 0.01", "p < 0.001")

BENFORD_MIN_MAGNITUDE = 10.0


# === Thresholds (defaults) ===
class Thresholds:
    # Digit-law
    MAD_ACCEPTABLE = 0.006
    MAD_MARGINAL = 0.012
    MAD_HIGH_SEVERITY = 0.02
    DIGIT_Z_ANOMALY = 3.0
    DIGIT_Z_HIGH = 4.0
    SMALL_SAMPLE = 500                     # counter-hypothesis cut

    # Dispersion
    ZSCORE = 3.0
    IQR_MULTIPLIER = 1.5
    IQR_EXTREME_MULTIPLIER = 3.0
    ZSCORE_MAX_OUTLIER_SHARE = 0.10        # more than this is another population
    ZSCORE_HIGH = 5.0
    ZSCORE_MEDIUM = 4.0
    OUTLIER_IMPACT_SHARE = 0.2             # best-estimate share of outlier total

    # Clustering
    BAND_CONCENTRATION_PCT = 50.0
    BAND_MIN_COUNT = 10
    STRUCTURING_BAND = 0.9                 # [0.9 * threshold, threshold)
    STRUCTURING_BASELINE_SHARE = 0.10
    STRUCTURING_MULTIPLE = 2.0
    STRUCTURING_MIN_COUNT = 5

    # Minimum sample sizes
    MIN_BENFORD = 100
    MIN_OUTLIER = 30
    MIN_CLUSTER = 50


# Amount bands [low, high); the last band is open ended
AMOUNT_BANDS: Tuple[Tuple[float, float], ...] = (
    (0, 1_000),
    (1_000, 5_000),
    (5_000, 10_000),
    (10_000, 50_000),
    (50_000, 100_000),
    (100_000, 500_000),
    (500_000, float("inf")),
)

# Round reporting thresholds checked for structuring
STRUCTURING_THRESHOLDS: Tuple[int, ...] = (10_000, 5_000, 3_000, 1_000)
CTR_THRESHOLD = 10_000


# === Findings ===
CATEGORY_CONFIDENCE: Mapping[Category, float] = MappingProxyType({
    Category.BENFORD_NONCONFORMITY: 0.7,
    Category.BENFORD_DIGIT_ANOMALY: 0.65,
    Category.Z_SCORE_OUTLIER: 0.7,
    Category.IQR_OUTLIER: 0.65,
    Category.AMOUNT_CLUSTERING: 0.5,
    Category.THRESHOLD_CLUSTERING: 0.6,
})


# === Scoring ===
SEVERITY_WEIGHTS: Mapping[Severity, float] = MappingProxyType({
    Severity.CRITICAL: 1.0,
    Severity.HIGH: 0.75,
    Severity.MEDIUM: 0.5,
    Severity.LOW: 0.25,
    Severity.INFO: 0.1,
})

SCORE_THRESHOLDS: Mapping[str, float] = MappingProxyType({
    "critical": 80,
    "high": 60,
    "medium": 40,
    "low": 20,
})

BASELINE_SCORE = 10.0
SCORE_TYPE = "Statistical Anomaly Risk"


@dataclass(frozen=True)
class EngineConfig:
    """Per-run tuning parameters."""
    zscore_threshold: float = Thresholds.ZSCORE
    iqr_multiplier: float = Thresholds.IQR_MULTIPLIER
    min_benford_samples: int = Thresholds.MIN_BENFORD
    min_outlier_samples: int = Thresholds.MIN_OUTLIER
    min_cluster_samples: int = Thresholds.MIN_CLUSTER
    second_digit: bool = False
    currency: str = DEFAULT_CURRENCY
    severity_weights: Mapping[Severity, float] = field(default_factory=lambda: SEVERITY_WEIGHTS)

    def __post_init__(self):
        if self.zscore_threshold <= 0:
            raise ValueError("zscore_threshold must be positive")
        if self.iqr_multiplier <= 0:
            raise ValueError("iqr_multiplier must be positive")
        for name in ("min_benford_samples", "min_outlier_samples", "min_cluster_samples"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        validate_severity_weights(self.severity_weights)


def validate_severity_weights(weights: Mapping[Severity, float]) -> None:
    """Severity weights must cover every severity and decrease with it."""
    missing = [s.value for s in Severity if s not in weights]
    if missing:
        raise ValueError(f"Missing severity weights: {missing}")
    ordered = [weights[s] for s in Severity]
    if any(a <= b for a, b in zip(ordered, ordered[1:])):
        raise ValueError("Severity weights must be strictly decreasing from critical to info")
