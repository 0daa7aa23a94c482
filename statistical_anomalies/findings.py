"""
Findings and the finding synthesizer.

Each qualifying analyzer result becomes one `Finding` carrying severity,
confidence, rationale, evidence references and at least one
counter-hypothesis. Finding ids are allocated by a per-run `FindingIds`
counter, so identical inputs yield identical findings; timestamps are
excluded from equality.
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .config import (
    CATEGORY_CONFIDENCE,
    DEFAULT_CURRENCY,
    MODULE_NAME,
    Category,
    Conformity,
    DigitPosition,
    FindingStatus,
    Likelihood,
    Severity,
    Thresholds,
)
from .data_loader import SampleItem, union_refs
from .detectors.benford import GoodnessOfFitResult, score_benford_deviation
from .detectors.clustering import AmountBand, ClusterResult, ThresholdBucket, score_clustering_anomaly
from .detectors.outliers import IQRResult, ZScoreResult, score_outlier_density


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class CounterHypothesis:
    """An alternative, innocent explanation for a finding."""
    hypothesis: str
    likelihood: Likelihood
    evidence_for: Tuple[str, ...] = ()
    evidence_against: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FinancialImpact:
    amount_low: float
    amount_high: float
    amount_best_estimate: float
    currency: str = DEFAULT_CURRENCY


@dataclass(frozen=True)
class Finding:
    id: str
    category: Category
    title: str
    description: str
    severity: Severity
    confidence: float
    rationale: str
    evidence_refs: Tuple[str, ...]
    counter_hypotheses: Tuple[CounterHypothesis, ...]
    module: str = MODULE_NAME
    status: FindingStatus = FindingStatus.OPEN
    methodology: Optional[str] = None
    related_transaction_ids: Tuple[str, ...] = ()
    financial_impact: Optional[FinancialImpact] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: str = field(default="", compare=False)
    updated_at: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.counter_hypotheses:
            raise ValueError(f"Finding {self.id} has no counter-hypothesis")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Finding {self.id} confidence {self.confidence} outside [0, 1]")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "module": self.module,
            "category": self.category.value,
            "title": self.title,
            "severity": self.severity.value,
            "status": self.status.value,
            "confidence": self.confidence,
            "evidence_count": len(self.evidence_refs),
            "created_at": self.created_at,
        }


class FindingIds:
    """Sequential finding ids (FND-00000001, ...) scoped to one run."""

    def __init__(self, prefix: str = "FND"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def next(self) -> str:
        return f"{self.prefix}-{_base36(next(self._counter)).rjust(8, '0')}"


def _base36(number: int) -> str:
    chars = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    out = ""
    while number:
        number, rem = divmod(number, 36)
        out = chars[rem] + out
    return out or "0"


def findings_frame(findings: Iterable[Finding]) -> pd.DataFrame:
    """Tabular summary of findings."""
    return pd.DataFrame(
        [f.to_dict() for f in findings],
        columns=["id", "module", "category", "title", "severity", "status",
                 "confidence", "evidence_count", "created_at"],
    )


# =============================================================================
# Synthesizer
# =============================================================================

class FindingSynthesizer:
    """
    Renders analyzer results into findings.

    One synthesizer per run: it owns the id sequence and the run timestamp.

    Usage:
        synth = FindingSynthesizer()
        findings = synth.benford(result, "transactions")
        findings += synth.outliers(zscore_result, iqr_result)
    """

    def __init__(self, currency: str = DEFAULT_CURRENCY, timestamp: Optional[str] = None):
        self.currency = currency
        self.ids = FindingIds()
        self.timestamp = timestamp or datetime.now(timezone.utc).isoformat()

    def _make(self, category: Category, items: Iterable[SampleItem] = (), **kwargs) -> Finding:
        items = tuple(items)
        kwargs.setdefault("evidence_refs", union_refs(i.evidence_refs for i in items))
        kwargs.setdefault("related_transaction_ids", tuple(i.id for i in items))
        return Finding(
            id=self.ids.next(),
            category=category,
            confidence=CATEGORY_CONFIDENCE[category],
            created_at=self.timestamp,
            updated_at=self.timestamp,
            **kwargs,
        )

    # =========================================================================
    # Benford
    # =========================================================================

    def benford(self, result: GoodnessOfFitResult, data_type: str = "transactions") -> List[Finding]:
        """Non-conformity finding plus one finding per digit with |z| > 3."""
        findings: List[Finding] = []
        if not result.is_computed:
            return findings

        ordinal = "First" if result.position is DigitPosition.FIRST else "Second"

        if result.conformity is Conformity.NONCONFORMING:
            small = result.sample_size < Thresholds.SMALL_SAMPLE
            all_items = itertools.chain.from_iterable(
                result.items_by_digit[d] for d in sorted(result.items_by_digit)
            )
            findings.append(self._make(
                Category.BENFORD_NONCONFORMITY,
                items=all_items,
                title=f"Benford's Law Non-Conformity in {data_type} ({ordinal.lower()} digit)",
                description=(
                    f"Analysis of {result.sample_size} {data_type} shows significant deviation "
                    f"from Benford's Law expected distribution (MAD: {result.mad * 100:.2f}%, "
                    f"Chi-square: {result.chi_square:.2f}, {result.p_value_range})."
                ),
                severity=Severity.HIGH if result.mad > Thresholds.MAD_HIGH_SEVERITY else Severity.MEDIUM,
                rationale=(
                    "Benford's Law states that leading digits in naturally occurring data follow "
                    "a predictable distribution. Significant deviation may indicate data "
                    "manipulation, fabrication, or rounding."
                ),
                counter_hypotheses=(
                    CounterHypothesis(
                        hypothesis="Data constraints limiting natural variation",
                        likelihood=Likelihood.MEDIUM,
                        evidence_for=("Fixed price contracts", "Regulated amounts"),
                        evidence_against=("Diverse transaction types",),
                    ),
                    CounterHypothesis(
                        hypothesis="Small sample size affecting distribution",
                        likelihood=Likelihood.MEDIUM if small else Likelihood.LOW,
                        evidence_for=(f"Sample < {Thresholds.SMALL_SAMPLE}",) if small else (),
                        evidence_against=() if small else ("Adequate sample size",),
                    ),
                ),
                methodology=(
                    f"Benford's Law analysis with Chi-square goodness-of-fit test "
                    f"(df={result.degrees_of_freedom}) and Mean Absolute Deviation assessment."
                ),
                metadata={
                    "digit_position": result.position.value,
                    "chi_square": result.chi_square,
                    "p_value": result.p_value,
                    "p_value_range": result.p_value_range,
                    "mad": result.mad,
                    "sample_size": result.sample_size,
                    "deviation_score": score_benford_deviation(
                        result.chi_square, result.critical_value, result.mad
                    ),
                },
            ))

        for digit in result.anomalous_digits:
            findings.append(self._make(
                Category.BENFORD_DIGIT_ANOMALY,
                items=result.items_by_digit.get(digit.digit, ()),
                title=f"{ordinal} digit {digit.digit} {digit.direction} in {data_type}",
                description=(
                    f"{ordinal} digit {digit.digit} appears in {digit.observed_pct:.1f}% of "
                    f"{data_type} vs expected {digit.expected_pct:.1f}% "
                    f"(Z-score: {digit.z_score:.2f})."
                ),
                severity=Severity.HIGH if abs(digit.z_score) > Thresholds.DIGIT_Z_HIGH else Severity.MEDIUM,
                rationale=(
                    f"Significant deviation ({abs(digit.z_score):.1f} standard deviations) from "
                    f"expected Benford distribution for digit {digit.digit}."
                ),
                counter_hypotheses=(
                    CounterHypothesis(
                        hypothesis="Business-specific pricing patterns",
                        likelihood=Likelihood.MEDIUM,
                        evidence_for=("Standard pricing tiers",),
                        evidence_against=("Random transaction mix",),
                    ),
                ),
                metadata={
                    "digit_position": result.position.value,
                    "digit": digit.digit,
                    "z_score": digit.z_score,
                    "deviation_pct": digit.deviation,
                },
            ))

        return findings

    # =========================================================================
    # Outliers
    # =========================================================================

    def zscore(self, result: Optional[ZScoreResult]) -> List[Finding]:
        if result is None or not result.is_reportable:
            return []

        outliers = result.outliers
        items = [o.item for o in outliers]
        count = len(outliers)
        total_amount = sum(sorted(i.amount for i in items))
        max_z = result.max_abs_z

        return [self._make(
            Category.Z_SCORE_OUTLIER,
            items=items,
            title=f"{count} Statistical Outliers Detected (Z-Score Method)",
            description=(
                f"{count} transactions ({count / result.sample_size * 100:.1f}%) have amounts more "
                f"than {result.threshold:g} standard deviations from the mean. Total outlier "
                f"amount: {total_amount:,.2f} {self.currency}. Maximum Z-score: {max_z:.2f}."
            ),
            severity=result.severity,
            rationale=(
                "Transactions with amounts significantly different from the population mean may "
                "indicate errors, fraud, or unusual business activity."
            ),
            counter_hypotheses=(
                CounterHypothesis(
                    hypothesis="Legitimate large transactions",
                    likelihood=Likelihood.MEDIUM,
                    evidence_for=("Supporting documentation", "Proper approval"),
                    evidence_against=("No documentation", "Unusual patterns"),
                ),
            ),
            financial_impact=FinancialImpact(
                amount_low=0.0,
                amount_high=total_amount,
                amount_best_estimate=total_amount * Thresholds.OUTLIER_IMPACT_SHARE,
                currency=self.currency,
            ),
            metadata={
                "method": "z-score",
                "outlier_count": count,
                "max_z_score": max_z,
                "mean": result.mean,
                "std": result.std,
                "density_score": score_outlier_density(count, result.sample_size),
            },
        )]

    def iqr(self, result: Optional[IQRResult]) -> List[Finding]:
        """Only extreme outliers are reported; mild ones stay in the result."""
        if result is None or not result.extreme:
            return []

        extreme = result.extreme
        q = result.quartiles
        return [self._make(
            Category.IQR_OUTLIER,
            items=[e.item for e in extreme],
            title=f"{len(extreme)} Extreme Outliers (IQR Method)",
            description=(
                f"{len(extreme)} transactions are extreme outliers (beyond 3×IQR from quartiles), "
                f"indicating highly unusual amounts."
            ),
            severity=Severity.MEDIUM,
            rationale=(
                "Interquartile Range method identifies extreme values that are robust to "
                "non-normal distributions."
            ),
            counter_hypotheses=(
                CounterHypothesis(
                    hypothesis="Valid one-time large transactions",
                    likelihood=Likelihood.MEDIUM,
                    evidence_for=("Contract support", "Management approval"),
                ),
            ),
            metadata={
                "method": "iqr",
                "outlier_count": len(extreme),
                "mild_count": len(result.mild),
                "q1": q.q1,
                "q3": q.q3,
                "iqr": q.iqr,
            },
        )]

    # =========================================================================
    # Clustering
    # =========================================================================

    def clusters(self, result: Optional[ClusterResult]) -> List[Finding]:
        if result is None:
            return []
        findings = [self._band(band, result) for band in result.concentrated_bands]
        findings += [self._structuring(bucket) for bucket in result.suspicious_thresholds]
        return findings

    def _band(self, band: AmountBand, result: ClusterResult) -> Finding:
        occupied = sum(1 for b in result.bands if b.count)
        return self._make(
            Category.AMOUNT_CLUSTERING,
            items=band.items,
            title=f"High Concentration of Transactions in {band.label}",
            description=(
                f"{band.percentage:.1f}% of transactions ({band.count}) fall within {band.label}. "
                f"This concentration may warrant investigation."
            ),
            severity=Severity.LOW,
            rationale=(
                "Unusual concentration in specific amount ranges may indicate systematic "
                "patterns or constraints."
            ),
            counter_hypotheses=(
                CounterHypothesis(
                    hypothesis="Normal business pricing structure",
                    likelihood=Likelihood.HIGH,
                    evidence_for=("Standard product pricing", "Service tiers"),
                ),
            ),
            metadata={
                "range": band.label,
                "count": band.count,
                "percentage": band.percentage,
                "total": band.total,
                "concentration_score": score_clustering_anomaly(occupied, len(result.bands)),
            },
        )

    def _structuring(self, bucket: ThresholdBucket) -> Finding:
        return self._make(
            Category.THRESHOLD_CLUSTERING,
            items=bucket.items,
            title=f"Suspicious Clustering Just Below {bucket.threshold:,} Threshold",
            description=(
                f"{bucket.count} transactions cluster just below {bucket.threshold:,} "
                f"({bucket.lower_bound:,.0f} - {bucket.threshold:,}). This pattern may indicate "
                f"intentional structuring to avoid reporting thresholds."
            ),
            severity=bucket.severity,
            rationale=(
                "Transactions intentionally structured below reporting thresholds (e.g. the "
                "10,000 currency transaction report trigger) may indicate money laundering or fraud."
            ),
            counter_hypotheses=(
                CounterHypothesis(
                    hypothesis="Natural pricing around common amounts",
                    likelihood=Likelihood.MEDIUM,
                    evidence_for=("Standard pricing",),
                    evidence_against=("Concentration pattern",),
                ),
            ),
            metadata={
                "threshold": bucket.threshold,
                "count": bucket.count,
                "expected": bucket.expected,
            },
        )
