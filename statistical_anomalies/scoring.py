"""
Composite risk scoring.

Every finding category contributes an equally weighted driver:

    raw(category) = min(100, mean over its findings of severity_weight * confidence * 100)
    value         = sum(raw(category) / number_of_categories)

Categories without findings contribute 0. An empty finding set yields the
baseline score with a single "No indicators" driver.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config import (
    BASELINE_SCORE,
    MODULE_NAME,
    SCORE_THRESHOLDS,
    SCORE_TYPE,
    SEVERITY_WEIGHTS,
    Category,
    Severity,
    validate_severity_weights,
)
from .data_loader import union_refs
from .findings import Finding


@dataclass(frozen=True)
class ScoreDriver:
    factor: str
    weight: float
    raw_score: float
    weighted_contribution: float
    evidence_refs: Tuple[str, ...]
    explanation: str


@dataclass(frozen=True)
class Score:
    module: str
    score_type: str
    value: float
    confidence: float
    drivers: Tuple[ScoreDriver, ...]
    thresholds: Mapping[str, float]
    interpretation: str
    recommendations: Tuple[str, ...] = ()
    evidence_refs: Tuple[str, ...] = ()
    calculated_at: str = field(default="", compare=False)

    @property
    def risk_level(self) -> str:
        for level in ("critical", "high", "medium", "low"):
            if self.value >= self.thresholds[level]:
                return level
        return "minimal"


def round_half_up(value: float, places: int = 2) -> float:
    """Round halves away from zero (40.625 -> 40.63), unlike built-in round()."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def interpret_score(value: float, thresholds: Mapping[str, float] = SCORE_THRESHOLDS) -> str:
    if value >= thresholds["critical"]:
        return "CRITICAL: Immediate attention required. Multiple high-severity indicators detected."
    if value >= thresholds["high"]:
        return "HIGH: Significant concerns identified requiring prompt investigation."
    if value >= thresholds["medium"]:
        return "MEDIUM: Notable indicators present warranting further review."
    if value >= thresholds["low"]:
        return "LOW: Minor concerns detected, routine monitoring recommended."
    return "MINIMAL: No significant concerns identified based on available data."


def score_confidence(drivers: Sequence[ScoreDriver]) -> float:
    """
    Confidence from evidence coverage.

    0.5 base, up to +0.3 for the share of drivers with evidence, up to +0.2
    for an average of 5+ refs per driver, minus a penalty when one driver's
    weight exceeds 0.5.
    """
    if not drivers:
        return 0.0

    coverage = sum(1 for d in drivers if d.evidence_refs) / len(drivers)
    avg_evidence = sum(len(d.evidence_refs) for d in drivers) / len(drivers)
    evidence_bonus = min(avg_evidence / 5, 1) * 0.2
    max_weight = max(d.weight for d in drivers)
    concentration_penalty = (max_weight - 0.5) * 0.2 if max_weight > 0.5 else 0.0

    confidence = max(0.0, min(1.0, 0.5 + coverage * 0.3 + evidence_bonus - concentration_penalty))
    return round_half_up(confidence)


def recommendations(
    drivers: Sequence[ScoreDriver],
    thresholds: Mapping[str, float] = SCORE_THRESHOLDS,
) -> Tuple[str, ...]:
    result: List[str] = []

    top = sorted(drivers, key=lambda d: d.weighted_contribution, reverse=True)[:3]
    for driver in top:
        if driver.raw_score >= thresholds["high"]:
            result.append(f"Address {driver.factor}: {driver.explanation}")
        elif driver.raw_score >= thresholds["medium"]:
            result.append(f"Monitor {driver.factor}: {driver.explanation}")

    thin = [d.factor for d in drivers if len(d.evidence_refs) < 2 and d.raw_score > thresholds["low"]]
    if thin:
        result.append(f"Gather additional evidence for: {', '.join(thin)}")

    return tuple(result)


def category_raw_score(findings: Sequence[Finding], weights: Mapping[Severity, float]) -> float:
    """Mean of severity_weight * confidence * 100, clipped to [0, 100]; 0 when empty."""
    if not findings:
        return 0.0
    mean = sum(weights[f.severity] * f.confidence * 100 for f in findings) / len(findings)
    return min(100.0, max(0.0, mean))


def _build(
    drivers: Sequence[ScoreDriver],
    value: float,
    thresholds: Mapping[str, float],
    module: str,
    score_type: str,
    calculated_at: str,
) -> Score:
    return Score(
        module=module,
        score_type=score_type,
        value=round_half_up(value),
        confidence=score_confidence(drivers),
        drivers=tuple(drivers),
        thresholds=dict(thresholds),
        interpretation=interpret_score(value, thresholds),
        recommendations=recommendations(drivers, thresholds),
        evidence_refs=union_refs(d.evidence_refs for d in drivers),
        calculated_at=calculated_at,
    )


def score_findings(
    findings: Sequence[Finding],
    categories: Sequence[Category] = tuple(Category),
    severity_weights: Optional[Mapping[Severity, float]] = None,
    thresholds: Mapping[str, float] = SCORE_THRESHOLDS,
    baseline: float = BASELINE_SCORE,
    module: str = MODULE_NAME,
    score_type: str = SCORE_TYPE,
    calculated_at: str = "",
) -> Score:
    """
    Aggregate one run's findings into a 0-100 composite score.

    Args:
        findings: All findings of the run
        categories: Categories to score, equally weighted
        severity_weights: Monotonic severity weight table (critical highest)
        thresholds: Cut points for interpretation
        baseline: Value returned when there are no findings

    Returns:
        Score with one driver per category
    """
    weights = severity_weights or SEVERITY_WEIGHTS
    validate_severity_weights(weights)
    if not categories:
        raise ValueError("At least one category is required")

    if not findings:
        driver = ScoreDriver(
            factor="No indicators",
            weight=1.0,
            raw_score=baseline,
            weighted_contribution=baseline,
            evidence_refs=(),
            explanation="No significant statistical anomalies identified",
        )
        return _build([driver], baseline, thresholds, module, score_type, calculated_at)

    by_category: Dict[Category, List[Finding]] = {c: [] for c in categories}
    for finding in findings:
        if finding.category in by_category:
            by_category[finding.category].append(finding)

    weight = 1.0 / len(categories)
    drivers = []
    for category in categories:
        members = by_category[category]
        raw = category_raw_score(members, weights)
        if members:
            explanation = f"{len(members)} finding(s): " + "; ".join(f.title for f in members)
        else:
            explanation = "No findings"
        drivers.append(ScoreDriver(
            factor=category.value,
            weight=weight,
            raw_score=raw,
            weighted_contribution=raw * weight,
            evidence_refs=union_refs(f.evidence_refs for f in members),
            explanation=explanation,
        ))

    value = min(100.0, max(0.0, sum(d.weighted_contribution for d in drivers)))
    return _build(drivers, value, thresholds, module, score_type, calculated_at)
