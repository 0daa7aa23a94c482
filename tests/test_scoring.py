"""Tests for composite scoring."""

import pytest

from statistical_anomalies.config import SEVERITY_WEIGHTS, Category, Likelihood, Severity
from statistical_anomalies.findings import CounterHypothesis, Finding
from statistical_anomalies.scoring import (
    ScoreDriver,
    category_raw_score,
    interpret_score,
    recommendations,
    round_half_up,
    score_confidence,
    score_findings,
)


def _finding(category, severity, confidence, refs=("EVD-1",), fid="FND-00000001"):
    return Finding(
        id=fid,
        category=category,
        title=f"{category.value} finding",
        description="d",
        severity=severity,
        confidence=confidence,
        rationale="r",
        evidence_refs=tuple(refs),
        counter_hypotheses=(CounterHypothesis("innocent explanation", Likelihood.MEDIUM),),
    )


def _driver(weight=0.5, raw=50.0, refs=()):
    return ScoreDriver(
        factor="f",
        weight=weight,
        raw_score=raw,
        weighted_contribution=raw * weight,
        evidence_refs=tuple(refs),
        explanation="e",
    )


class TestScoreFindings:
    def test_no_findings_is_baseline(self):
        score = score_findings([])
        assert score.value == 10.0
        assert len(score.drivers) == 1
        assert score.drivers[0].factor == "No indicators"
        assert score.drivers[0].weight == 1.0
        assert score.risk_level == "minimal"
        assert score.interpretation.startswith("MINIMAL")

    def test_single_structuring_finding(self):
        finding = _finding(Category.THRESHOLD_CLUSTERING, Severity.HIGH, 0.6)
        score = score_findings([finding])

        assert len(score.drivers) == len(Category)
        driver = next(d for d in score.drivers if d.factor == "threshold_clustering")
        assert driver.raw_score == pytest.approx(45.0)
        assert driver.weight == pytest.approx(1 / 6)
        assert score.value == pytest.approx(7.5)
        assert score.evidence_refs == ("EVD-1",)

    def test_empty_categories_contribute_zero(self):
        score = score_findings([_finding(Category.IQR_OUTLIER, Severity.MEDIUM, 0.65)])
        others = [d for d in score.drivers if d.factor != "iqr_outlier"]
        assert all(d.raw_score == 0 for d in others)
        assert all(d.explanation == "No findings" for d in others)

    def test_category_is_mean_of_its_findings(self):
        findings = [
            _finding(Category.BENFORD_DIGIT_ANOMALY, Severity.HIGH, 0.25, fid="FND-00000001"),
            _finding(Category.BENFORD_DIGIT_ANOMALY, Severity.MEDIUM, 0.25, fid="FND-00000002"),
        ]
        score = score_findings(findings, categories=[Category.BENFORD_DIGIT_ANOMALY])
        # (0.75 * 25 + 0.5 * 25) / 2 = 15.625, rounded half up
        assert score.drivers[0].raw_score == 15.625
        assert score.value == 15.63
        assert score.risk_level == "minimal"

    def test_raw_score_is_clipped(self):
        weights = {
            Severity.CRITICAL: 2.0,
            Severity.HIGH: 1.5,
            Severity.MEDIUM: 1.0,
            Severity.LOW: 0.5,
            Severity.INFO: 0.1,
        }
        finding = _finding(Category.Z_SCORE_OUTLIER, Severity.CRITICAL, 0.9)
        score = score_findings([finding], categories=[Category.Z_SCORE_OUTLIER], severity_weights=weights)
        assert score.drivers[0].raw_score == 100.0
        assert score.value == 100.0
        assert score.risk_level == "critical"

    def test_value_bounded(self):
        findings = [
            _finding(c, Severity.CRITICAL, 1.0, fid=f"FND-{i:08d}")
            for i, c in enumerate(Category, start=1)
        ]
        score = score_findings(findings)
        assert score.value == pytest.approx(100.0)

    def test_findings_outside_categories_are_ignored(self):
        finding = _finding(Category.IQR_OUTLIER, Severity.HIGH, 0.65)
        score = score_findings([finding], categories=[Category.Z_SCORE_OUTLIER])
        assert score.value == 0.0

    def test_rejects_non_monotonic_weights(self):
        weights = dict(SEVERITY_WEIGHTS)
        weights[Severity.LOW] = 0.9
        with pytest.raises(ValueError):
            score_findings([], severity_weights=weights)

    def test_rejects_empty_categories(self):
        with pytest.raises(ValueError):
            score_findings([], categories=[])

    def test_order_independent(self):
        findings = [
            _finding(Category.IQR_OUTLIER, Severity.MEDIUM, 0.65, refs=("EVD-1",), fid="FND-00000001"),
            _finding(Category.Z_SCORE_OUTLIER, Severity.HIGH, 0.7, refs=("EVD-2",), fid="FND-00000002"),
        ]
        forward = score_findings(findings)
        backward = score_findings(list(reversed(findings)))
        assert forward.value == backward.value
        assert [d.raw_score for d in forward.drivers] == [d.raw_score for d in backward.drivers]


@pytest.mark.parametrize("value, prefix", [
    (85, "CRITICAL"),
    (80, "CRITICAL"),
    (65, "HIGH"),
    (45, "MEDIUM"),
    (20, "LOW"),
    (5, "MINIMAL"),
])
def test_interpret_score(value, prefix):
    assert interpret_score(value).startswith(prefix)


def test_category_raw_score_empty():
    assert category_raw_score([], SEVERITY_WEIGHTS) == 0.0


class TestConfidence:
    def test_no_drivers(self):
        assert score_confidence([]) == 0.0

    def test_single_driver_without_evidence(self):
        # 0.5 base, no coverage, weight 1.0 costs (1.0 - 0.5) * 0.2
        assert score_confidence([_driver(weight=1.0, raw=10.0)]) == 0.4

    def test_full_coverage(self):
        refs = [f"EVD-{i}" for i in range(5)]
        drivers = [_driver(weight=0.5, refs=refs), _driver(weight=0.5, refs=refs)]
        assert score_confidence(drivers) == 1.0


class TestRecommendations:
    def test_address_and_monitor(self):
        high = ScoreDriver("benford_nonconformity", 0.5, 70.0, 35.0, ("A", "B"), "high one")
        medium = ScoreDriver("iqr_outlier", 0.5, 45.0, 22.5, ("C", "D"), "medium one")
        result = recommendations([high, medium])
        assert result == (
            "Address benford_nonconformity: high one",
            "Monitor iqr_outlier: medium one",
        )

    def test_thin_evidence(self):
        thin = ScoreDriver("z_score_outlier", 1.0, 30.0, 30.0, ("A",), "x")
        assert recommendations([thin]) == ("Gather additional evidence for: z_score_outlier",)

    def test_quiet_drivers(self):
        assert recommendations([_driver(raw=10.0)]) == ()


@pytest.mark.parametrize("value, expected", [
    (40.625, 40.63),
    (0.125, 0.13),
    (7.5, 7.5),
    (12.344, 12.34),
])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
