"""Tests for Z-score and IQR outlier detection."""

import math
import random

import pytest

from conftest import make_sample
from statistical_anomalies.config import IQRClass, Severity
from statistical_anomalies.data_loader import SampleItem
from statistical_anomalies.detectors.outliers import (
    Quartiles,
    ZScoreItem,
    ZScoreResult,
    classify_iqr,
    detect_outliers,
    iqr_outliers,
    quartiles,
    score_outlier_density,
    zscore_outliers,
)
from statistical_anomalies.findings import FindingSynthesizer


def _iqr_sample(top: float):
    """40 amounts with Q1=100, Q3=200 and `top` as the largest value."""
    return make_sample([100.0] * 20 + [200.0] * 19 + [top])


class TestZScore:
    def test_below_minimum_size_returns_none(self):
        sample = make_sample([100.0] * 28 + [1e9])
        assert len(sample) == 29
        assert zscore_outliers(sample) is None
        assert detect_outliers(sample) is None
        assert FindingSynthesizer().zscore(zscore_outliers(sample)) == []

    def test_single_extreme_value_is_flagged_high(self):
        sample = make_sample([500.0] * 30 + [5_000.0])
        result = zscore_outliers(sample)

        outliers = result.outliers
        assert len(outliers) == 1
        assert outliers[0].item.id == "T30"
        assert outliers[0].z_score == pytest.approx(30 / math.sqrt(31))
        assert result.max_abs_z > 5
        assert result.severity is Severity.HIGH
        assert result.is_reportable

    def test_zero_std_flags_nothing(self):
        result = zscore_outliers(make_sample([250.0] * 40))
        assert result.std == 0
        assert result.outliers == ()
        assert all(i.z_score == 0 for i in result.items)

    def test_uses_sample_standard_deviation(self):
        amounts = [float(i) for i in range(1, 31)]
        result = zscore_outliers(make_sample(amounts))
        assert result.mean == pytest.approx(15.5)
        assert result.std == pytest.approx(math.sqrt(sum((a - 15.5) ** 2 for a in amounts) / 29))

    def test_large_outlier_share_is_not_reportable(self):
        sample = make_sample([0.0] * 20 + [100.0] * 10)
        result = zscore_outliers(sample, threshold=1.0)

        assert len(result.outliers) == 10
        assert not result.is_reportable
        assert FindingSynthesizer().zscore(result) == []

    @pytest.mark.parametrize("max_z, expected", [
        (5.5, Severity.HIGH),
        (5.0, Severity.MEDIUM),
        (4.5, Severity.MEDIUM),
        (4.0, Severity.LOW),
        (3.5, Severity.LOW),
    ])
    def test_severity_from_max_z(self, max_z, expected):
        items = tuple(
            ZScoreItem(item=SampleItem(id=f"T{i}", amount=float(i)), z_score=z, is_outlier=abs(z) > 3)
            for i, z in enumerate([0.1] * 40 + [-max_z, 3.2])
        )
        result = ZScoreResult(sample_size=42, mean=0.0, std=1.0, threshold=3.0, items=items)
        assert result.max_abs_z == max_z
        assert result.severity is expected

    def test_shuffle_keeps_z_scores(self):
        amounts = [float(10 + (i * 37) % 101) for i in range(60)] + [9_999.0]
        shuffled = list(amounts)
        random.Random(3).shuffle(shuffled)

        a = {z.item.amount: z.z_score for z in zscore_outliers(make_sample(amounts)).items}
        b = {z.item.amount: z.z_score for z in zscore_outliers(make_sample(shuffled)).items}
        assert a == b


class TestQuartiles:
    def test_odd_sample_excludes_median(self):
        q = quartiles([9, 1, 8, 2, 7, 3, 6, 4, 5])
        assert (q.q1, q.q2, q.q3) == (2.5, 5.0, 7.5)

    def test_even_sample(self):
        q = quartiles(list(range(1, 9)))
        assert (q.q1, q.q2, q.q3) == (2.5, 4.5, 6.5)
        assert q.iqr == 4.0

    def test_constructed_iqr_sample(self):
        q = quartiles(_iqr_sample(650.0).amounts)
        assert q.q1 == 100.0
        assert q.q3 == 200.0
        assert q.iqr == 100.0


class TestIQR:
    @pytest.mark.parametrize("value, expected", [
        (650.0, IQRClass.EXTREME),
        (450.0, IQRClass.MILD),
        (250.0, IQRClass.NONE),
        (350.0, IQRClass.NONE),
        (351.0, IQRClass.MILD),
        (500.0, IQRClass.MILD),
        (500.5, IQRClass.EXTREME),
        (-150.0, IQRClass.MILD),
        (-201.0, IQRClass.EXTREME),
        (150.0, IQRClass.NONE),
    ])
    def test_classify(self, value, expected):
        assert classify_iqr(value, Quartiles(q1=100.0, q2=150.0, q3=200.0)) is expected

    def test_extreme_value_produces_finding(self):
        result = iqr_outliers(_iqr_sample(650.0))

        assert [e.item.amount for e in result.extreme] == [650.0]
        findings = FindingSynthesizer().iqr(result)
        assert len(findings) == 1
        assert findings[0].severity is Severity.MEDIUM
        assert findings[0].evidence_refs == ("EVD-T39",)

    def test_mild_value_produces_no_finding(self):
        result = iqr_outliers(_iqr_sample(450.0))

        assert [m.item.amount for m in result.mild] == [450.0]
        assert result.extreme == ()
        assert FindingSynthesizer().iqr(result) == []

    def test_below_minimum_size_returns_none(self):
        # 29 items, however extreme the last one
        result = iqr_outliers(make_sample([1.0] * 28 + [1e6]))
        assert result is None
        assert FindingSynthesizer().iqr(result) == []


def test_detect_outliers_frame():
    result = detect_outliers(make_sample([500.0] * 30 + [5_000.0]))
    frame = result.to_frame()
    assert list(frame.columns) == ["id", "amount", "z_score", "z_outlier", "iqr_class"]
    assert frame["z_outlier"].sum() == 1


@pytest.mark.parametrize("count, total, expected", [
    (0, 0, 0),
    (1, 200, 15),
    (3, 200, 35),
    (5, 200, 55),
    (15, 200, 75),
    (30, 200, 90),
])
def test_score_outlier_density(count, total, expected):
    assert score_outlier_density(count, total) == expected
