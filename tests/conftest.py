"""
Pytest fixtures for statistical anomaly tests. Samples are synthetic and
deterministic (no random draws without a fixed seed).
"""

from __future__ import annotations

import pytest

from statistical_anomalies.data_loader import Sample, load_transactions


def make_records(amounts, prefix: str = "T") -> list[dict]:
    """Transaction dicts with one evidence ref per record."""
    return [
        {"id": f"{prefix}{i}", "amount": amount, "evidence_refs": [f"EVD-{prefix}{i}"]}
        for i, amount in enumerate(amounts)
    ]


def make_sample(amounts, prefix: str = "T") -> Sample:
    return load_transactions(make_records(amounts, prefix))


def benford_amounts(n: int) -> list[float]:
    """Log-uniform grid over [10, 100000): leading digits follow Benford's Law."""
    return [10 ** (1 + 4 * (i + 0.5) / n) for i in range(n)]


def leading_one_amounts(n: int = 100) -> list[float]:
    """n amounts in [10, 20): every leading digit is 1."""
    return [10 + i * 0.1 for i in range(n)]


def structuring_amounts(in_band: int, total: int = 60, band_low: float = 9000.0) -> list[float]:
    """`in_band` amounts just below a threshold, the rest spread from 20,000 upward."""
    near = [band_low + 30 * i for i in range(in_band)]
    rest = [20_000 + 100 * i for i in range(total - in_band)]
    return near + rest


@pytest.fixture
def benford_sample() -> Sample:
    return make_sample(benford_amounts(10_000))


@pytest.fixture
def leading_one_sample() -> Sample:
    return make_sample(leading_one_amounts())
