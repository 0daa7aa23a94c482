"""
Statistical anomaly detection for monetary amounts.

Tests a collection of amounts for signs of fabrication, estimation or
structuring and turns the statistics into evidence-linked findings and a
0-100 composite risk score.

Usage:
    from statistical_anomalies import analyze

    result = analyze(transactions)
    print(result.score.value, result.score.interpretation)
    print(result.findings_frame())
"""

from .config import (
    Category,
    Conformity,
    DigitPosition,
    EngineConfig,
    FindingStatus,
    IQRClass,
    Likelihood,
    Severity,
    Thresholds,
)
from .data_loader import Sample, SampleItem, from_amounts, load_ledger_entries, load_transactions
from .engine import AnalysisResult, AnalyzerResults, analyze
from .findings import CounterHypothesis, FinancialImpact, Finding, FindingSynthesizer
from .scoring import Score, ScoreDriver, score_findings

__all__ = [
    # Entry point
    "analyze",
    "AnalysisResult",
    "AnalyzerResults",
    "EngineConfig",
    # Input
    "Sample",
    "SampleItem",
    "load_transactions",
    "load_ledger_entries",
    "from_amounts",
    # Output
    "Finding",
    "CounterHypothesis",
    "FinancialImpact",
    "FindingSynthesizer",
    "Score",
    "ScoreDriver",
    "score_findings",
    # Enumerations
    "Category",
    "Conformity",
    "DigitPosition",
    "FindingStatus",
    "IQRClass",
    "Likelihood",
    "Severity",
    "Thresholds",
]
