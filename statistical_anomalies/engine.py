"""
Statistical anomaly engine entry point.

Runs the analyzers over one immutable sample, then renders and scores:
1. Benford's Law (transactions, optional ledger entries, optional second digit)
2. Dispersion outliers (Z-score, IQR)
3. Amount clustering and structuring
4. Finding synthesis and composite scoring

Analyzers only read the sample and return their own results; this module
is the single place that merges them. A failing analyzer is recorded as an
error string and the others still run.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pandas as pd

from .config import MODULE_NAME, DigitPosition, EngineConfig
from .data_loader import RecordSource, Sample, as_sample, load_ledger_entries
from .detectors.benford import GoodnessOfFitResult, analyze_benford
from .detectors.clustering import ClusterResult, detect_clusters
from .detectors.outliers import IQRResult, ZScoreResult, iqr_outliers, zscore_outliers
from .findings import Finding, FindingSynthesizer, findings_frame
from .scoring import Score, score_findings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalyzerResults:
    """Raw statistics of one run, before synthesis."""
    benford: Optional[GoodnessOfFitResult] = None
    second_digit: Optional[GoodnessOfFitResult] = None
    ledger_benford: Optional[GoodnessOfFitResult] = None
    zscore: Optional[ZScoreResult] = None
    iqr: Optional[IQRResult] = None
    clusters: Optional[ClusterResult] = None


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one run produces. The caller owns any cross-run store."""
    findings: Tuple[Finding, ...]
    score: Score
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    results: AnalyzerResults = field(default_factory=AnalyzerResults)
    module: str = MODULE_NAME
    executed_at: str = field(default="", compare=False)
    duration_ms: float = field(default=0.0, compare=False)

    def findings_frame(self) -> pd.DataFrame:
        return findings_frame(self.findings)

    def summary(self) -> pd.DataFrame:
        """Finding counts per category and severity."""
        frame = self.findings_frame()
        if frame.empty:
            return pd.DataFrame(columns=["category", "severity", "count"])
        return (
            frame.groupby(["category", "severity"]).size()
            .reset_index(name="count")
            .sort_values("count", ascending=False)
            .reset_index(drop=True)
        )


def _run_step(name: str, func: Callable[[], Any], errors: List[str]) -> Any:
    """Run one analyzer; faults become error strings instead of propagating."""
    try:
        return func()
    except Exception as e:
        logger.exception("%s analysis failed", name)
        errors.append(f"{name} analysis error: {e}")
        return None


def analyze(
    transactions: Union[Sample, RecordSource],
    ledger_entries: Optional[Union[Sample, RecordSource]] = None,
    config: Optional[EngineConfig] = None,
    **overrides: Any,
) -> AnalysisResult:
    """
    Run the full statistical anomaly analysis.

    Args:
        transactions: Sample or records exposing `amount` and `evidence_refs`
        ledger_entries: Optional ledger entries (debit + credit) for a second
            Benford test
        config: Tuning parameters; defaults are z 3.0, IQR 1.5 and minimum
            sample sizes 100 (Benford), 30 (outliers), 50 (clustering)
        **overrides: Individual EngineConfig fields, e.g. zscore_threshold=2.5

    Returns:
        AnalysisResult with findings, one score, warnings and errors

    Examples:
        >>> result = analyze([{"id": "T1", "amount": 9500, "evidence_refs": ["EVD-1"]}])
        >>> result.score.value
        10.0
    """
    config = replace(config or EngineConfig(), **overrides)
    started = datetime.now(timezone.utc)
    timestamp = started.isoformat()

    errors: List[str] = []
    warnings: List[str] = []

    sample = as_sample(transactions)
    ledger = None
    if ledger_entries is not None:
        ledger = ledger_entries if isinstance(ledger_entries, Sample) else load_ledger_entries(ledger_entries)

    n = len(sample)
    logger.info("Analyzing %d transactions", n)
    if sample.dropped:
        warnings.append(f"Dropped {sample.dropped} transactions with missing or non-finite amounts")

    # Step 1: digit-law
    benford = second = ledger_benford = None
    if n >= config.min_benford_samples:
        logger.info("Step 1/4: Running Benford's Law analysis...")
        benford = _run_step("Benford", lambda: analyze_benford(sample, DigitPosition.FIRST), errors)
        if config.second_digit:
            second = _run_step(
                "Second-digit Benford", lambda: analyze_benford(sample, DigitPosition.SECOND), errors
            )
        # only amounts >= 10 are tested
        if benford is not None and benford.sample_size < config.min_benford_samples:
            warnings.append(
                f"Insufficient amounts >= 10 for Benford analysis "
                f"(tested {benford.sample_size}, need {config.min_benford_samples}+)"
            )
            logger.warning("Step 1/4: Benford tested only %d amounts >= 10", benford.sample_size)
    else:
        warnings.append(
            f"Insufficient transactions for Benford analysis (need {config.min_benford_samples}+)"
        )
        logger.warning("Step 1/4: Skipping Benford (%d < %d)", n, config.min_benford_samples)

    if ledger is not None and len(ledger) >= config.min_benford_samples:
        ledger_benford = _run_step(
            "Ledger Benford", lambda: analyze_benford(ledger, DigitPosition.FIRST), errors
        )

    # Step 2: dispersion
    zscore = iqr = None
    if n >= config.min_outlier_samples:
        logger.info("Step 2/4: Computing outliers (Z-score, IQR)...")
        zscore = _run_step(
            "Z-score",
            lambda: zscore_outliers(sample, config.zscore_threshold, config.min_outlier_samples),
            errors,
        )
        iqr = _run_step(
            "IQR",
            lambda: iqr_outliers(sample, config.iqr_multiplier, config.min_outlier_samples),
            errors,
        )
    else:
        warnings.append(
            f"Insufficient transactions for outlier detection (need {config.min_outlier_samples}+)"
        )
        logger.warning("Step 2/4: Skipping outliers (%d < %d)", n, config.min_outlier_samples)

    # Step 3: clustering
    clusters = None
    if n >= config.min_cluster_samples:
        logger.info("Step 3/4: Analyzing amount clusters...")
        clusters = _run_step(
            "Cluster", lambda: detect_clusters(sample, config.min_cluster_samples), errors
        )
    else:
        warnings.append(
            f"Insufficient transactions for cluster analysis (need {config.min_cluster_samples}+)"
        )
        logger.warning("Step 3/4: Skipping clustering (%d < %d)", n, config.min_cluster_samples)

    results = AnalyzerResults(
        benford=benford,
        second_digit=second,
        ledger_benford=ledger_benford,
        zscore=zscore,
        iqr=iqr,
        clusters=clusters,
    )

    # Step 4: synthesis and scoring, after every analyzer has finished
    logger.info("Step 4/4: Synthesizing findings...")
    synth = FindingSynthesizer(currency=config.currency, timestamp=timestamp)
    renderers = [
        ("Benford", lambda: synth.benford(benford, "transactions") if benford else []),
        ("Second-digit Benford", lambda: synth.benford(second, "transactions") if second else []),
        ("Ledger Benford", lambda: synth.benford(ledger_benford, "ledger entries") if ledger_benford else []),
        ("Z-score", lambda: synth.zscore(zscore)),
        ("IQR", lambda: synth.iqr(iqr)),
        ("Cluster", lambda: synth.clusters(clusters)),
    ]
    findings: List[Finding] = []
    for name, render in renderers:
        findings.extend(_run_step(f"{name} finding", render, errors) or [])

    score = score_findings(
        findings,
        severity_weights=config.severity_weights,
        calculated_at=timestamp,
    )

    duration_ms = (datetime.now(timezone.utc) - started).total_seconds() * 1000
    logger.info(
        "Statistical analysis complete: %d findings, score %.2f (%d warnings, %d errors)",
        len(findings), score.value, len(warnings), len(errors),
    )

    return AnalysisResult(
        findings=tuple(findings),
        score=score,
        warnings=tuple(warnings),
        errors=tuple(errors),
        metadata={
            "transactions_analyzed": n,
            "transactions_dropped": sample.dropped,
            "ledger_entries_analyzed": len(ledger) if ledger is not None else 0,
            "ledger_entries_dropped": ledger.dropped if ledger is not None else 0,
        },
        results=results,
        executed_at=timestamp,
        duration_ms=duration_ms,
    )
