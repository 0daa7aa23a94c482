"""
Sample loading utilities.

Turns amount-bearing records (transactions or ledger entries) into an
immutable `Sample`. Records may be mappings, plain objects exposing the same
attributes, or rows of a pandas DataFrame.
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


# === Field names ===
ID_FIELDS = ("id", "transaction_id", "canonical_id")
AMOUNT_FIELD = "amount"
DEBIT_FIELD = "debit_amount"
CREDIT_FIELD = "credit_amount"
EVIDENCE_FIELD = "evidence_refs"
VENDOR_FIELDS = ("to_entity_id", "vendor_id", "vendor")
ACCOUNT_FIELDS = ("from_account_id", "to_account_id", "account_id")
DATE_FIELDS = ("transaction_date", "entry_date", "date")


@dataclass(frozen=True)
class SampleItem:
    """One amount with its traceability references."""
    id: str
    amount: float
    evidence_refs: Tuple[str, ...] = ()
    vendor: Optional[str] = None
    account: Optional[str] = None
    date: Optional[str] = None


@dataclass(frozen=True)
class Sample:
    """Ordered, immutable snapshot of amounts for one analysis run."""
    items: Tuple[SampleItem, ...] = ()
    dropped: int = 0
    source: str = "transactions"

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    @property
    def amounts(self) -> np.ndarray:
        """Amounts as a float array (a fresh copy on every access)."""
        return np.fromiter((item.amount for item in self.items), dtype=float, count=len(self.items))

    def evidence_for(self, items: Iterable[SampleItem]) -> Tuple[str, ...]:
        """Union of evidence refs for `items`, first occurrence order."""
        return union_refs(item.evidence_refs for item in items)

    def to_frame(self) -> pd.DataFrame:
        """Tabular view of the sample."""
        return pd.DataFrame([
            {
                "id": item.id,
                "amount": item.amount,
                "evidence_refs": list(item.evidence_refs),
                "vendor": item.vendor,
                "account": item.account,
                "date": item.date,
            }
            for item in self.items
        ], columns=["id", "amount", "evidence_refs", "vendor", "account", "date"])


RecordSource = Union[pd.DataFrame, Iterable[Any]]


def union_refs(ref_lists: Iterable[Iterable[str]]) -> Tuple[str, ...]:
    """Deduplicate references while keeping first-seen order."""
    seen = {}
    for refs in ref_lists:
        for ref in refs:
            seen.setdefault(ref, None)
    return tuple(seen)


def _get(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    if isinstance(record, pd.Series):
        return record.get(name, default)
    return getattr(record, name, default)


def _first(record: Any, names: Tuple[str, ...]) -> Optional[Any]:
    for name in names:
        value = _get(record, name)
        if value is not None and not (isinstance(value, float) and math.isnan(value)):
            return value
    return None


def to_finite_float(value: Any) -> Optional[float]:
    """Convert to float, returning None for missing, non-numeric or non-finite values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal, np.integer, np.floating)):
        try:
            result = float(value)
        except (OverflowError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            result = float(value.replace(",", "").strip())
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def _evidence(record: Any) -> Tuple[str, ...]:
    refs = _get(record, EVIDENCE_FIELD)
    if refs is None:
        return ()
    if isinstance(refs, str):
        return (refs,)
    try:
        return tuple(str(ref) for ref in refs)
    except TypeError:
        return ()


def _is_missing(value: Any) -> bool:
    """None, NaN and pandas NA all mean an empty cell."""
    return value is None or (pd.api.types.is_scalar(value) and bool(pd.isna(value)))


def _ledger_amount(record: Any) -> Any:
    debit = _get(record, DEBIT_FIELD)
    credit = _get(record, CREDIT_FIELD)
    if _is_missing(debit) and _is_missing(credit):
        return _get(record, AMOUNT_FIELD)
    # an empty side of a one-sided entry counts as zero
    parts = [0.0 if _is_missing(v) else to_finite_float(v) for v in (debit, credit)]
    if any(p is None for p in parts):
        return None
    return parts[0] + parts[1]


def _iter_records(records: RecordSource) -> Iterable[Any]:
    if isinstance(records, pd.DataFrame):
        return (row for _, row in records.iterrows())
    return records


def _build(records: RecordSource, source: str, ledger: bool) -> Sample:
    items = []
    dropped = 0

    for index, record in enumerate(_iter_records(records)):
        raw = _ledger_amount(record) if ledger else _get(record, AMOUNT_FIELD)
        amount = to_finite_float(raw)
        if amount is None:
            dropped += 1
            continue

        record_id = _first(record, ID_FIELDS)
        items.append(SampleItem(
            id=str(record_id) if record_id is not None else f"{source}-{index}",
            amount=amount,
            evidence_refs=_evidence(record),
            vendor=_first(record, VENDOR_FIELDS),
            account=_first(record, ACCOUNT_FIELDS),
            date=str(_first(record, DATE_FIELDS) or "") or None,
        ))

    if dropped:
        logger.warning("Dropped %d %s record(s) with missing or non-finite amounts", dropped, source)

    return Sample(items=tuple(items), dropped=dropped, source=source)


def load_transactions(records: RecordSource) -> Sample:
    """
    Build a Sample from transaction records.

    Args:
        records: Mappings, objects or a DataFrame exposing at least `amount`
            and optionally `id`, `evidence_refs`, `to_entity_id`,
            `from_account_id` and `transaction_date`.

    Returns:
        Sample with non-finite and missing amounts removed.

    Examples:
        >>> sample = load_transactions([{"id": "T1", "amount": 120.5, "evidence_refs": ["EVD-1"]}])
        >>> len(sample)
        1
    """
    return _build(records, "transactions", ledger=False)


def load_ledger_entries(records: RecordSource) -> Sample:
    """Build a Sample from ledger entries; the amount is debit + credit."""
    return _build(records, "ledger entries", ledger=True)


def from_amounts(amounts: Iterable[Any], source: str = "amounts") -> Sample:
    """Build a Sample from bare amounts (no evidence references)."""
    return _build(({"amount": a} for a in amounts), source, ledger=False)


def as_sample(data: Union[Sample, RecordSource]) -> Sample:
    """Pass a Sample through, load anything else as transactions."""
    if isinstance(data, Sample):
        return data
    return load_transactions(data)
