"""Tests for sample loading."""

from types import SimpleNamespace

import pandas as pd

from statistical_anomalies.data_loader import (
    from_amounts,
    load_ledger_entries,
    load_transactions,
    to_finite_float,
    union_refs,
)


class TestToFiniteFloat:
    def test_numbers(self):
        assert to_finite_float(5) == 5.0
        assert to_finite_float("1,234.50") == 1234.5

    def test_rejects(self):
        for value in (None, True, "abc", float("nan"), float("-inf"), [1]):
            assert to_finite_float(value) is None


class TestLoadTransactions:
    def test_mappings(self):
        sample = load_transactions([
            {"id": "T1", "amount": 120.5, "evidence_refs": ["EVD-1", "EVD-2"], "to_entity_id": "V1"},
            {"amount": 80, "evidence_refs": "EVD-3"},
        ])
        assert len(sample) == 2
        assert sample.items[0].evidence_refs == ("EVD-1", "EVD-2")
        assert sample.items[0].vendor == "V1"
        assert sample.items[1].id == "transactions-1"
        assert sample.items[1].evidence_refs == ("EVD-3",)
        assert list(sample.amounts) == [120.5, 80.0]

    def test_objects(self):
        sample = load_transactions([SimpleNamespace(id="T1", amount=42.0, evidence_refs=())])
        assert sample.items[0].amount == 42.0

    def test_dataframe(self):
        frame = pd.DataFrame({"id": ["A", "B", "C"], "amount": [1.0, None, 3.0]})
        sample = load_transactions(frame)
        assert [item.id for item in sample] == ["A", "C"]
        assert sample.dropped == 1

    def test_to_frame(self):
        frame = load_transactions([{"id": "T1", "amount": 1.0}]).to_frame()
        assert frame.loc[0, "id"] == "T1"


def test_ledger_amount_is_debit_plus_credit():
    sample = load_ledger_entries([
        {"id": "L1", "debit_amount": 100.0, "credit_amount": 0},
        {"id": "L2", "debit_amount": None, "credit_amount": 250.0},
        {"id": "L3", "amount": 75.0},
        {"id": "L4", "debit_amount": "bad", "credit_amount": 1.0},
    ])
    assert [item.amount for item in sample] == [100.0, 250.0, 75.0]
    assert sample.dropped == 1
    assert sample.source == "ledger entries"


def test_from_amounts():
    sample = from_amounts([1, 2.5, float("nan")])
    assert len(sample) == 2
    assert sample.items[0].evidence_refs == ()


def test_union_refs_keeps_first_seen_order():
    assert union_refs([("B", "A"), ("A", "C")]) == ("B", "A", "C")


def test_one_sided_ledger_dataframe():
    frame = pd.DataFrame({
        "debit_amount": [100.0, None, 40.0, None],
        "credit_amount": [None, 250.0, None, None],
    })
    sample = load_ledger_entries(frame)
    assert [item.amount for item in sample] == [100.0, 250.0, 40.0]
    assert sample.dropped == 1


def test_overflowing_amounts_are_dropped():
    assert to_finite_float(10 ** 400) is None
    sample = load_transactions([{"id": "T1", "amount": 10 ** 400}, {"id": "T2", "amount": 5}])
    assert [item.id for item in sample] == ["T2"]
    assert sample.dropped == 1
