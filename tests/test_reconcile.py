from __future__ import annotations

import math
import random

import pytest

from snapspend.modules.extraction.fallback import synthesize_emergency_record, synthesize_fallback
from snapspend.modules.extraction.reconcile import NOMINAL_TOTAL, reconcile
from snapspend.modules.extraction.schemas import LineItem, ReceiptCandidate


def test_reconcile_rebuilds_missing_total_from_items_and_tax():
    candidate = ReceiptCandidate(
        items=[
            LineItem(description="Tea", quantity=2, price=15.0),
            LineItem(description="Samosa", quantity=0, price=20.0),
        ],
        subtotal=999.0,
        tax=5.5,
    )

    result = reconcile(candidate)

    # quantity 0 counts as 1
    assert result.candidate.subtotal == pytest.approx(50.0)
    assert result.candidate.total == pytest.approx(55.5)
    assert result.items_total == pytest.approx(50.0)
    assert result.needs_review is False


def test_reconcile_zero_total_is_treated_as_missing():
    candidate = ReceiptCandidate(
        items=[LineItem(description="Fuel", quantity=1, price=1500.0)],
        total=0,
    )

    result = reconcile(candidate)

    assert result.candidate.total == pytest.approx(1500.0)
    assert result.candidate.subtotal == pytest.approx(1500.0)


def test_reconcile_keeps_printed_total_even_when_items_disagree():
    candidate = ReceiptCandidate(
        items=[LineItem(description="Thali", quantity=1, price=180.0)],
        subtotal=180.0,
        tax=9.0,
        total=500.0,
    )

    result = reconcile(candidate)

    assert result.candidate.total == 500.0
    assert result.candidate.subtotal == 180.0
    assert result.needs_review is False
    assert any("printed total" in w for w in result.warnings)


def test_reconcile_does_not_warn_when_items_match_total():
    candidate = ReceiptCandidate(
        items=[LineItem(description="Coffee", quantity=2, price=2.5)],
        total=5.0,
    )

    result = reconcile(candidate)

    assert result.candidate.total == 5.0
    assert result.warnings == []


def test_reconcile_uses_subtotal_when_no_items_or_total():
    result = reconcile(ReceiptCandidate(subtotal=72.25, tax=3.0))

    assert result.candidate.total == pytest.approx(72.25)
    assert result.needs_review is False


def test_reconcile_nominal_default_when_nothing_usable():
    result = reconcile(ReceiptCandidate(total=-3, subtotal=0))

    assert result.candidate.total == NOMINAL_TOTAL
    assert result.candidate.total > 0
    assert result.needs_review is True


def test_reconcile_guard_replaces_non_positive_rebuilt_total():
    candidate = ReceiptCandidate(
        items=[LineItem(description="Discount", quantity=1, price=-20.0)],
        tax=1.0,
    )

    result = reconcile(candidate)

    assert result.candidate.total == NOMINAL_TOTAL
    assert result.needs_review is True


def test_reconcile_guard_handles_unvalidated_non_finite_values():
    candidate = ReceiptCandidate.model_construct(
        store_name=None,
        date=None,
        items=[LineItem.model_construct(description="x", quantity=math.inf, price=math.nan)],
        subtotal=math.nan,
        tax=math.nan,
        total=math.nan,
        category=None,
    )

    result = reconcile(candidate)

    assert math.isfinite(result.candidate.total)
    assert result.candidate.total == NOMINAL_TOTAL
    assert result.needs_review is True


def test_synthesized_records_pass_reconciliation_unchanged():
    fallback = reconcile(synthesize_fallback())
    emergency = reconcile(synthesize_emergency_record())

    assert fallback.candidate.total == 10.0
    assert fallback.candidate.store_name == "Receipt Upload"
    assert emergency.candidate.total == 5.0
    assert emergency.candidate.store_name == "Manual Entry"


def test_synthesized_records_carry_one_placeholder_item():
    fallback = synthesize_fallback()
    emergency = synthesize_emergency_record()

    assert len(fallback.items) == 1
    assert fallback.items[0].description == "Receipt item"
    assert fallback.items[0].price == 10.0
    assert len(emergency.items) == 1
    assert emergency.items[0].price == 5.0
    assert fallback.model_dump(mode="json")["items"] == [
        {"description": "Receipt item", "quantity": 1.0, "price": 10.0}
    ]


_WEIRD_NUMBERS = [
    None,
    0,
    -0.0,
    -1,
    -1e9,
    0.001,
    0.004,
    0.005,
    1,
    12.345,
    1e308,
    math.inf,
    -math.inf,
    math.nan,
    "abc",
    "12.50",
    True,
]


def _random_candidate(rng: random.Random) -> ReceiptCandidate:
    items = [
        LineItem.model_construct(
            description="item",
            quantity=rng.choice(_WEIRD_NUMBERS),
            price=rng.choice(_WEIRD_NUMBERS),
        )
        for _ in range(rng.randint(0, 4))
    ]
    return ReceiptCandidate.model_construct(
        store_name=None,
        date=None,
        items=items,
        subtotal=rng.choice(_WEIRD_NUMBERS),
        tax=rng.choice(_WEIRD_NUMBERS),
        total=rng.choice(_WEIRD_NUMBERS),
        category=None,
    )


def test_reconcile_always_yields_finite_positive_total():
    rng = random.Random(20261017)
    for _ in range(2000):
        candidate = _random_candidate(rng)
        result = reconcile(candidate)
        total = result.candidate.total
        assert isinstance(total, float)
        assert math.isfinite(total)
        assert total > 0
        assert round(total, 2) > 0


def test_reconcile_never_changes_a_positive_printed_total():
    rng = random.Random(7)
    for _ in range(500):
        total = round(rng.uniform(0.01, 10_000), 2)
        items = [
            LineItem(description="x", quantity=rng.randint(0, 5), price=rng.uniform(0, 500))
            for _ in range(rng.randint(0, 5))
        ]
        result = reconcile(ReceiptCandidate(items=items, total=total))
        assert result.candidate.total == total
