"""Tests for receipt-level sanity checks and correction proposals."""

from decimal import Decimal

import pytest

from splitscan.domain.receipt import CorrectionType, ReceiptContext, ReconstructedLineItem
from splitscan.receipt.validate import SanityRules, auto_correct_amount, build_sanity_rules, check_item_sanity


def _item(
    name: str,
    total: str,
    *,
    quantity: int = 1,
    unit_price: str | None = None,
    confidence: float = 0.8,
    derived: bool = False,
) -> ReconstructedLineItem:
    return ReconstructedLineItem(
        quantity=quantity,
        item_name=name,
        unit_price=Decimal(unit_price) if unit_price is not None else None,
        line_total=Decimal(total),
        confidence=confidence,
        needs_review=False,
        review_reasons=(),
        original_line=f"{name} {total}",
        unit_price_derived=derived,
    )


def _codes(result) -> list[str]:
    return [reason.code for reason in result.review_reasons]


def test_clean_receipt_passes_untouched() -> None:
    items = (_item("Toast", "8.00"), _item("Salad", "11.00"), _item("Soup", "9.50"))
    context = ReceiptContext(items=items, receipt_total=Decimal("28.50"))

    for item in items:
        result = check_item_sanity(item, context)
        assert result.review_reasons == ()
        assert result.needs_review is False
        assert result.confidence == pytest.approx(0.8)


def test_order_of_magnitude_outlier() -> None:
    pasta = _item("Pasta", "95.00")
    items = (_item("Toast", "8.00"), _item("Salad", "11.00"), _item("Soup", "9.50"), pasta)
    context = ReceiptContext(items=items)

    result = check_item_sanity(pasta, context)

    assert "exceeds_max_item" in _codes(result)
    assert "order_of_magnitude" in _codes(result)
    assert result.confidence <= 0.4
    assert result.needs_review is True
    assert result.is_suspicious


def test_shifted_decimal_proposal_for_outlier() -> None:
    pasta = _item("Pasta", "95.00")
    items = (_item("Toast", "8.00"), _item("Salad", "11.00"), _item("Soup", "9.50"), pasta)

    proposals = auto_correct_amount(pasta.line_total, ReceiptContext(items=items), exclude=pasta)

    assert len(proposals) == 1
    assert proposals[0].suggested_value == Decimal("9.50")
    assert proposals[0].correction_type is CorrectionType.SHIFTED_DECIMAL
    assert proposals[0].confidence == pytest.approx(0.5)
    # Proposals never mutate the item
    assert pasta.line_total == Decimal("95.00")


def test_extra_digit_and_missing_decimal_proposals() -> None:
    items = (_item("Steak", "28.00"), _item("Wine", "31.00"), _item("Fish", "30.00"))
    context = ReceiptContext(items=items)

    extra = auto_correct_amount(Decimal("529.95"), context)
    assert extra[0].suggested_value == Decimal("29.95")
    assert extra[0].correction_type is CorrectionType.EXTRA_DIGIT

    missing = auto_correct_amount(Decimal("2950"), context)
    assert missing[0].suggested_value == Decimal("29.50")
    assert missing[0].correction_type is CorrectionType.MISSING_DECIMAL


def test_no_proposal_without_other_items() -> None:
    item = _item("Pasta", "95.00")

    assert auto_correct_amount(item.line_total, ReceiptContext(items=(item,)), exclude=item) == []


def test_low_unit_price_food_item_suggests_leading_digit() -> None:
    burger = _item("Burger", "0.95")
    items = (burger, _item("Steak", "25.00"), _item("Wine", "18.00"))

    result = check_item_sanity(burger, ReceiptContext(items=items))

    assert "low_unit_price" in _codes(result)
    assert result.confidence <= 0.5
    assert len(result.suggested_corrections) == 1
    proposal = result.suggested_corrections[0]
    assert proposal.suggested_value == Decimal("20.95")
    assert proposal.correction_type is CorrectionType.MISSING_LEADING_DIGIT
    assert proposal.field == "line_total"


def test_line_total_exceeding_receipt_total() -> None:
    wine = _item("Wine", "80.00")
    items = (wine, _item("Bread", "5.00"))

    result = check_item_sanity(wine, ReceiptContext(items=items, receipt_total=Decimal("40.00")))

    assert "exceeds_receipt_total" in _codes(result)
    assert result.confidence <= 0.3


def test_uncommon_cents_when_others_are_round() -> None:
    odd = _item("Cake", "6.37")
    items = (odd, _item("Tea", "4.50"), _item("Scone", "5.00"), _item("Jam", "5.95"))

    result = check_item_sanity(odd, ReceiptContext(items=items))

    assert _codes(result) == ["uncommon_cents"]
    assert result.confidence == pytest.approx(0.7)
    assert result.review_reasons[0].render() == "Price ends with uncommon cents (.37) - may be OCR error"


def test_suspicious_quantity() -> None:
    rolls = _item("Rolls", "8.00", quantity=8, unit_price="1.00")
    items = (rolls, _item("Butter", "4.00"), _item("Milk", "3.50"))

    result = check_item_sanity(rolls, ReceiptContext(items=items))

    assert "suspicious_quantity" in _codes(result)


def test_quantity_mismatch_skipped_for_derived_unit_price() -> None:
    tea = _item("Tea", "6.00", quantity=2, unit_price="3.00", derived=True)
    mismatched = _item("Soda", "5.00", quantity=3, unit_price="2.00")
    context = ReceiptContext(items=(tea, mismatched, _item("Cake", "4.00")))

    assert "quantity_mismatch" not in _codes(check_item_sanity(tea, context))
    assert "quantity_mismatch" in _codes(check_item_sanity(mismatched, context))


@pytest.mark.parametrize("starting", [1.0, 0.8, 0.55, 0.2])
def test_sanity_never_raises_confidence(starting: float) -> None:
    items = (
        _item("Burger", "0.95", confidence=starting),
        _item("Pasta", "95.00", confidence=starting),
        _item("Soup", "9.50", confidence=starting),
        _item("Rolls", "8.37", quantity=8, unit_price="1.00", confidence=starting),
    )
    context = ReceiptContext(items=items, receipt_total=Decimal("50.00"))

    for item in items:
        assert check_item_sanity(item, context).confidence <= starting


def test_rule_layers_override_defaults() -> None:
    rules = build_sanity_rules(({"quantity": {"suspicious_above": 20}}, {"cents": {"common": [0]}}))

    assert isinstance(rules, SanityRules)
    assert rules.suspicious_quantity == 20
    assert rules.common_cents == frozenset({0})
    assert rules.min_food_price == Decimal("1.00")
