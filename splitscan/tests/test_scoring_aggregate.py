"""Tests for OCR result scoring and receipt confidence aggregation."""

from decimal import Decimal

import pytest
from conftest import RECEIPT_TEXT

from splitscan.domain.receipt import OCRPassResult, ParsedItem
from splitscan.receipt.aggregate import aggregate
from splitscan.receipt.scoring import is_low_confidence, score_ocr_results, select_best_ocr_result


def _result(text: str, confidence: float = 0.7, variant: str = "light", psm: int = 6) -> OCRPassResult:
    return OCRPassResult(text=text, confidence=confidence, variant=variant, psm=psm)


def test_receipt_shaped_text_beats_garbage() -> None:
    garbage = _result("~~ ## ;; ..\n|| // ** ^^ !!", confidence=0.9, variant="balanced")
    receipt = _result(RECEIPT_TEXT, confidence=0.6)

    best = select_best_ocr_result([garbage, receipt])

    assert best is not None
    assert best.result is receipt
    assert best.item_line_count == 1
    assert best.keyword_count >= 3
    assert not is_low_confidence(best)


def test_ties_break_on_confidence_then_order() -> None:
    first = _result(RECEIPT_TEXT, confidence=0.5, psm=6)
    second = _result(RECEIPT_TEXT, confidence=0.5, psm=11)
    more_confident = _result(RECEIPT_TEXT, confidence=0.55, psm=11)

    assert [s.result for s in score_ocr_results([first, second])] == [first, second]
    assert select_best_ocr_result([first, more_confident]).result is more_confident


def test_short_text_is_low_confidence() -> None:
    scored = score_ocr_results([_result("hello", confidence=0.2)])[0]

    assert scored.score < 50
    assert is_low_confidence(scored)
    assert is_low_confidence(None)
    assert select_best_ocr_result([]) is None


def test_scoring_is_deterministic() -> None:
    results = [_result(RECEIPT_TEXT), _result("Coffee 3.50\nTOTAL 3.50", psm=11)]

    assert score_ocr_results(results) == score_ocr_results(results)


def _parsed(total: str, confidence: float = 0.8) -> ParsedItem:
    return ParsedItem(
        id="item-001",
        name="Coffee",
        quantity=1,
        unit_price=None,
        total_price=Decimal(total),
        confidence=confidence,
        needs_review=False,
        raw_text=f"Coffee {total}",
    )


def test_aggregate_full_marks_when_total_reconciles() -> None:
    result = aggregate([_parsed("10.00"), _parsed("5.00")], Decimal("15.00"))

    assert result.confidence == pytest.approx(0.5 * 0.8 + 0.2 + 0.15 + 0.15)
    assert result.needs_manual_entry is False


def test_aggregate_total_mismatch_and_missing_total() -> None:
    mismatched = aggregate([_parsed("10.00")], Decimal("15.00"))
    no_total = aggregate([_parsed("10.00")])

    assert mismatched.confidence == pytest.approx(0.4 + 0.2 + 0.15)
    assert no_total.confidence == pytest.approx(0.4 + 0.2)


def test_aggregate_empty_or_low_confidence_needs_manual_entry() -> None:
    assert aggregate([]).needs_manual_entry is True
    assert aggregate([]).confidence == 0.0
    assert aggregate([_parsed("10.00")], low_confidence_ocr=True).needs_manual_entry is True
