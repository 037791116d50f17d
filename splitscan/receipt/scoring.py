"""OCR result scoring and selection.

Ranks raw OCR outputs by how receipt-shaped their text is. Scoring is a pure
function of the text and the engine confidence, so ties are broken the same
way on every run.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from splitscan.domain.receipt import OCRPassResult, ScoredResult

RECEIPT_KEYWORDS = (
    "SUBTOTAL",
    "TOTAL",
    "GST",
    "TAX",
    "EFTPOS",
    "BILL",
    "INVOICE",
    "RECEIPT",
    "AMOUNT",
    "DUE",
    "BALANCE",
    "PAYMENT",
    "CASH",
    "CARD",
    "DATE",
    "TIME",
    "MERCHANT",
    "RESTAURANT",
    "CAFE",
    "STORE",
)

LOW_CONFIDENCE_SCORE = 50

ITEM_LINE_BONUS = 20
PARTIAL_LINE_BONUS = 10
KEYWORD_BONUS = 10
MIXED_LINE_BONUS = 5
LINE_COUNT_CAP = 40
PRICE_LINES_BONUS = 10
SHORT_TEXT_LENGTH = 50
SHORT_TEXT_PENALTY = 20
GARBAGE_PENALTY = 30

_QUANTITY = re.compile(r"^\s*\d+\s*[xX]?\s+")
_PRICE = re.compile(r"\d+\.\d{2}")
_ALNUM = re.compile(r"[A-Za-z0-9]")


def _score_one(result: OCRPassResult, index: int) -> ScoredResult:
    text = result.text
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    reasons: list[str] = []
    score = 0.0

    item_lines = 0
    price_lines = 0
    for line in lines:
        has_quantity = _QUANTITY.search(line) is not None
        has_price = _PRICE.search(line) is not None
        if has_price:
            price_lines += 1
        if has_quantity and has_price:
            item_lines += 1
            score += ITEM_LINE_BONUS
        elif has_quantity or has_price:
            score += PARTIAL_LINE_BONUS
    if item_lines:
        reasons.append(f"Found {item_lines} item-like lines")

    upper = text.upper()
    keywords = sum(1 for keyword in RECEIPT_KEYWORDS if keyword in upper)
    score += keywords * KEYWORD_BONUS
    if keywords:
        reasons.append(f"Found {keywords} receipt keywords")

    mixed = sum(1 for line in lines if re.search(r"[A-Za-z]", line) and re.search(r"\d", line))
    score += mixed * MIXED_LINE_BONUS
    if mixed:
        reasons.append(f"{mixed} lines with letters and numbers")

    if lines:
        score += min(len(lines) * 2, LINE_COUNT_CAP)
        reasons.append(f"{len(lines)} lines detected")

    if price_lines >= 3:
        score += PRICE_LINES_BONUS
        reasons.append("Consistent price formatting detected")

    if len(text) < SHORT_TEXT_LENGTH:
        score -= SHORT_TEXT_PENALTY
        reasons.append("Text too short (penalty)")

    visible = re.sub(r"\s", "", text)
    if visible and len(_ALNUM.findall(visible)) / len(visible) < 0.5:
        score -= GARBAGE_PENALTY
        reasons.append("Too many non-alphanumeric characters (penalty)")

    score += result.confidence * 10
    if result.confidence > 0.8:
        reasons.append("High OCR confidence")

    return ScoredResult(
        result=result,
        score=max(0.0, score),
        item_line_count=item_lines,
        keyword_count=keywords,
        reasons=tuple(reasons),
        index=index,
    )


def score_ocr_results(results: Sequence[OCRPassResult]) -> list[ScoredResult]:
    """Score every result; best first, ties by engine confidence then source order."""
    scored = [_score_one(result, index) for index, result in enumerate(results)]
    return sorted(scored, key=lambda s: (-s.score, -s.result.confidence, s.index))


def select_best_ocr_result(results: Sequence[OCRPassResult]) -> ScoredResult | None:
    scored = score_ocr_results(results)
    return scored[0] if scored else None


def is_low_confidence(scored: ScoredResult | None) -> bool:
    """Low-confidence results route the caller to manual entry."""
    return scored is None or scored.score < LOW_CONFIDENCE_SCORE
