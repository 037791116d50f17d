"""Receipt-level sanity checks.

Every item is re-evaluated against the other items on the same receipt and
any extracted totals. Rules are independent and only ever lower confidence
(via ``min``); corrections are suggested, never applied.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from splitscan.domain.receipt import (
    CorrectionProposal,
    CorrectionType,
    ReceiptContext,
    ReconstructedLineItem,
    ReviewReason,
    SanityCheckResult,
)
from splitscan.receipt.validate.rules import DEFAULT_SANITY_RULES, SanityRules

REVIEW_THRESHOLD = 0.7

LOW_UNIT_PRICE_CONFIDENCE = 0.5
EXCEEDS_TOTAL_CONFIDENCE = 0.3
UNCOMMON_CENTS_CONFIDENCE = 0.7
SUSPICIOUS_QUANTITY_CONFIDENCE = 0.5
EXCEEDS_MAX_CONFIDENCE = 0.4
MAGNITUDE_CONFIDENCE = 0.5
MISMATCH_CONFIDENCE = 0.6

MISSING_LEADING_DIGIT_CONFIDENCE = 0.5


def cents_of(amount: Decimal) -> int:
    """Minor units of ``amount`` (0-99)."""
    fraction = amount - int(amount)
    return int((fraction * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)) % 100


def effective_unit_price(item: ReconstructedLineItem) -> Decimal:
    if item.unit_price is not None:
        return item.unit_price
    return item.line_total / item.quantity


def _is_food_item(name: str, rules: SanityRules) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in rules.food_keywords)


def _mean(values: list[Decimal]) -> Decimal:
    return sum(values, Decimal(0)) / len(values)


def check_item_sanity(
    item: ReconstructedLineItem,
    context: ReceiptContext,
    *,
    rules: SanityRules | None = None,
) -> SanityCheckResult:
    """Check one item against the whole receipt."""
    rules = rules or DEFAULT_SANITY_RULES
    confidence = item.confidence
    reasons: list[ReviewReason] = []
    corrections: list[CorrectionProposal] = []

    others = [other.line_total for other in context.others(item)]
    other_mean = _mean(others) if others else None

    # Rule 1: food item priced under a dollar, likely a dropped leading digit
    unit_price = effective_unit_price(item)
    if unit_price < rules.min_food_price and _is_food_item(item.item_name, rules):
        reasons.append(ReviewReason.of("low_unit_price", unit_price=unit_price))
        confidence = min(confidence, LOW_UNIT_PRICE_CONFIDENCE)
        if other_mean is not None and rules.typical_min < other_mean < rules.typical_max:
            suggested = Decimal(f"{rules.suggested_leading_digit}{unit_price:.2f}")
            if rules.typical_min < suggested < rules.typical_max:
                corrections.append(
                    CorrectionProposal(
                        field="unit_price" if item.unit_price is not None else "line_total",
                        original_value=unit_price,
                        suggested_value=suggested,
                        correction_type=CorrectionType.MISSING_LEADING_DIGIT,
                        confidence=MISSING_LEADING_DIGIT_CONFIDENCE,
                        reason=f"Missing leading digit? {unit_price:.2f} → {suggested:.2f}",
                    )
                )

    # Rule 2: line total larger than the whole receipt
    if context.receipt_total and item.line_total > context.receipt_total * rules.receipt_total_ratio:
        reasons.append(
            ReviewReason.of(
                "exceeds_receipt_total",
                line_total=item.line_total,
                receipt_total=context.receipt_total,
            )
        )
        confidence = min(confidence, EXCEEDS_TOTAL_CONFIDENCE)

    # Rule 3: uncommon cents, only meaningful when the rest of the receipt is "round"
    cents = cents_of(item.line_total)
    if cents not in rules.common_cents and others:
        common = sum(1 for total in others if cents_of(total) in rules.common_cents)
        if common * 2 >= len(others):
            reasons.append(ReviewReason.of("uncommon_cents", cents=f"{cents:02d}"))
            confidence = min(confidence, UNCOMMON_CENTS_CONFIDENCE)

    # Rule 4
    if item.quantity > rules.suspicious_quantity:
        reasons.append(ReviewReason.of("suspicious_quantity", quantity=item.quantity))
        confidence = min(confidence, SUSPICIOUS_QUANTITY_CONFIDENCE)

    # Rule 5: magnitude against the other items
    if others and other_mean is not None:
        max_total = max(others)
        if item.line_total > max_total * rules.max_item_ratio:
            reasons.append(ReviewReason.of("exceeds_max_item", line_total=item.line_total, max_total=max_total))
            confidence = min(confidence, EXCEEDS_MAX_CONFIDENCE)
        ratio = item.line_total / other_mean
        if ratio > rules.mean_item_ratio:
            reasons.append(ReviewReason.of("order_of_magnitude", ratio=f"{ratio:.1f}"))
            confidence = min(confidence, MAGNITUDE_CONFIDENCE)

    # Rule 6: only an asserted unit price can disagree with the total
    if item.quantity > 1 and item.unit_price is not None and not item.unit_price_derived and item.unit_price > 0:
        expected = item.unit_price * item.quantity
        if abs(item.line_total - expected) > rules.quantity_tolerance:
            reasons.append(
                ReviewReason.of(
                    "quantity_mismatch",
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    expected=expected,
                    actual=item.line_total,
                )
            )
            confidence = min(confidence, MISMATCH_CONFIDENCE)

    confidence = max(0.0, min(1.0, confidence))
    return SanityCheckResult(
        confidence=confidence,
        needs_review=bool(reasons) or confidence < REVIEW_THRESHOLD,
        review_reasons=tuple(reasons),
        suggested_corrections=tuple(corrections),
    )
