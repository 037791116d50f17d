"""Correction proposals for OCR amount errors.

Three independently scored strategies, each judged against the other items
on the receipt:

- extra_digit: an extra leading digit ("529.95" read for "29.95")
- missing_decimal: a dropped decimal point ("1250" read for "12.50")
- shifted_decimal: the point moved by one place ("95.00" for "9.50")

A candidate is proposed only when it lands strictly closer to the median of
the other items than the value as read. Nothing here mutates an item.
"""

from __future__ import annotations

from decimal import Decimal

from splitscan.domain.receipt import (
    CorrectionField,
    CorrectionProposal,
    CorrectionType,
    ReceiptContext,
    ReconstructedLineItem,
)

EXTRA_DIGIT_CONFIDENCE = 0.7
MISSING_DECIMAL_CONFIDENCE = 0.6
SHIFTED_DECIMAL_CONFIDENCE = 0.5

WIDE_RATIO = (Decimal("0.3"), Decimal("3.0"))
NARROW_RATIO = (Decimal("0.5"), Decimal("2.0"))

_TWO_PLACES = Decimal("0.01")


def _median(values: list[Decimal]) -> Decimal:
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2


def _within(ratio: Decimal, bounds: tuple[Decimal, Decimal]) -> bool:
    low, high = bounds
    return low < ratio < high


def auto_correct_amount(
    value: Decimal,
    context: ReceiptContext,
    *,
    exclude: ReconstructedLineItem | None = None,
    field: CorrectionField = "line_total",
) -> list[CorrectionProposal]:
    """
    Propose corrections for a suspicious amount.

    Args:
        value: The amount as read.
        context: Whole-receipt context.
        exclude: The item the amount belongs to, left out of the statistics.
        field: Which item field the proposals target.

    Returns:
        Proposals ordered by confidence, highest first; empty when no
        candidate improves on the value as read.
    """
    if value <= 0:
        return []
    others = [item.line_total for item in context.others(exclude)]
    if not others:
        return []

    mean = sum(others, Decimal(0)) / len(others)
    median = _median(others)
    distance = abs(value - median)
    candidates: list[tuple[Decimal, CorrectionType, float, tuple[Decimal, Decimal]]] = []

    integer_part = int(value)
    integer_digits = str(integer_part)
    if len(integer_digits) >= 3:
        fraction = value - integer_part
        without_first = Decimal(integer_digits[1:]) + fraction
        candidates.append((without_first, CorrectionType.EXTRA_DIGIT, EXTRA_DIGIT_CONFIDENCE, WIDE_RATIO))

    if value == integer_part and 100 <= integer_part <= 9999:
        with_decimal = (Decimal(integer_part) / 100).quantize(_TWO_PLACES)
        candidates.append((with_decimal, CorrectionType.MISSING_DECIMAL, MISSING_DECIMAL_CONFIDENCE, WIDE_RATIO))

    for shifted in (value / 10, value * 10):
        candidates.append(
            (shifted.quantize(_TWO_PLACES), CorrectionType.SHIFTED_DECIMAL, SHIFTED_DECIMAL_CONFIDENCE, NARROW_RATIO)
        )

    proposals: list[CorrectionProposal] = []
    seen: set[Decimal] = set()
    for candidate, correction_type, confidence, bounds in candidates:
        if candidate <= 0 or candidate in seen or mean <= 0:
            continue
        if not _within(candidate / mean, bounds):
            continue
        if abs(candidate - median) >= distance:
            continue
        seen.add(candidate)
        proposals.append(
            CorrectionProposal(
                field=field,
                original_value=value,
                suggested_value=candidate,
                correction_type=correction_type,
                confidence=confidence,
                reason=f"{correction_type.value.replace('_', ' ')}: {value:.2f} → {candidate:.2f}",
            )
        )

    # Stable sort keeps strategy order among equal confidences
    return sorted(proposals, key=lambda proposal: proposal.confidence, reverse=True)
