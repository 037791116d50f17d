"""Receipt-level confidence aggregation."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from splitscan.domain.receipt import ParsedItem

ITEM_CONFIDENCE_WEIGHT = 0.5
HAS_ITEMS_WEIGHT = 0.2
HAS_TOTAL_WEIGHT = 0.15
TOTAL_MATCHES_WEIGHT = 0.15
# Absolute tolerance for items summing to the extracted total
TOTAL_TOLERANCE = Decimal("2.00")


@dataclass(frozen=True)
class AggregateResult:
    confidence: float
    needs_manual_entry: bool


def aggregate(
    items: Sequence[ParsedItem],
    receipt_total: Decimal | None = None,
    *,
    low_confidence_ocr: bool = False,
) -> AggregateResult:
    """Combine item confidences and total reconciliation into one score."""
    mean_confidence = sum(item.confidence for item in items) / len(items) if items else 0.0
    has_total = receipt_total is not None
    items_sum = sum((item.total_price for item in items), Decimal(0))
    total_matches = has_total and abs(items_sum - receipt_total) < TOTAL_TOLERANCE  # type: ignore[operator]

    confidence = min(
        1.0,
        ITEM_CONFIDENCE_WEIGHT * mean_confidence
        + (HAS_ITEMS_WEIGHT if items else 0.0)
        + (HAS_TOTAL_WEIGHT if has_total else 0.0)
        + (TOTAL_MATCHES_WEIGHT if total_matches else 0.0),
    )
    return AggregateResult(
        confidence=confidence,
        needs_manual_entry=not items or low_confidence_ocr,
    )
