"""Column-aware receipt line reconstruction.

Thermal receipt item rows read ``[QTY] [ITEM NAME] [UNIT PRICE] [LINE TOTAL]``:

- quantity only from the line start ("2x ")
- every money token, left to right
- name is what remains once the quantity prefix and money tokens are removed
- one token is the line total; with two or more, the last token is the total
  and, when a quantity is present, the first is the unit price
"""

from __future__ import annotations

from decimal import Decimal

from splitscan.domain.receipt import ReconstructedLineItem, ReviewReason
from splitscan.receipt.line_parser.common import (
    QUANTITY_PREFIX,
    SEPARATOR_LINE,
    extract_canonical_name,
    is_total_line,
    money_tokens,
)

BASE_CONFIDENCE = 0.8
HIGH_QUANTITY = 10
HIGH_QUANTITY_CONFIDENCE = 0.5
MISMATCH_CONFIDENCE = 0.6
REVIEW_THRESHOLD = 0.7
# Two minor currency units
QUANTITY_TOLERANCE = Decimal("0.02")

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100


def _strip_spans(line: str, spans: list[tuple[int, int]]) -> str:
    """Remove the given spans (and a "$" directly in front of each) from line."""
    pieces: list[str] = []
    cursor = 0
    for start, end in spans:
        cut = start
        while cut > cursor and line[cut - 1] in " $":
            if line[cut - 1] == "$":
                cut -= 1
                break
            cut -= 1
        pieces.append(line[cursor:cut])
        cursor = end
    pieces.append(line[cursor:])
    return " ".join(piece.strip() for piece in pieces if piece.strip())


def reconstruct_receipt_line(normalized: str, original: str) -> ReconstructedLineItem | None:
    """Parse a normalized OCR line into an item, or None for non-item lines."""
    line = normalized.strip()
    if len(line) < 3 or SEPARATOR_LINE.match(line):
        return None
    if is_total_line(line):
        return None

    reasons: list[ReviewReason] = []
    confidence = BASE_CONFIDENCE

    quantity = 1
    qty_match = QUANTITY_PREFIX.match(line)
    body = line
    if qty_match:
        quantity = int(qty_match.group(1))
        body = line[qty_match.end() :]
        if quantity > HIGH_QUANTITY:
            reasons.append(ReviewReason.of("high_quantity", quantity=quantity))
            confidence = min(confidence, HIGH_QUANTITY_CONFIDENCE)
    if quantity < 1:
        return None

    tokens = money_tokens(body)
    if not tokens:
        return None
    prices = [value for value, _ in tokens]

    name = extract_canonical_name(_strip_spans(body, [span for _, span in tokens]), raw_line=line)
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        return None

    unit_price: Decimal | None = None
    unit_price_derived = False
    if len(prices) == 1:
        line_total = prices[0]
        if quantity > 1:
            unit_price = line_total / quantity
            unit_price_derived = True
    elif quantity > 1:
        unit_price = prices[0]
        line_total = prices[-1]
        expected = unit_price * quantity
        if abs(line_total - expected) > QUANTITY_TOLERANCE:
            # Flag only; the columns are never swapped
            reasons.append(
                ReviewReason.of(
                    "quantity_mismatch",
                    quantity=quantity,
                    unit_price=unit_price,
                    expected=expected,
                    actual=line_total,
                )
            )
            confidence = min(confidence, MISMATCH_CONFIDENCE)
    else:
        line_total = prices[-1]

    if line_total <= 0 or (unit_price is not None and unit_price <= 0):
        return None

    return ReconstructedLineItem(
        quantity=quantity,
        item_name=name,
        unit_price=unit_price,
        line_total=line_total,
        confidence=confidence,
        needs_review=bool(reasons) or confidence < REVIEW_THRESHOLD,
        review_reasons=tuple(reasons),
        original_line=original,
        unit_price_derived=unit_price_derived,
    )
