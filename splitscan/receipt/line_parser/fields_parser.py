"""Merchant/date/summary amount extraction helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal

from splitscan.domain.receipt import NormalizedLine

# Trailing amount on a summary line; unlike item tokens, any digit count
SUMMARY_AMOUNT = re.compile(r"\$?\s*(\d{1,3}(?:,\d{3})+|\d+)[.,](\d{2})\s*$")

SUBTOTAL_PATTERN = re.compile(r"sub\s*-?\s*total", re.IGNORECASE)
TAX_PATTERN = re.compile(r"\b(tax|vat|gst|hst)(?![a-z])", re.IGNORECASE)
SERVICE_PATTERN = re.compile(r"\b(service\s*(?:charge|fee)|gratuity|tip)(?![a-z])", re.IGNORECASE)
TOTAL_PATTERN = re.compile(r"\b(total|amount\s*due|balance|grand\s*total)(?![a-z])", re.IGNORECASE)

DATE_PATTERN = re.compile(
    r"(?<!\d)(?:\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2})(?!\d)"
)

MERCHANT_SCAN_LINES = 3


@dataclass
class ReceiptFields:
    """Receipt-level fields plus the indices of lines they consumed."""

    merchant: str | None = None
    date: str | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    service_charge: Decimal | None = None
    total: Decimal | None = None
    consumed: set[int] = field(default_factory=set)


def _summary_amount(line: str) -> Decimal | None:
    match = SUMMARY_AMOUNT.search(line)
    if not match:
        return None
    return Decimal(f"{match.group(1).replace(',', '')}.{match.group(2)}")


def _extract_merchant(lines: list[NormalizedLine]) -> str | None:
    """First of the leading lines that carries no price and has a plausible length."""
    for line in lines[:MERCHANT_SCAN_LINES]:
        text = line.normalized
        if SUMMARY_AMOUNT.search(text):
            continue
        if 3 < len(text) < 50:
            return text
    return None


def extract_fields(lines: list[NormalizedLine]) -> ReceiptFields:
    """
    Extract merchant, date and summary amounts from normalized lines.

    Summary lines (subtotal, tax, service, total) and the first date line are
    recorded in ``consumed`` so they are never parsed as items. When a label
    repeats, the last amount wins, matching receipts that reprint the total.
    """
    fields = ReceiptFields(merchant=_extract_merchant(lines))

    for index, line in enumerate(lines):
        text = line.normalized

        if fields.date is None:
            date_match = DATE_PATTERN.search(text)
            if date_match:
                fields.date = date_match.group(0)
                fields.consumed.add(index)
                continue

        if SUBTOTAL_PATTERN.search(text):
            fields.consumed.add(index)
            amount = _summary_amount(text)
            if amount is not None:
                fields.subtotal = amount
        elif TAX_PATTERN.search(text):
            fields.consumed.add(index)
            amount = _summary_amount(text)
            if amount is not None:
                fields.tax = amount
        elif SERVICE_PATTERN.search(text):
            fields.consumed.add(index)
            amount = _summary_amount(text)
            if amount is not None:
                fields.service_charge = amount
        elif TOTAL_PATTERN.search(text):
            fields.consumed.add(index)
            amount = _summary_amount(text)
            if amount is not None:
                fields.total = amount

    return fields
