"""Shared constants and helpers for receipt line parsing."""

import re
from decimal import Decimal

# Money token: 1-3 digits, "." or "," separator, exactly 2 digits, not embedded
# in a longer number (so "12.05.2024" and "1234.56" do not yield tokens).
MONEY_TOKEN = re.compile(r"(?<![\d.,])(\d{1,3})[.,](\d{2})(?!\d|[.,]\d)")

# Quantity prefix, only at line start: "2x ", "2 x ", "3X "
QUANTITY_PREFIX = re.compile(r"^\s*(\d+)\s*[xX]\s+")

# Totals/tax/tip lines are consumed by field extraction, never as items.
# OCR often glues the label to the amount ("TOTAL17.00"), so only a letter ends the keyword.
TOTAL_KEYWORDS = re.compile(
    r"\b(sub\s*-?\s*total|(?:grand\s*)?total|tax|gst|hst|vat|service|tip|gratuity|balance|amount\s*due)(?![a-z])",
    re.IGNORECASE,
)

SEPARATOR_LINE = re.compile(r"^(?:-+|=+)$")

# Trailing 1-2 letter OCR garbage ("or", "gg", "aa")
TRAILING_SHORT_LETTERS = re.compile(r"\s+[a-z]{1,2}\s*$", re.IGNORECASE)

_CANONICAL_QUANTITY_PREFIXES = (
    re.compile(r"^\s*\d+\s*[xX]\s+"),
    re.compile(r"^\s*[Ii]x\s+"),
    re.compile(r"^\s*[Ii]\s+x\s+"),
    re.compile(r"^\s*l\s+x\s+"),
)

_CANONICAL_PRICE_TOKENS = (
    re.compile(r"\$?\s*\d{1,3}[.\-]\d{2}\b"),
    re.compile(r"\$\s*\d+\.\d{2}\b"),
)

_CANONICAL_GARBAGE = (
    TRAILING_SHORT_LETTERS,
    re.compile(r'\s+"\d+\s*S\d+\s*"\s*$'),
    re.compile(r"\s+[A-Z]\d+\s*$"),
    re.compile(r"\s+\d+\.\d{3,}\s*$"),
    re.compile(r"\s+\d+\s*x\s+\$\d+\.\d+\s*$"),
)

_LETTERS_PREFIX = re.compile(r"^([a-zA-Z\s&]+?)(?:\s+\d+[.\-]\d{2}|\s+\$)")


def money_tokens(line: str) -> list[tuple[Decimal, tuple[int, int]]]:
    """Return every money token in ``line``, left to right, with its span."""
    return [
        (Decimal(f"{match.group(1)}.{match.group(2)}"), match.span())
        for match in MONEY_TOKEN.finditer(line)
    ]


def is_total_line(line: str) -> bool:
    return TOTAL_KEYWORDS.search(line) is not None


def _clean_quotes_and_spaces(text: str) -> str:
    text = re.sub(r"""^["']+|["']+$""", "", text)
    return re.sub(r"\s+", " ", text).strip()


def extract_canonical_name(text: str, raw_line: str | None = None) -> str:
    """Strip quantity, prices, tax codes and OCR garbage from an item name.

    Falls back to the letters-only prefix of ``raw_line`` (default ``text``)
    before its first price when the cleaned name is shorter than 3 chars, and
    finally to ``raw_line`` minus its quantity prefix and short-letter suffix.
    """
    source = (raw_line if raw_line is not None else text).strip()
    name = text.strip()

    for pattern in _CANONICAL_QUANTITY_PREFIXES:
        if pattern.search(name):
            name = pattern.sub("", name, count=1).strip()
            break

    for pattern in _CANONICAL_PRICE_TOKENS:
        name = pattern.sub("", name).strip()

    name = re.sub(r"\s+A\s*$", "", name).strip()

    for pattern in _CANONICAL_GARBAGE:
        cleaned = pattern.sub("", name).strip()
        if cleaned != name:
            name = cleaned
            break

    name = _clean_quotes_and_spaces(name)

    if len(name) < 3:
        prefix = _LETTERS_PREFIX.search(source)
        if prefix and len(prefix.group(1).strip()) >= 3:
            name = prefix.group(1).strip()
        else:
            name = QUANTITY_PREFIX.sub("", source, count=1)
            name = TRAILING_SHORT_LETTERS.sub("", name).strip()

    return TRAILING_SHORT_LETTERS.sub("", name).strip()
