"""OCR line normalization.

Repairs known OCR character confusions and garbage tokens before structural
parsing. Rules run in a fixed order because later rules assume the earlier
garbage is gone:

1. quantity-token confusions ("Ix" -> "1x")
2. hyphen decimals ("12-34" -> "12.34")
3. trailing garbage (missing-cents suffix, short letters, quoted and
   letter+digit codes, duplicated price fragments)
4. trailing tax code "A"
5. currency tokens ("AU$", "(AUD)", bare "USD")
6. quotes and whitespace

The sequence is repeated until the line stops changing, so normalizing an
already-normalized line records no changes.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from splitscan.domain.receipt import NormalizedLine

# Bound on rule-sequence repetitions; real lines settle in one or two
MAX_PASSES = 10

_QUANTITY_FIXES = (
    (re.compile(r"\b[Ii]x\b"), "1x", "Ix → 1x"),
    (re.compile(r"\b[Ii]\s+x\b"), "1x", "I x → 1x"),
    (re.compile(r"\bl\s+x\b", re.IGNORECASE), "1x", "l x → 1x"),
    (re.compile(r"\bZx\b"), "2x", "Zx → 2x"),
)

# Not part of a longer dash/digit run, so dates like 2024-12-05 are left alone
_HYPHEN_DECIMAL = re.compile(r"(?<![\d\-])(\d{1,3})-(\d{2})(?![\d\-])")

_MISSING_CENTS = re.compile(r"\b(\d{1,2})\s+(gg|or|aa|a)\s*$", re.IGNORECASE)

# A lone uppercase "A" is a tax code and is left for the tax rule
_TRAILING_GARBAGE = (
    re.compile(r"\s+(?!A\s*$)[A-Za-z]{1,2}\s*$"),
    re.compile(r'\s+"\d+\s*S\d+\s*"\s*$'),
    re.compile(r"\s+[A-Z]\d+\s*$"),
    re.compile(r"\s+\d+\s*x\s+\$\d+\.\d+\s*$"),
)

_TAX_CODE = re.compile(r"\s+A\s*$")

_CURRENCY_FIXES = (
    (re.compile(r"\bAU\$", re.IGNORECASE), "$"),
    (re.compile(r"\((?:AUD|USD|NZD)\)", re.IGNORECASE), ""),
    (re.compile(r"\b(?:AUD|USD|NZD)\b", re.IGNORECASE), ""),
)

_EDGE_QUOTES = re.compile(r"""^["']+|["']+$""")
_WHITESPACE = re.compile(r"\s+")


def _fix_quantity_tokens(line: str, changes: list[str]) -> str:
    for pattern, replacement, description in _QUANTITY_FIXES:
        fixed = pattern.sub(replacement, line)
        if fixed != line:
            line = fixed
            changes.append(description)
    return line


def _fix_hyphen_decimals(line: str, changes: list[str]) -> str:
    def repl(match: re.Match[str]) -> str:
        repaired = f"{match.group(1)}.{match.group(2)}"
        changes.append(f"{match.group(0)} → {repaired}")
        return repaired

    return _HYPHEN_DECIMAL.sub(repl, line)


def _remove_trailing_garbage(line: str, changes: list[str]) -> str:
    match = _MISSING_CENTS.search(line)
    if match and match.group(2) != "A" and 1 <= int(match.group(1)) <= 99:
        line = line[: match.start()] + match.group(1)
        changes.append(f'Removed garbage suffix "{match.group(2)}"')

    for pattern in _TRAILING_GARBAGE:
        cleaned = pattern.sub("", line).strip()
        if cleaned != line.strip():
            line = cleaned
            changes.append("Removed trailing garbage")
    return line


def _strip_tax_code(line: str, changes: list[str]) -> str:
    stripped = _TAX_CODE.sub("", line)
    if stripped != line:
        changes.append('Removed tax code "A"')
    return stripped


def _strip_currency_tokens(line: str, changes: list[str]) -> str:
    before = line
    for pattern, replacement in _CURRENCY_FIXES:
        line = pattern.sub(replacement, line)
    if line != before:
        changes.append("Normalized currency tokens")
    return line


def _clean_quotes_and_spaces(line: str, changes: list[str]) -> str:
    return _WHITESPACE.sub(" ", _EDGE_QUOTES.sub("", line.strip())).strip()


_RULES: tuple[Callable[[str, list[str]], str], ...] = (
    _fix_quantity_tokens,
    _fix_hyphen_decimals,
    _remove_trailing_garbage,
    _strip_tax_code,
    _strip_currency_tokens,
    _clean_quotes_and_spaces,
)


def normalize_ocr_line(line: str) -> NormalizedLine:
    """Normalize a single OCR line before parsing."""
    original = line.strip()
    normalized = original
    changes: list[str] = []

    for _ in range(MAX_PASSES):
        before = normalized
        for rule in _RULES:
            normalized = rule(normalized, changes)
        if normalized == before:
            break

    return NormalizedLine(normalized=normalized, original=original, changes=tuple(changes))


def normalize_ocr_lines(lines: Iterable[str]) -> list[NormalizedLine]:
    """Normalize multiple lines (batch processing)."""
    return [normalize_ocr_line(line) for line in lines]
