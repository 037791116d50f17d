"""Tests for merchant, date and summary amount extraction."""

from decimal import Decimal

from splitscan.receipt.line_parser import extract_fields, normalize_ocr_lines


def _fields(*lines: str):
    return extract_fields(normalize_ocr_lines(lines))


def test_extracts_merchant_date_and_totals() -> None:
    fields = _fields(
        "CAFE ROMA",
        "12/03/2024",
        "Burger 12.50",
        "SUBTOTAL 12.50",
        "GST 1.25",
        "Service charge 2.00",
        "TOTAL 15.75",
    )

    assert fields.merchant == "CAFE ROMA"
    assert fields.date == "12/03/2024"
    assert fields.subtotal == Decimal("12.50")
    assert fields.tax == Decimal("1.25")
    assert fields.service_charge == Decimal("2.00")
    assert fields.total == Decimal("15.75")
    assert fields.consumed == {1, 3, 4, 5, 6}


def test_merchant_skips_lines_with_prices() -> None:
    fields = _fields("Burger 12.50", "Joe's Diner", "TOTAL 12.50")

    assert fields.merchant == "Joe's Diner"


def test_iso_date_and_repeated_total_last_wins() -> None:
    fields = _fields("Market", "2024-12-05 14:30", "Apples 3.00", "TOTAL 3.00", "BALANCE DUE 3.50")

    assert fields.date == "2024-12-05"
    assert fields.total == Decimal("3.50")


def test_large_total_with_thousands_separator() -> None:
    fields = _fields("Electronics", "TOTAL $1,249.99")

    assert fields.total == Decimal("1249.99")


def test_missing_fields_are_none() -> None:
    fields = _fields("Coffee 3.50")

    assert fields.merchant is None
    assert fields.date is None
    assert fields.total is None
    assert fields.consumed == set()


def test_labels_glued_to_amounts_are_summary_lines() -> None:
    fields = _fields("Burger 12.50", "SUBTOTAL12.50", "GST1.25", "TIP2.00", "TOTAL15.75")

    assert fields.subtotal == Decimal("12.50")
    assert fields.tax == Decimal("1.25")
    assert fields.service_charge == Decimal("2.00")
    assert fields.total == Decimal("15.75")
    assert fields.consumed == {1, 2, 3, 4}


def test_zero_amounts_are_kept() -> None:
    fields = _fields("Burger 12.50", "TAX 0.00", "TIP 0.00", "TOTAL 0.00")

    assert fields.tax == Decimal("0.00")
    assert fields.service_charge == Decimal("0.00")
    assert fields.total == Decimal("0.00")


def test_keyword_inside_longer_word_is_not_a_summary_line() -> None:
    fields = _fields("Taxi voucher 8.00", "Tipsy cake 6.50")

    assert fields.tax is None
    assert fields.service_charge is None
    assert fields.consumed == set()
