"""Render a ParsedReceipt as JSON-ready data or a terminal summary."""

from decimal import Decimal
from typing import Any

from splitscan.domain.receipt import CorrectionMetadata, CorrectionProposal, ParsedItem, ParsedReceipt


def _money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return f"{value:.2f}"


def _proposal_to_dict(proposal: CorrectionProposal) -> dict[str, Any]:
    return {
        "field": proposal.field,
        "originalValue": _money(proposal.original_value),
        "suggestedValue": _money(proposal.suggested_value),
        "correctionType": proposal.correction_type.value,
        "confidence": round(proposal.confidence, 2),
        "reason": proposal.reason,
    }


def _metadata_to_dict(metadata: CorrectionMetadata | None) -> dict[str, Any] | None:
    if metadata is None:
        return None
    return {
        "field": metadata.field,
        "originalValue": _money(metadata.original_value),
        "correctedValue": _money(metadata.corrected_value),
        "correctionType": metadata.correction_type.value,
        "confidence": round(metadata.confidence, 2),
    }


def _item_to_dict(item: ParsedItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "quantity": item.quantity,
        "unitPrice": _money(item.unit_price),
        "totalPrice": _money(item.total_price),
        "confidence": round(item.confidence, 2),
        "needsReview": item.needs_review,
        "reviewReasons": [reason.render() for reason in item.review_reasons],
        "rawText": item.raw_text,
        "correctionMetadata": _metadata_to_dict(item.correction_metadata),
        "suggestedCorrections": [_proposal_to_dict(p) for p in item.suggested_corrections],
    }


def receipt_to_dict(parsed: ParsedReceipt) -> dict[str, Any]:
    """
    Convert a ParsedReceipt to the camelCase JSON shape served over HTTP.

    Money is rendered as two-decimal strings so no float rounding reaches
    the client.
    """
    ocr_metadata = None
    if parsed.ocr_metadata is not None:
        ocr_metadata = {
            "selectedVariant": parsed.ocr_metadata.selected_variant,
            "selectedPsm": parsed.ocr_metadata.selected_psm,
            "score": parsed.ocr_metadata.score,
            "lowConfidence": parsed.ocr_metadata.low_confidence,
        }
    detection = None
    if parsed.detection is not None:
        detection = {
            "documentDetected": parsed.detection.document_detected,
            "strategy": parsed.detection.strategy,
            "confidence": round(parsed.detection.confidence, 2),
        }
    return {
        "merchant": parsed.merchant,
        "date": parsed.date,
        "items": [_item_to_dict(item) for item in parsed.items],
        "subtotal": _money(parsed.subtotal),
        "tax": _money(parsed.tax),
        "serviceCharge": _money(parsed.service_charge),
        "total": _money(parsed.total),
        "confidence": round(parsed.confidence, 2),
        "needsManualEntry": parsed.needs_manual_entry,
        "rawText": parsed.raw_text,
        "ocrMetadata": ocr_metadata,
        "detection": detection,
    }


def _format_rows_aligned(rows: list[tuple[str, str, str]], indent: str = "  ") -> list[str]:
    """
    Format (label, amount, note) rows with aligned amounts and notes.

    Args:
        rows: List of (label, amount, note) tuples; note may be empty
        indent: Indentation prefix for each line
    """
    if not rows:
        return []
    max_label_len = max(len(label) for label, _, _ in rows)
    max_amount_len = max(len(amount) for _, amount, _ in rows)

    lines = []
    for label, amount, note in rows:
        base = f"{indent}{label.ljust(max_label_len)}  {amount.rjust(max_amount_len)}"
        lines.append(f"{base}  ; {note}" if note else base)
    return lines


def format_receipt_summary(parsed: ParsedReceipt) -> str:
    """Render a human-readable summary for the CLI."""
    lines = [
        f"Merchant: {parsed.merchant or '(unknown)'}",
        f"Date:     {parsed.date or '(unknown)'}",
    ]

    rows: list[tuple[str, str, str]] = []
    for item in parsed.items:
        label = f"{item.quantity}x {item.name}" if item.quantity > 1 else item.name
        notes = [reason.render() for reason in item.review_reasons]
        notes.extend(
            f"maybe {_money(p.suggested_value)} ({p.correction_type.value})" for p in item.suggested_corrections
        )
        flag = "!" if item.needs_review else " "
        rows.append((f"{flag} {label}", _money(item.total_price) or "", "; ".join(notes)))

    for label, value in (
        ("Subtotal", parsed.subtotal),
        ("Tax", parsed.tax),
        ("Service", parsed.service_charge),
        ("Total", parsed.total),
    ):
        if value is not None:
            rows.append((f"  {label}", _money(value) or "", ""))

    if rows:
        lines.append("")
        lines.extend(_format_rows_aligned(rows))
    else:
        lines.append("")
        lines.append("  (no items recognized)")

    lines.append("")
    lines.append(f"Confidence: {parsed.confidence:.2f}")
    if parsed.ocr_metadata is not None:
        lines.append(
            f"OCR: {parsed.ocr_metadata.selected_variant}"
            f" psm={parsed.ocr_metadata.selected_psm} score={parsed.ocr_metadata.score:g}"
        )
    if parsed.needs_manual_entry:
        lines.append("Needs manual entry")
    return "\n".join(lines)
