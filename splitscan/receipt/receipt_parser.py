"""Assemble a ParsedReceipt from OCR text.

Lines are normalized, summary fields extracted, item lines reconstructed,
then every item is checked against the whole receipt before the receipt is
aggregated into one confidence score.
"""

from __future__ import annotations

from splitscan.domain.receipt import (
    CorrectionMetadata,
    CorrectionProposal,
    OCRMetadata,
    OCRPassResult,
    ParsedItem,
    ParsedReceipt,
    ReceiptContext,
    ReconstructedLineItem,
    ReviewReason,
    ScoredResult,
)
from splitscan.receipt.aggregate import aggregate
from splitscan.receipt.line_parser import extract_fields, normalize_ocr_lines, reconstruct_receipt_line
from splitscan.receipt.scoring import is_low_confidence, score_ocr_results
from splitscan.receipt.validate import SanityRules, auto_correct_amount, check_item_sanity
from splitscan.runtime.logging import get_logger

logger = get_logger(__name__)

CORRECTION_CONFIDENCE_BOOST = 0.1


def _item_id(position: int) -> str:
    return f"item-{position:03d}"


def _merge_reasons(*groups: tuple[ReviewReason, ...] | list[ReviewReason]) -> list[ReviewReason]:
    merged: list[ReviewReason] = []
    for group in groups:
        for reason in group:
            if reason not in merged:
                merged.append(reason)
    return merged


def _apply_correction(item: ParsedItem, line: ReconstructedLineItem, proposal: CorrectionProposal) -> None:
    """Apply a line-total proposal to ``item`` and record the audit trail."""
    original = item.total_price
    item.total_price = proposal.suggested_value
    if line.unit_price_derived:
        item.unit_price = item.total_price / item.quantity
    item.correction_metadata = CorrectionMetadata(
        field=proposal.field,
        original_value=original,
        corrected_value=proposal.suggested_value,
        correction_type=proposal.correction_type,
        confidence=proposal.confidence,
    )
    item.review_reasons.append(
        ReviewReason.of(
            "auto_corrected",
            correction_type=proposal.correction_type.value,
            original=original,
            corrected=proposal.suggested_value,
        )
    )
    item.confidence = min(1.0, item.confidence + CORRECTION_CONFIDENCE_BOOST)
    item.suggested_corrections = [p for p in item.suggested_corrections if p is not proposal]
    logger.info(
        "Auto-corrected %s on %s: %.2f -> %.2f (%s, confidence %.2f)",
        proposal.field,
        item.id,
        original,
        proposal.suggested_value,
        proposal.correction_type.value,
        proposal.confidence,
    )


def _build_items(
    lines: list[ReconstructedLineItem],
    context: ReceiptContext,
    *,
    apply_corrections_above: float | None,
    rules: SanityRules | None,
) -> list[ParsedItem]:
    items: list[ParsedItem] = []
    for position, line in enumerate(lines, start=1):
        sanity = check_item_sanity(line, context, rules=rules)
        item = ParsedItem(
            id=_item_id(position),
            name=line.item_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.line_total,
            confidence=sanity.confidence,
            needs_review=line.needs_review or sanity.needs_review,
            raw_text=line.original_line,
            review_reasons=_merge_reasons(line.review_reasons, sanity.review_reasons),
            suggested_corrections=list(sanity.suggested_corrections),
        )

        if sanity.is_suspicious and line.line_total > 0:
            proposals = auto_correct_amount(line.line_total, context, exclude=line)
            item.suggested_corrections.extend(proposals)
            if proposals:
                logger.debug("Suggested corrections for %s: %s", item.id, proposals)
            if (
                apply_corrections_above is not None
                and proposals
                and proposals[0].confidence > apply_corrections_above
            ):
                _apply_correction(item, line, proposals[0])

        items.append(item)
    return items


def parse_receipt_text(
    text: str,
    *,
    ocr_result: OCRPassResult | None = None,
    scored: ScoredResult | None = None,
    apply_corrections_above: float | None = None,
    rules: SanityRules | None = None,
) -> ParsedReceipt:
    """
    Parse OCR text into a ParsedReceipt.

    Args:
        text: Raw OCR text, one receipt line per text line.
        ocr_result: The OCR pass the text came from, scored when ``scored`` is absent.
        scored: The selected, already scored OCR pass.
        apply_corrections_above: Apply the best line-total proposal when its
            confidence exceeds this threshold. None never applies corrections.
        rules: Sanity rule constants; defaults to the packaged rules.

    Returns:
        A ParsedReceipt. Internal failures are logged and produce an empty
        receipt that keeps the raw text and needs manual entry.
    """
    try:
        if scored is None and ocr_result is not None:
            scored = score_ocr_results([ocr_result])[0]

        raw_lines = [line.strip() for line in text.split("\n") if line.strip()]
        normalized = normalize_ocr_lines(raw_lines)
        fields = extract_fields(normalized)

        lines: list[ReconstructedLineItem] = []
        for index, line in enumerate(normalized):
            if index in fields.consumed:
                continue
            reconstructed = reconstruct_receipt_line(line.normalized, line.original)
            if reconstructed is not None:
                lines.append(reconstructed)

        context = ReceiptContext(items=tuple(lines), receipt_total=fields.total, subtotal=fields.subtotal)
        items = _build_items(
            lines,
            context,
            apply_corrections_above=apply_corrections_above,
            rules=rules,
        )

        low_confidence = is_low_confidence(scored) if scored is not None else False
        summary = aggregate(items, fields.total, low_confidence_ocr=low_confidence)
        logger.debug(
            "Parsed %d items from %d lines (%d need review), confidence %.2f",
            len(items),
            len(raw_lines),
            sum(1 for item in items if item.needs_review),
            summary.confidence,
        )

        return ParsedReceipt(
            items=items,
            merchant=fields.merchant,
            date=fields.date,
            subtotal=fields.subtotal,
            tax=fields.tax,
            service_charge=fields.service_charge,
            total=fields.total,
            confidence=summary.confidence,
            raw_text=text,
            needs_manual_entry=summary.needs_manual_entry,
            ocr_metadata=_ocr_metadata(scored, low_confidence),
        )
    except Exception as exc:
        logger.warning("Receipt parsing failed, falling back to manual entry: %s", exc)
        logger.debug("Parsing failure detail", exc_info=True)
        return ParsedReceipt.empty(raw_text=text)


def _ocr_metadata(scored: ScoredResult | None, low_confidence: bool) -> OCRMetadata | None:
    if scored is None:
        return None
    return OCRMetadata(
        selected_variant=scored.result.variant,
        selected_psm=scored.result.psm,
        score=scored.score,
        low_confidence=low_confidence,
    )

