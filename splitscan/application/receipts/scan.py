"""Receipt scan workflow orchestration."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal

from splitscan.domain.errors import BackendUnavailable, InvalidInput, ProcessingTimeout, ScanCancelled
from splitscan.domain.receipt import DetectionSummary, ParsedReceipt, ReceiptImage
from splitscan.receipt.document_crop import CropHint, DocumentDetector, detect_and_crop
from splitscan.receipt.ocr_engine import HttpOCRBackend, OCRBackend, OCREngine, TesseractBackend
from splitscan.receipt.preprocess import ImagingBackend, fallback_variant, preprocess
from splitscan.receipt.receipt_parser import parse_receipt_text
from splitscan.receipt.scoring import select_best_ocr_result
from splitscan.receipt.validate import SanityRules
from splitscan.runtime.deadline import CancellationToken, run_with_timeout
from splitscan.runtime.logging import get_logger
from splitscan.runtime.paths import get_paths
from splitscan.runtime.sanity_rules import load_sanity_rules
from splitscan.runtime.settings import PipelineSettings

logger = get_logger(__name__)

ScanStatus = Literal[
    "scanned",
    "needs_manual_entry",
    "invalid_input",
    "cancelled",
]


@dataclass(frozen=True)
class ReceiptScanRequest:
    """Inputs for running receipt scan workflow."""

    data: bytes
    mime_type: str
    settings: PipelineSettings = field(default_factory=PipelineSettings)
    hint: CropHint | None = None
    backend: OCRBackend | None = None
    imaging: ImagingBackend | None = None
    detector: DocumentDetector | None = None
    rules: SanityRules | None = None
    cancel: CancellationToken | None = None


@dataclass(frozen=True)
class ReceiptScanResult:
    """Outcome from receipt scan workflow."""

    status: ScanStatus
    receipt: ParsedReceipt | None = None
    error_code: str | None = None
    error: str | None = None


def build_ocr_backend(settings: PipelineSettings) -> OCRBackend:
    """Construct the OCR backend named in settings."""
    if settings.ocr_backend == "http":
        return HttpOCRBackend(settings.ocr_url)
    return TesseractBackend()


def _resolve_rules(request: ReceiptScanRequest) -> SanityRules:
    if request.rules is not None:
        return request.rules
    if request.settings.sanity_rules_path:
        return load_sanity_rules((str(get_paths().default_sanity_rules), request.settings.sanity_rules_path))
    return load_sanity_rules()


def _scan(request: ReceiptScanRequest, cancel: CancellationToken) -> ParsedReceipt:
    settings = request.settings
    image = ReceiptImage(data=request.data, mime_type=request.mime_type)

    start = time.monotonic()
    detection = detect_and_crop(image, request.hint, detector=request.detector, imaging=request.imaging)
    logger.debug(
        "Detection: %s (confidence %.2f) in %.2fs",
        detection.strategy,
        detection.confidence,
        time.monotonic() - start,
    )
    cancel.raise_if_cancelled("detection")

    start = time.monotonic()
    try:
        variants = run_with_timeout(
            lambda: preprocess(image, detection=detection, imaging=request.imaging),
            settings.preprocess_timeout_s,
            stage="preprocess",
            cancel=cancel,
        )
    except ProcessingTimeout as exc:
        try:
            variants = [fallback_variant(image)]
        except InvalidInput:
            logger.warning("%s; original image too large to pass through, falling back to manual entry", exc)
            return ParsedReceipt.empty()
        logger.warning("%s; passing original image through", exc)
    logger.debug("Preprocessing: %d variants in %.2fs", len(variants), time.monotonic() - start)

    engine = OCREngine(
        request.backend or build_ocr_backend(settings),
        psm_modes=settings.psm_modes,
        pass_timeout_s=settings.pass_timeout_s,
        overall_timeout_s=settings.overall_timeout_s,
        high_confidence=settings.high_confidence,
        min_text_length=settings.min_text_length,
    )
    start = time.monotonic()
    results = engine.recognize(variants, cancel=cancel)
    scored = select_best_ocr_result(results)
    logger.debug("OCR: %d candidate(s) in %.2fs", len(results), time.monotonic() - start)
    cancel.raise_if_cancelled("ocr")

    text = scored.result.text if scored is not None else ""
    parsed = parse_receipt_text(
        text,
        scored=scored,
        apply_corrections_above=settings.apply_corrections_above,
        rules=_resolve_rules(request),
    )
    parsed.detection = DetectionSummary(
        document_detected=detection.document_detected,
        strategy=detection.strategy,
        confidence=detection.confidence,
    )
    return parsed


def run_receipt_scan(request: ReceiptScanRequest) -> ReceiptScanResult:
    """Run scan flow: validate -> crop -> preprocess -> OCR -> parse."""
    cancel = request.cancel or CancellationToken()
    try:
        receipt = run_with_timeout(
            lambda: _scan(request, cancel),
            request.settings.request_timeout_s,
            stage="request",
            cancel=cancel,
        )
    except InvalidInput as exc:
        logger.info("Rejected receipt image: %s (%s)", exc.message, exc.code)
        return ReceiptScanResult(status="invalid_input", error_code=exc.code, error=exc.message)
    except ScanCancelled as exc:
        return ReceiptScanResult(status="cancelled", error=str(exc))
    except ProcessingTimeout as exc:
        # Stop the abandoned worker at its next checkpoint
        cancel.cancel()
        logger.warning("%s; falling back to manual entry", exc)
        receipt = ParsedReceipt.empty()
    except BackendUnavailable as exc:
        logger.debug("%s; falling back to manual entry", exc)
        receipt = ParsedReceipt.empty()

    status: ScanStatus = "needs_manual_entry" if receipt.needs_manual_entry else "scanned"
    return ReceiptScanResult(status=status, receipt=receipt)
