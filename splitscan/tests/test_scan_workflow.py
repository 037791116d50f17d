"""Tests for the end-to-end scan workflow with a fake OCR backend."""

from decimal import Decimal

import pytest
from conftest import FakeOCRBackend

import splitscan
from splitscan.application.receipts.scan import ReceiptScanRequest, build_ocr_backend, run_receipt_scan
from splitscan.domain.errors import InvalidInput, ScanCancelled
from splitscan.receipt.ocr_engine import HttpOCRBackend, RecognizedText, TesseractBackend
from splitscan.runtime.deadline import CancellationToken
from splitscan.runtime.settings import PipelineSettings


def test_scan_produces_parsed_receipt(make_image, fake_backend) -> None:
    result = run_receipt_scan(ReceiptScanRequest(data=make_image(), mime_type="image/jpeg", backend=fake_backend))

    assert result.status == "scanned"
    receipt = result.receipt
    assert receipt is not None
    assert receipt.merchant == "CAFE ROMA"
    assert receipt.total == Decimal("26.40")
    assert [item.name for item in receipt.items] == ["Coffee", "Burger", "Chips"]
    assert receipt.ocr_metadata is not None
    assert receipt.ocr_metadata.selected_variant == "light"
    assert receipt.detection is not None
    assert receipt.detection.strategy == "center_crop"
    # 0.9 confidence exits after the first pass
    assert len(fake_backend.calls) == 1


def test_non_image_is_invalid_input(fake_backend) -> None:
    result = run_receipt_scan(ReceiptScanRequest(data=b"hello", mime_type="text/plain", backend=fake_backend))

    assert result.status == "invalid_input"
    assert result.error_code == "INVALID_IMAGE_TYPE"
    assert result.receipt is None
    assert fake_backend.calls == []


def test_blank_image_needs_manual_entry(make_image) -> None:
    backend = FakeOCRBackend(RecognizedText("", 0.0))

    result = run_receipt_scan(
        ReceiptScanRequest(data=make_image(with_text=False), mime_type="image/jpeg", backend=backend)
    )

    assert result.status == "needs_manual_entry"
    assert result.receipt is not None
    assert result.receipt.items == []
    assert result.receipt.needs_manual_entry is True


def test_cancelled_request(make_image, fake_backend) -> None:
    cancel = CancellationToken()
    cancel.cancel()

    result = run_receipt_scan(
        ReceiptScanRequest(data=make_image(), mime_type="image/jpeg", backend=fake_backend, cancel=cancel)
    )

    assert result.status == "cancelled"


def test_request_timeout_degrades_to_manual_entry(make_image, fake_backend) -> None:
    settings = PipelineSettings(request_timeout_s=0.0)

    result = run_receipt_scan(
        ReceiptScanRequest(data=make_image(), mime_type="image/jpeg", settings=settings, backend=fake_backend)
    )

    assert result.status == "needs_manual_entry"
    assert result.receipt is not None
    assert result.receipt.items == []


def test_build_ocr_backend_follows_settings() -> None:
    assert isinstance(build_ocr_backend(PipelineSettings()), TesseractBackend)
    backend = build_ocr_backend(PipelineSettings(ocr_backend="http", ocr_url="http://ocr.test/ocr"))
    assert isinstance(backend, HttpOCRBackend)
    assert backend.url == "http://ocr.test/ocr"


def test_scan_receipt_bytes_entry_point(make_image, fake_backend) -> None:
    receipt = splitscan.scan_receipt_bytes(make_image(), "image/jpeg", backend=fake_backend)

    assert receipt.total == Decimal("26.40")

    with pytest.raises(InvalidInput) as exc:
        splitscan.scan_receipt_bytes(b"", "image/jpeg", backend=fake_backend)
    assert exc.value.code == "EMPTY_BUFFER"

    cancel = CancellationToken()
    cancel.cancel()
    with pytest.raises(ScanCancelled):
        splitscan.scan_receipt_bytes(make_image(), "image/jpeg", backend=fake_backend, cancel=cancel)



def test_scan_receipt_bytes_rejects_result_without_receipt(monkeypatch, make_image) -> None:
    from splitscan.application.receipts.scan import ReceiptScanResult

    monkeypatch.setattr(splitscan, "run_receipt_scan", lambda request: ReceiptScanResult(status="scanned"))

    with pytest.raises(RuntimeError, match="no receipt"):
        splitscan.scan_receipt_bytes(make_image(), "image/jpeg")

def test_preprocess_timeout_on_large_upload_degrades_to_manual_entry(make_image, fake_backend) -> None:
    from splitscan.receipt.preprocess import MAX_VARIANT_BYTES

    # Trailing bytes after the JPEG end marker are ignored by decoders
    data = make_image() + b"\0" * MAX_VARIANT_BYTES
    settings = PipelineSettings(preprocess_timeout_s=0.0)

    result = run_receipt_scan(
        ReceiptScanRequest(data=data, mime_type="image/jpeg", settings=settings, backend=fake_backend)
    )

    assert result.status == "needs_manual_entry"
    assert result.receipt is not None
    assert result.receipt.items == []
    assert fake_backend.calls == []


def test_preprocess_timeout_passes_small_upload_through(make_image, fake_backend) -> None:
    settings = PipelineSettings(preprocess_timeout_s=0.0)

    result = run_receipt_scan(
        ReceiptScanRequest(data=make_image(), mime_type="image/jpeg", settings=settings, backend=fake_backend)
    )

    assert result.status == "scanned"
    assert fake_backend.calls[0] == (6, "image/jpeg")
