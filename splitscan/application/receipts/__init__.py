"""Receipt workflows."""

from splitscan.application.receipts.scan import (
    ReceiptScanRequest,
    ReceiptScanResult,
    build_ocr_backend,
    run_receipt_scan,
)

__all__ = [
    "ReceiptScanRequest",
    "ReceiptScanResult",
    "build_ocr_backend",
    "run_receipt_scan",
]
