"""splitscan: turn a photographed receipt into structured line items.

Usage:
    from splitscan import scan_receipt_bytes

    receipt = scan_receipt_bytes(Path("receipt.jpg").read_bytes(), "image/jpeg")
    for item in receipt.items:
        print(item.name, item.total_price, item.needs_review)
"""

from typing import Any

from splitscan.application.receipts.scan import ReceiptScanRequest, run_receipt_scan
from splitscan.domain.errors import InvalidInput, ScanCancelled
from splitscan.domain.receipt import ParsedReceipt
from splitscan.runtime.settings import load_settings

__all__ = ["scan_receipt_bytes"]


def scan_receipt_bytes(data: bytes, mime_type: str, **options: Any) -> ParsedReceipt:
    """
    Run the full recognition pipeline on an uploaded image.

    Args:
        data: Raw image bytes.
        mime_type: Declared MIME type of ``data``.
        **options: Any ReceiptScanRequest field (``settings``, ``hint``,
            ``backend``, ``imaging``, ``detector``, ``rules``, ``cancel``).
            Settings default to ``load_settings()``.

    Returns:
        The parsed receipt. Degraded runs come back with
        ``needs_manual_entry`` set rather than as an error.

    Raises:
        InvalidInput: the buffer is empty, not an image or too large.
        ScanCancelled: the cancellation token was set.
    """
    options.setdefault("settings", load_settings())
    result = run_receipt_scan(ReceiptScanRequest(data=data, mime_type=mime_type, **options))
    if result.status == "invalid_input":
        raise InvalidInput(result.error_code or "INVALID_IMAGE", result.error or "Invalid image")
    if result.status == "cancelled":
        raise ScanCancelled(result.error or "Cancelled")
    if result.receipt is None:
        raise RuntimeError(f"Receipt scan finished with status {result.status!r} but no receipt")
    return result.receipt
