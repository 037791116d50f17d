"""Line-level receipt parsing: normalization, reconstruction and field extraction."""

from .common import extract_canonical_name, money_tokens
from .fields_parser import ReceiptFields, extract_fields
from .normalize import normalize_ocr_line, normalize_ocr_lines
from .reconstruct import reconstruct_receipt_line

__all__ = [
    "ReceiptFields",
    "extract_canonical_name",
    "extract_fields",
    "money_tokens",
    "normalize_ocr_line",
    "normalize_ocr_lines",
    "reconstruct_receipt_line",
]
