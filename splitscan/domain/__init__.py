"""Core domain models for splitscan.

Usage:
    from splitscan.domain import ParsedReceipt, ReceiptImage
"""

from splitscan.domain.errors import (
    BackendUnavailable,
    InvalidInput,
    ProcessingTimeout,
    ReceiptPipelineError,
    ScanCancelled,
)
from splitscan.domain.receipt import (
    CorrectionMetadata,
    CorrectionProposal,
    CorrectionType,
    DetectionResult,
    NormalizedLine,
    OCRPassResult,
    ParsedItem,
    ParsedReceipt,
    PreprocessedVariant,
    ReceiptContext,
    ReceiptImage,
    ReconstructedLineItem,
    ReviewReason,
    VariantStrategy,
)

__all__ = [
    "BackendUnavailable",
    "CorrectionMetadata",
    "CorrectionProposal",
    "CorrectionType",
    "DetectionResult",
    "InvalidInput",
    "NormalizedLine",
    "OCRPassResult",
    "ParsedItem",
    "ParsedReceipt",
    "PreprocessedVariant",
    "ProcessingTimeout",
    "ReceiptContext",
    "ReceiptImage",
    "ReceiptPipelineError",
    "ReconstructedLineItem",
    "ReviewReason",
    "ScanCancelled",
    "VariantStrategy",
]
