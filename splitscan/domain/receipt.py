"""Data models for receipt recognition."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from splitscan.domain.errors import InvalidInput

ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")


def detect_image_format(data: bytes) -> str | None:
    """Return "jpeg", "png" or "webp" from the magic bytes, else None."""
    if data[:3] == b"\xff\xd8\xff":
        return "jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def _format_for_mime(mime_type: str) -> str:
    return "jpeg" if mime_type in ("image/jpeg", "image/jpg") else mime_type.split("/", 1)[1]


@dataclass(frozen=True)
class ReceiptImage:
    """Raw uploaded image bytes plus the declared MIME type."""

    data: bytes
    mime_type: str

    def __post_init__(self) -> None:
        if not self.data:
            raise InvalidInput("EMPTY_BUFFER", "Image buffer is empty")
        if self.mime_type not in ALLOWED_MIME_TYPES:
            raise InvalidInput(
                "INVALID_IMAGE_TYPE",
                f"File type not supported: {self.mime_type or 'unknown'}. Allowed: image/jpeg, image/png, image/webp",
            )
        detected = detect_image_format(self.data)
        if detected is None or detected != _format_for_mime(self.mime_type):
            raise InvalidInput("INVALID_IMAGE_FORMAT", "Invalid image format or corrupted file")

    @property
    def size(self) -> int:
        return len(self.data)


class VariantStrategy(str, Enum):
    PRESERVE_COLOR = "preserve_color"
    LIGHT = "light"
    BALANCED = "balanced"
    THERMAL_CROP = "thermal_crop"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class PreprocessedVariant:
    """One image derivative prepared for OCR."""

    strategy: VariantStrategy
    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class CropArea:
    x: int
    y: int
    width: int
    height: int


DetectionStrategy = Literal["bounding_box", "center_crop", "fallback"]

# Below this, consumers should warn that the receipt could not be isolated
LOW_DETECTION_CONFIDENCE = 0.3


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of document cropping. Confidence is heuristic, not calibrated."""

    image: bytes
    width: int
    height: int
    document_detected: bool
    strategy: DetectionStrategy
    confidence: float
    crop_area: CropArea | None = None
    original_width: int = 0
    original_height: int = 0

    @property
    def could_not_isolate(self) -> bool:
        return self.confidence < LOW_DETECTION_CONFIDENCE


@dataclass(frozen=True)
class OCRPassResult:
    """Output of one OCR engine invocation."""

    text: str
    confidence: float
    variant: str
    psm: int | None = None
    elapsed_s: float = 0.0


@dataclass(frozen=True)
class ScoredResult:
    result: OCRPassResult
    score: float
    item_line_count: int
    keyword_count: int
    reasons: tuple[str, ...] = ()
    index: int = 0


@dataclass(frozen=True)
class NormalizedLine:
    """A repaired OCR line. ``changes`` is an audit log only."""

    normalized: str
    original: str
    changes: tuple[str, ...] = ()


def _money(value: Any) -> str:
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


_REASON_TEMPLATES: dict[str, str] = {
    "high_quantity": "Unusually high quantity: {quantity}",
    "quantity_mismatch": (
        "Quantity mismatch: {quantity} × ${unit_price} = ${expected}, but line total is ${actual}"
    ),
    "low_unit_price": "Unit price (${unit_price}) seems too low for a food item",
    "exceeds_receipt_total": "Line total (${line_total}) exceeds receipt total (${receipt_total})",
    "uncommon_cents": "Price ends with uncommon cents (.{cents}) - may be OCR error",
    "suspicious_quantity": "Unusually high quantity ({quantity}) - may be OCR error",
    "exceeds_max_item": "Price (${line_total}) is much higher than other items (max: ${max_total})",
    "order_of_magnitude": "Price appears to be an order of magnitude off ({ratio}x average)",
    "auto_corrected": "Auto-corrected {correction_type}: {original} → {corrected}",
}


@dataclass(frozen=True)
class ReviewReason:
    """Structured reason an item needs review; rendered to text for display."""

    code: str
    params: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, code: str, **params: Any) -> ReviewReason:
        return cls(code=code, params=tuple(sorted(params.items())))

    def param(self, name: str) -> Any:
        return dict(self.params).get(name)

    def render(self) -> str:
        template = _REASON_TEMPLATES.get(self.code)
        values = {key: _money(value) for key, value in self.params}
        if template is None:
            return self.code
        return template.format(**values)


@dataclass(frozen=True)
class ReconstructedLineItem:
    """A receipt line parsed into columns."""

    quantity: int
    item_name: str
    unit_price: Decimal | None
    line_total: Decimal
    confidence: float
    needs_review: bool
    review_reasons: tuple[ReviewReason, ...]
    original_line: str
    # True when unit_price was computed as line_total / quantity
    unit_price_derived: bool = False


@dataclass(frozen=True)
class ReceiptContext:
    """Whole-receipt view consulted by every sanity rule."""

    items: tuple[ReconstructedLineItem, ...]
    receipt_total: Decimal | None = None
    subtotal: Decimal | None = None

    def others(self, item: ReconstructedLineItem | None) -> list[ReconstructedLineItem]:
        """Every item except ``item`` itself (compared by identity)."""
        return [other for other in self.items if other is not item]


class CorrectionType(str, Enum):
    EXTRA_DIGIT = "extra_digit"
    MISSING_DECIMAL = "missing_decimal"
    SHIFTED_DECIMAL = "shifted_decimal"
    MISSING_LEADING_DIGIT = "missing_leading_digit"
    NONE = "none"


CorrectionField = Literal["line_total", "unit_price"]


@dataclass(frozen=True)
class CorrectionProposal:
    """Advisory correction; applying it is always the caller's decision."""

    field: CorrectionField
    original_value: Decimal
    suggested_value: Decimal
    correction_type: CorrectionType
    confidence: float
    reason: str = ""


@dataclass(frozen=True)
class CorrectionMetadata:
    """Audit record of an applied correction (before -> after, why)."""

    field: CorrectionField
    original_value: Decimal
    corrected_value: Decimal
    correction_type: CorrectionType
    confidence: float


@dataclass(frozen=True)
class SanityCheckResult:
    confidence: float
    needs_review: bool
    review_reasons: tuple[ReviewReason, ...]
    suggested_corrections: tuple[CorrectionProposal, ...] = ()

    @property
    def is_suspicious(self) -> bool:
        return bool(self.review_reasons)


@dataclass
class ParsedItem:
    """Final item handed to the item-management collaborator."""

    id: str
    name: str
    quantity: int
    unit_price: Decimal | None
    total_price: Decimal
    confidence: float
    needs_review: bool
    raw_text: str
    review_reasons: list[ReviewReason] = field(default_factory=list)
    correction_metadata: CorrectionMetadata | None = None
    suggested_corrections: list[CorrectionProposal] = field(default_factory=list)


@dataclass(frozen=True)
class OCRMetadata:
    selected_variant: str
    selected_psm: int | None
    score: float
    low_confidence: bool


@dataclass(frozen=True)
class DetectionSummary:
    document_detected: bool
    strategy: str
    confidence: float


@dataclass
class ParsedReceipt:
    """Parsed receipt data."""

    items: list[ParsedItem] = field(default_factory=list)
    merchant: str | None = None
    date: str | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    service_charge: Decimal | None = None
    total: Decimal | None = None
    confidence: float = 0.0
    raw_text: str = ""  # Original OCR text, kept for the manual-entry fallback
    needs_manual_entry: bool = True
    ocr_metadata: OCRMetadata | None = None
    detection: DetectionSummary | None = None

    @classmethod
    def empty(cls, raw_text: str = "") -> ParsedReceipt:
        return cls(raw_text=raw_text, needs_manual_entry=True)
