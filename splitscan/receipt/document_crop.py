"""Receipt region detection and background removal.

A pluggable ``DocumentDetector`` is tried first; without one (or when it
finds nothing) a content-aware centre crop is used. Any failure degrades to
the whole image resized to the target width. This module never raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol

from splitscan.domain.receipt import CropArea, DetectionResult, ReceiptImage
from splitscan.receipt.preprocess import ImagingBackend, PillowImagingBackend
from splitscan.runtime.logging import get_logger

logger = get_logger(__name__)

CropHint = Literal["thermal", "document"]

MAX_DETECTION_DIMENSION = 2000
TARGET_RECEIPT_WIDTH = 1200

# Narrow thermal receipts lose more width than height
THERMAL_MARGIN_X = 0.25
THERMAL_MARGIN_Y = 0.15
LARGE_IMAGE_WIDTH = 1500
LARGE_IMAGE_MARGIN = 0.15
SMALL_IMAGE_MARGIN = 0.25
PORTRAIT_RATIO = 1.2
MIN_CROP_WIDTH = 0.4
MIN_CROP_HEIGHT = 0.5

SMART_CROP_CONFIDENCE = 0.6
THERMAL_CROP_CONFIDENCE = 0.65
DETECTOR_MIN_CONFIDENCE = 0.6
DETECTOR_MAX_CONFIDENCE = 0.9


@dataclass(frozen=True)
class DetectedRegion:
    box: CropArea
    confidence: float


class DocumentDetector(Protocol):
    def detect(self, gray: Any) -> DetectedRegion | None:
        """Find the receipt in a grayscale pixel array, or return None."""
        ...


class ContourDocumentDetector:
    """Edge/contour detector backed by OpenCV (optional ``detect`` extra).

    Picks the largest quadrilateral-ish contour covering a plausible share of
    the frame and returns its bounding box.
    """

    def __init__(self, min_area_ratio: float = 0.2, max_area_ratio: float = 0.98) -> None:
        self.min_area_ratio = min_area_ratio
        self.max_area_ratio = max_area_ratio

    def detect(self, gray: Any) -> DetectedRegion | None:
        import cv2

        height, width = gray.shape[:2]
        frame_area = float(width * height)
        blurred = cv2.GaussianBlur(gray, (5, 5), 0)
        edges = cv2.Canny(blurred, 50, 150)
        edges = cv2.dilate(edges, None, iterations=2)
        contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        best: tuple[float, tuple[int, int, int, int]] | None = None
        for contour in sorted(contours, key=cv2.contourArea, reverse=True)[:5]:
            perimeter = cv2.arcLength(contour, True)
            approx = cv2.approxPolyDP(contour, 0.02 * perimeter, True)
            if len(approx) < 4:
                continue
            x, y, w, h = cv2.boundingRect(approx)
            ratio = (w * h) / frame_area
            if self.min_area_ratio <= ratio <= self.max_area_ratio:
                best = (ratio, (x, y, w, h))
                break

        if best is None:
            return None
        ratio, (x, y, w, h) = best
        confidence = min(DETECTOR_MAX_CONFIDENCE, DETECTOR_MIN_CONFIDENCE + 0.3 * ratio)
        return DetectedRegion(box=CropArea(x=int(x), y=int(y), width=int(w), height=int(h)), confidence=confidence)


def smart_crop_area(width: int, height: int, hint: CropHint | None = None) -> tuple[CropArea, bool]:
    """Centre crop with content-aware margins; returns (area, thermal_layout)."""
    thermal = hint == "thermal" or height >= width * PORTRAIT_RATIO
    if thermal:
        margin_x, margin_y = THERMAL_MARGIN_X, THERMAL_MARGIN_Y
    else:
        margin = LARGE_IMAGE_MARGIN if width > LARGE_IMAGE_WIDTH else SMALL_IMAGE_MARGIN
        margin_x = margin_y = margin

    crop_width = max(width - 2 * int(width * margin_x), int(width * MIN_CROP_WIDTH), 1)
    crop_height = max(height - 2 * int(height * margin_y), int(height * MIN_CROP_HEIGHT), 1)
    crop_width = min(crop_width, width)
    crop_height = min(crop_height, height)
    area = CropArea(
        x=(width - crop_width) // 2,
        y=(height - crop_height) // 2,
        width=crop_width,
        height=crop_height,
    )
    return area, thermal


def _to_source_area(area: CropArea, working: tuple[int, int], source: tuple[int, int]) -> CropArea:
    """Map a box found on the downscaled working image back onto the upload."""
    if working == source:
        return area
    scale_x = source[0] / working[0]
    scale_y = source[1] / working[1]
    x = min(round(area.x * scale_x), source[0] - 1)
    y = min(round(area.y * scale_y), source[1] - 1)
    return CropArea(
        x=x,
        y=y,
        width=max(1, min(round(area.width * scale_x), source[0] - x)),
        height=max(1, min(round(area.height * scale_y), source[1] - y)),
    )


def _fallback(image: ReceiptImage, imaging: ImagingBackend, source: Any | None) -> DetectionResult:
    if source is not None:
        try:
            width, height = imaging.source_size(source)
            data, out_width, out_height = imaging.crop_to_width(source, None, TARGET_RECEIPT_WIDTH)
            return DetectionResult(
                image=data,
                width=out_width,
                height=out_height,
                document_detected=False,
                strategy="fallback",
                confidence=0.0,
                original_width=width,
                original_height=height,
            )
        except Exception as exc:
            logger.debug("Fallback resize failed: %s", exc)
    return DetectionResult(
        image=image.data,
        width=0,
        height=0,
        document_detected=False,
        strategy="fallback",
        confidence=0.0,
    )


def detect_and_crop(
    image: ReceiptImage,
    hint: CropHint | None = None,
    *,
    detector: DocumentDetector | None = None,
    imaging: ImagingBackend | None = None,
) -> DetectionResult:
    """Isolate the receipt within a photo. Never raises."""
    imaging = imaging or PillowImagingBackend()
    source = None
    try:
        source = imaging.decode(image.data, MAX_DETECTION_DIMENSION)
        width, height = imaging.size(source)
        original_width, original_height = imaging.source_size(source)

        if detector is not None:
            try:
                region = detector.detect(imaging.grayscale_array(source))
            except Exception as exc:
                logger.debug("Document detector failed, using smart crop: %s", exc)
                region = None
            if region is not None:
                data, out_width, out_height = imaging.crop_to_width(source, region.box, TARGET_RECEIPT_WIDTH)
                logger.debug("Document detected with confidence %.2f", region.confidence)
                return DetectionResult(
                    image=data,
                    width=out_width,
                    height=out_height,
                    document_detected=True,
                    strategy="bounding_box",
                    confidence=region.confidence,
                    crop_area=_to_source_area(region.box, (width, height), (original_width, original_height)),
                    original_width=original_width,
                    original_height=original_height,
                )

        area, thermal = smart_crop_area(width, height, hint)
        data, out_width, out_height = imaging.crop_to_width(source, area, TARGET_RECEIPT_WIDTH)
        return DetectionResult(
            image=data,
            width=out_width,
            height=out_height,
            document_detected=False,
            strategy="center_crop",
            confidence=THERMAL_CROP_CONFIDENCE if thermal else SMART_CROP_CONFIDENCE,
            crop_area=_to_source_area(area, (width, height), (original_width, original_height)),
            original_width=original_width,
            original_height=original_height,
        )
    except Exception as exc:
        logger.warning("Document cropping failed, using whole image: %s", exc)
        return _fallback(image, imaging, source)
