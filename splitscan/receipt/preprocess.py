"""Image preprocessing: raw upload bytes -> OCR-ready variants.

Variants, in order, at most three:

- light: grayscale plus mild contrast (required)
- thermal_crop: the document-cropped region, autocontrasted and sharpened
- preserve_color: colour kept, mild contrast
- balanced: median denoise plus local-mean adaptive threshold

Imaging goes through an ``ImagingBackend``; when the backend is unavailable
the original bytes are passed through as a single ``fallback`` variant.
"""

from __future__ import annotations

import io
from typing import Any, Protocol

from splitscan.domain.errors import BackendUnavailable, InvalidInput
from splitscan.domain.receipt import CropArea, DetectionResult, PreprocessedVariant, ReceiptImage, VariantStrategy
from splitscan.runtime.logging import get_logger

logger = get_logger(__name__)

MAX_WORKING_DIMENSION = 1600
MAX_VARIANT_BYTES = 2 * 1024 * 1024
MAX_VARIANTS = 3
JPEG_QUALITY = 90

LIGHT_CONTRAST = 1.3
COLOR_CONTRAST = 1.2
# Pixels darker than this fraction of their neighbourhood mean become ink
ADAPTIVE_THRESHOLD_RATIO = 0.9
ADAPTIVE_BLOCK_RADIUS = 7

OPTIONAL_STRATEGIES = (VariantStrategy.PRESERVE_COLOR, VariantStrategy.BALANCED)


class ImagingBackend(Protocol):
    """Capability interface over an image library."""

    name: str

    def decode(self, data: bytes, max_dimension: int = MAX_WORKING_DIMENSION) -> Any:
        """Decode, orient and downscale; raise InvalidInput or BackendUnavailable."""
        ...

    def size(self, image: Any) -> tuple[int, int]: ...

    def source_size(self, image: Any) -> tuple[int, int]:
        """Size of the upload before ``decode`` downscaled it."""
        ...

    def render(self, image: Any, strategy: VariantStrategy) -> PreprocessedVariant: ...

    def crop_to_width(self, image: Any, box: CropArea | None, width: int) -> tuple[bytes, int, int]:
        """Crop to ``box`` (whole image when None) and resize to ``width``; JPEG bytes."""
        ...

    def grayscale_array(self, image: Any) -> Any: ...


class PillowImagingBackend:
    """ImagingBackend implemented with Pillow and numpy."""

    name = "pillow"

    def _pil(self) -> Any:
        try:
            import PIL.Image
        except ImportError as exc:
            raise BackendUnavailable(self.name, str(exc)) from exc
        return PIL.Image

    def decode(self, data: bytes, max_dimension: int = MAX_WORKING_DIMENSION) -> Any:
        Image = self._pil()
        from PIL import ImageOps, UnidentifiedImageError

        try:
            img = Image.open(io.BytesIO(data))
            # Apply EXIF orientation so every variant sees the same page
            img = ImageOps.exif_transpose(img)
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            raise InvalidInput("INVALID_IMAGE", f"Could not decode image: {exc}") from exc

        width, height = img.size
        if width <= 0 or height <= 0:
            raise InvalidInput("INVALID_IMAGE_DIMENSIONS", "Invalid image dimensions")

        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        if width > max_dimension or height > max_dimension:
            scale = min(max_dimension / width, max_dimension / height)
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            img = img.resize(new_size, Image.Resampling.LANCZOS)
        img.info["source_size"] = (width, height)
        return img

    def size(self, image: Any) -> tuple[int, int]:
        return image.size

    def source_size(self, image: Any) -> tuple[int, int]:
        return image.info.get("source_size", image.size)

    def _encode(self, img: Any, fmt: str = "JPEG") -> bytes:
        buffer = io.BytesIO()
        if fmt == "JPEG":
            img.save(buffer, format="JPEG", quality=JPEG_QUALITY)
        else:
            img.save(buffer, format=fmt, optimize=True)
        return buffer.getvalue()

    def _adaptive_threshold(self, gray: Any) -> Any:
        import numpy as np
        from PIL import Image, ImageFilter

        local_mean = np.asarray(gray.filter(ImageFilter.BoxBlur(ADAPTIVE_BLOCK_RADIUS)), dtype=np.float32)
        pixels = np.asarray(gray, dtype=np.float32)
        binary = np.where(pixels < local_mean * ADAPTIVE_THRESHOLD_RATIO, 0, 255).astype(np.uint8)
        return Image.fromarray(binary)

    def render(self, image: Any, strategy: VariantStrategy) -> PreprocessedVariant:
        from PIL import ImageEnhance, ImageFilter, ImageOps

        mime_type = "image/jpeg"
        if strategy is VariantStrategy.LIGHT:
            out = ImageEnhance.Contrast(image.convert("L")).enhance(LIGHT_CONTRAST)
            data = self._encode(out)
        elif strategy is VariantStrategy.THERMAL_CROP:
            out = ImageOps.autocontrast(image.convert("L")).filter(ImageFilter.SHARPEN)
            data = self._encode(out)
        elif strategy is VariantStrategy.PRESERVE_COLOR:
            out = ImageEnhance.Contrast(image.convert("RGB")).enhance(COLOR_CONTRAST)
            data = self._encode(out)
        elif strategy is VariantStrategy.BALANCED:
            denoised = image.convert("L").filter(ImageFilter.MedianFilter(3))
            out = self._adaptive_threshold(denoised)
            data = self._encode(out, "PNG")
            mime_type = "image/png"
        else:
            raise ValueError(f"Cannot render variant {strategy.value}")

        width, height = out.size
        return PreprocessedVariant(strategy=strategy, data=data, width=width, height=height, mime_type=mime_type)

    def crop_to_width(self, image: Any, box: CropArea | None, width: int) -> tuple[bytes, int, int]:
        Image = self._pil()
        img = image
        if box is not None:
            img = img.crop((box.x, box.y, box.x + box.width, box.y + box.height))
        src_width, src_height = img.size
        height = max(1, round(src_height * width / src_width))
        img = img.resize((width, height), Image.Resampling.LANCZOS)
        return self._encode(img.convert("RGB")), width, height

    def grayscale_array(self, image: Any) -> Any:
        import numpy as np

        return np.asarray(image.convert("L"))


def _check_size(variant: PreprocessedVariant) -> bool:
    return len(variant.data) <= MAX_VARIANT_BYTES


def fallback_variant(image: ReceiptImage) -> PreprocessedVariant:
    if image.size > MAX_VARIANT_BYTES:
        raise InvalidInput("IMAGE_TOO_LARGE", "Image exceeds the 2 MB processing limit")
    return PreprocessedVariant(
        strategy=VariantStrategy.FALLBACK,
        data=image.data,
        width=0,
        height=0,
        mime_type="image/jpeg" if image.mime_type == "image/jpg" else image.mime_type,
    )


def _optional_variant(
    imaging: ImagingBackend,
    strategy: VariantStrategy,
    source: Any,
) -> PreprocessedVariant | None:
    try:
        variant = imaging.render(source, strategy)
    except Exception as exc:
        logger.warning("Skipping %s variant: %s", strategy.value, exc)
        return None
    if not _check_size(variant):
        logger.debug("Dropping %s variant: %d bytes over limit", strategy.value, len(variant.data))
        return None
    return variant


def preprocess(
    image: ReceiptImage,
    *,
    detection: DetectionResult | None = None,
    imaging: ImagingBackend | None = None,
) -> list[PreprocessedVariant]:
    """
    Produce OCR variants for a validated receipt image.

    Raises:
        InvalidInput: undecodable image, zero dimensions, the required
            variant failed or is over the size ceiling.
    """
    imaging = imaging or PillowImagingBackend()
    try:
        source = imaging.decode(image.data)
    except BackendUnavailable as exc:
        logger.debug("%s; passing original image through", exc)
        return [fallback_variant(image)]

    try:
        light = imaging.render(source, VariantStrategy.LIGHT)
    except BackendUnavailable as exc:
        logger.debug("%s; passing original image through", exc)
        return [fallback_variant(image)]
    except InvalidInput:
        raise
    except Exception as exc:
        raise InvalidInput("PREPROCESSING_ERROR", f"Image preprocessing failed: {exc}") from exc
    if not _check_size(light):
        raise InvalidInput("IMAGE_TOO_LARGE", "Preprocessed image exceeds the 2 MB processing limit")
    variants = [light]

    if detection is not None and detection.strategy != "fallback":
        try:
            cropped = imaging.decode(detection.image)
        except Exception as exc:
            logger.warning("Skipping thermal_crop variant: %s", exc)
        else:
            variant = _optional_variant(imaging, VariantStrategy.THERMAL_CROP, cropped)
            if variant is not None:
                variants.append(variant)

    for strategy in OPTIONAL_STRATEGIES:
        if len(variants) >= MAX_VARIANTS:
            break
        variant = _optional_variant(imaging, strategy, source)
        if variant is not None:
            variants.append(variant)

    logger.debug("Prepared variants: %s", ", ".join(v.strategy.value for v in variants))
    return variants
