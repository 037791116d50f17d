"""Multi-pass OCR over preprocessed variants.

Variants are tried in order and, for each, every page-segmentation mode in
turn. Passes run one at a time, each raced against its own timer and the
overall budget; the first pass above the high-confidence mark ends the
search.
"""

from __future__ import annotations

import io
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx

from splitscan.domain.errors import BackendUnavailable, ProcessingTimeout, ScanCancelled
from splitscan.domain.receipt import OCRPassResult, PreprocessedVariant
from splitscan.receipt.ocr_helpers import transform_paddleocr_result, transform_tesseract_data
from splitscan.runtime.deadline import CancellationToken, Deadline, run_with_timeout
from splitscan.runtime.logging import get_logger

logger = get_logger(__name__)

# 6 = uniform block (columns), 11 = sparse text
DEFAULT_PSM_MODES = (6, 11)
DEFAULT_PASS_TIMEOUT_S = 30.0
DEFAULT_OVERALL_TIMEOUT_S = 60.0
HIGH_CONFIDENCE = 0.8
MIN_TEXT_LENGTH = 10

RECEIPT_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789.,$%/-:*()#&' "

FAILED_VARIANT = "failed"


@dataclass(frozen=True)
class RecognizedText:
    text: str
    confidence: float


class OCRBackend(Protocol):
    name: str

    def recognize(
        self,
        image: bytes,
        *,
        psm: int,
        timeout_s: float,
        mime_type: str = "image/jpeg",
    ) -> RecognizedText: ...


class OCRServiceError(RuntimeError):
    """Raised when the OCR service answers with an error."""


class TesseractBackend:
    """Local Tesseract via pytesseract."""

    name = "tesseract"

    def __init__(self, lang: str = "eng", whitelist: str | None = RECEIPT_WHITELIST) -> None:
        self.lang = lang
        self.whitelist = whitelist

    def _config(self, psm: int) -> str:
        config = f"--psm {psm}"
        if self.whitelist:
            config += f' -c tessedit_char_whitelist="{self.whitelist}"'
        return config

    def recognize(
        self,
        image: bytes,
        *,
        psm: int,
        timeout_s: float,
        mime_type: str = "image/jpeg",
    ) -> RecognizedText:
        try:
            import pytesseract
            from PIL import Image
        except ImportError as exc:
            raise BackendUnavailable(self.name, str(exc)) from exc

        try:
            data = pytesseract.image_to_data(
                Image.open(io.BytesIO(image)),
                lang=self.lang,
                config=self._config(psm),
                output_type=pytesseract.Output.DICT,
                timeout=timeout_s,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise BackendUnavailable(self.name, str(exc)) from exc
        except RuntimeError as exc:
            # pytesseract kills the subprocess and raises RuntimeError on timeout
            if "timeout" in str(exc).lower():
                raise ProcessingTimeout(f"tesseract psm {psm}", timeout_s) from exc
            raise

        text, confidence = transform_tesseract_data(data)
        return RecognizedText(text=text, confidence=confidence)


class HttpOCRBackend:
    """Remote OCR service reached over HTTP.

    The service answers either ``{"text": ..., "confidence": ...}`` or a
    PaddleOCR-style ``{"detections": [...]}`` payload.
    """

    name = "ocr-service"

    def __init__(self, url: str, client: httpx.Client | None = None) -> None:
        self.url = url.rstrip("/")
        self.client = client

    def _post(self, image: bytes, psm: int, timeout_s: float, mime_type: str) -> httpx.Response:
        extension = mime_type.split("/", 1)[-1]
        kwargs = {
            "files": {"file": (f"receipt.{extension}", image, mime_type)},
            "data": {"psm": str(psm)},
            "timeout": timeout_s,
        }
        if self.client is not None:
            return self.client.post(self.url, **kwargs)
        return httpx.post(self.url, **kwargs)

    def recognize(
        self,
        image: bytes,
        *,
        psm: int,
        timeout_s: float,
        mime_type: str = "image/jpeg",
    ) -> RecognizedText:
        start_time = time.monotonic()
        try:
            response = self._post(image, psm, timeout_s, mime_type)
        except httpx.TimeoutException as exc:
            raise ProcessingTimeout("ocr service request", timeout_s) from exc
        except httpx.RequestError as exc:
            raise BackendUnavailable(self.name, f"Failed to connect to OCR service: {exc}") from exc
        logger.debug("OCR service returned in %.2f seconds", time.monotonic() - start_time)

        if response.status_code != 200:
            raise OCRServiceError(f"OCR service error: {response.status_code}")

        payload = response.json()
        if "detections" in payload:
            text, confidence = transform_paddleocr_result(payload)
        else:
            text = str(payload.get("text", ""))
            confidence = float(payload.get("confidence", 0.0))
            # Some services report a percentage
            if confidence > 1:
                confidence /= 100
        return RecognizedText(text=text, confidence=confidence)


class OCREngine:
    """Sequential multi-pass OCR with early exit and per-pass/overall timeouts."""

    def __init__(
        self,
        backend: OCRBackend,
        *,
        psm_modes: Sequence[int] = DEFAULT_PSM_MODES,
        pass_timeout_s: float = DEFAULT_PASS_TIMEOUT_S,
        overall_timeout_s: float = DEFAULT_OVERALL_TIMEOUT_S,
        high_confidence: float = HIGH_CONFIDENCE,
        min_text_length: int = MIN_TEXT_LENGTH,
    ) -> None:
        self.backend = backend
        self.psm_modes = tuple(psm_modes)
        self.pass_timeout_s = pass_timeout_s
        self.overall_timeout_s = overall_timeout_s
        self.high_confidence = high_confidence
        self.min_text_length = min_text_length

    def _run_pass(
        self,
        variant: PreprocessedVariant,
        psm: int,
        timeout_s: float,
        cancel: CancellationToken | None,
    ) -> RecognizedText:
        def call() -> RecognizedText:
            return self.backend.recognize(variant.data, psm=psm, timeout_s=timeout_s, mime_type=variant.mime_type)

        return run_with_timeout(call, timeout_s, stage=f"ocr {variant.strategy.value}/psm{psm}", cancel=cancel)

    def recognize(
        self,
        variants: Sequence[PreprocessedVariant],
        *,
        cancel: CancellationToken | None = None,
    ) -> list[OCRPassResult]:
        """
        Run OCR passes until one is confident enough or the budget runs out.

        Returns:
            Candidate results in the order they were produced; a single empty
            ``failed`` result when no pass produced usable text.

        Raises:
            ScanCancelled: the cancellation token was set.
        """
        deadline = Deadline(self.overall_timeout_s)
        results: list[OCRPassResult] = []

        for variant in variants:
            for psm in self.psm_modes:
                if cancel is not None:
                    cancel.raise_if_cancelled("ocr")
                if deadline.expired:
                    logger.warning("OCR budget of %.1fs exhausted; stopping", self.overall_timeout_s)
                    return self._finish(results)

                timeout_s = min(self.pass_timeout_s, deadline.remaining())
                start = time.monotonic()
                try:
                    recognized = self._run_pass(variant, psm, timeout_s, cancel)
                except ScanCancelled:
                    raise
                except ProcessingTimeout as exc:
                    logger.warning("OCR pass abandoned: %s", exc)
                    continue
                except BackendUnavailable as exc:
                    logger.debug("%s; no further OCR passes", exc)
                    return self._finish(results)
                except Exception as exc:
                    logger.warning("OCR pass %s/psm%d failed: %s", variant.strategy.value, psm, exc)
                    continue
                elapsed = time.monotonic() - start

                logger.debug(
                    "OCR pass %s/psm%d: %d chars, confidence %.2f in %.2fs",
                    variant.strategy.value,
                    psm,
                    len(recognized.text),
                    recognized.confidence,
                    elapsed,
                )
                if len(recognized.text.strip()) < self.min_text_length:
                    continue

                results.append(
                    OCRPassResult(
                        text=recognized.text,
                        confidence=recognized.confidence,
                        variant=variant.strategy.value,
                        psm=psm,
                        elapsed_s=elapsed,
                    )
                )
                if recognized.confidence > self.high_confidence:
                    logger.debug("High confidence (%.2f), stopping early", recognized.confidence)
                    return self._finish(results)

        return self._finish(results)

    def _finish(self, results: list[OCRPassResult]) -> list[OCRPassResult]:
        if results:
            return results
        logger.warning("No OCR pass produced usable text")
        return [OCRPassResult(text="", confidence=0.0, variant=FAILED_VARIANT, psm=None)]
