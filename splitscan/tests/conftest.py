"""Shared pytest fixtures for splitscan tests."""

from __future__ import annotations

import io
from collections.abc import Callable, Iterator

import pytest

from splitscan.receipt.ocr_engine import RecognizedText
from splitscan.runtime.paths import reset_paths
from splitscan.runtime.sanity_rules import load_sanity_rules
from splitscan.runtime.settings import load_settings

RECEIPT_TEXT = "\n".join(
    [
        "CAFE ROMA",
        "12/03/2024",
        "2x Coffee 3.50 7.00",
        "Burger 12.50",
        "Chips 4.50",
        "SUBTOTAL 24.00",
        "GST 2.40",
        "TOTAL 26.40",
    ]
)


class FakeOCRBackend:
    """Scripted OCR backend: returns (or raises) one entry per call, repeating the last."""

    name = "fake"

    def __init__(self, *responses: RecognizedText | BaseException) -> None:
        self.responses = list(responses) or [RecognizedText(text=RECEIPT_TEXT, confidence=0.9)]
        self.calls: list[tuple[int, str]] = []

    def recognize(
        self,
        image: bytes,
        *,
        psm: int,
        timeout_s: float,
        mime_type: str = "image/jpeg",
    ) -> RecognizedText:
        self.calls.append((psm, mime_type))
        response = self.responses[min(len(self.calls) - 1, len(self.responses) - 1)]
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture(autouse=True)
def _isolated_runtime(tmp_path, monkeypatch) -> Iterator[None]:
    """Point project paths at an empty tmp dir and clear cached loaders."""
    monkeypatch.setenv("SPLITSCAN_HOME", str(tmp_path))
    monkeypatch.delenv("SPLITSCAN_CONFIG", raising=False)
    monkeypatch.delenv("SPLITSCAN_OCR_BACKEND", raising=False)
    monkeypatch.delenv("SPLITSCAN_OCR_URL", raising=False)
    reset_paths()
    load_settings.cache_clear()
    load_sanity_rules.cache_clear()
    yield
    reset_paths()
    load_settings.cache_clear()
    load_sanity_rules.cache_clear()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Build an in-memory receipt-like image with Pillow."""

    def _make(
        width: int = 400,
        height: int = 600,
        fmt: str = "JPEG",
        color: tuple[int, int, int] = (245, 245, 240),
        with_text: bool = True,
    ) -> bytes:
        from PIL import Image, ImageDraw

        img = Image.new("RGB", (width, height), color)
        if with_text:
            draw = ImageDraw.Draw(img)
            # Paper-coloured receipt on a darker background, with some "ink"
            draw.rectangle((width // 5, height // 10, width * 4 // 5, height * 9 // 10), fill=(255, 255, 255))
            for row in range(height // 10 + 20, height * 9 // 10 - 20, 30):
                draw.text((width // 5 + 10, row), "Coffee 3.50", fill=(0, 0, 0))
        buffer = io.BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def fake_backend() -> FakeOCRBackend:
    return FakeOCRBackend()
