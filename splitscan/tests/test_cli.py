"""Tests for the command-line entry point."""

import json

import pytest
from conftest import FakeOCRBackend

from splitscan.cli.main import main


@pytest.fixture
def fake_ocr(monkeypatch) -> FakeOCRBackend:
    backend = FakeOCRBackend()
    monkeypatch.setattr("splitscan.application.receipts.scan.build_ocr_backend", lambda settings: backend)
    return backend


def test_scan_prints_json(tmp_path, make_image, fake_ocr, capsys) -> None:
    image = tmp_path / "receipt.jpg"
    image.write_bytes(make_image())

    code = main(["scan", str(image), "--json"])

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["merchant"] == "CAFE ROMA"
    assert data["total"] == "26.40"


def test_scan_prints_summary(tmp_path, make_image, fake_ocr, capsys) -> None:
    image = tmp_path / "receipt.jpg"
    image.write_bytes(make_image())

    assert main(["scan", str(image)]) == 0
    assert "PARSED RECEIPT" in capsys.readouterr().out


def test_scan_missing_file(tmp_path, capsys) -> None:
    assert main(["scan", str(tmp_path / "nope.jpg")]) == 1
    assert "not found" in capsys.readouterr().out


def test_scan_non_image_file(tmp_path, fake_ocr, capsys) -> None:
    path = tmp_path / "receipt.jpg"
    path.write_bytes(b"plain text")

    assert main(["scan", str(path)]) == 1
    assert "Invalid image format" in capsys.readouterr().out


def test_scan_blank_image_exits_with_manual_entry_code(tmp_path, make_image, monkeypatch) -> None:
    from splitscan.receipt.ocr_engine import RecognizedText

    backend = FakeOCRBackend(RecognizedText("", 0.0))
    monkeypatch.setattr("splitscan.application.receipts.scan.build_ocr_backend", lambda settings: backend)
    image = tmp_path / "blank.png"
    image.write_bytes(make_image(fmt="PNG", with_text=False))

    assert main(["scan", str(image)]) == 2


def test_apply_corrections_threshold_is_validated(tmp_path) -> None:
    with pytest.raises(SystemExit):
        main(["scan", str(tmp_path / "x.jpg"), "--apply-corrections", "1.5"])
