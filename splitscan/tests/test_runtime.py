"""Tests for runtime settings, rule loading and stage timeouts."""

import logging
import threading
import time
from decimal import Decimal

import pytest

from splitscan.domain.errors import ProcessingTimeout, ScanCancelled
from splitscan.runtime import (
    CancellationToken,
    Deadline,
    get_logger,
    get_paths,
    is_debug_enabled,
    load_sanity_rules,
    load_settings,
    run_with_timeout,
    set_log_level,
)
from splitscan.runtime.settings import PipelineSettings, settings_from_mapping


def test_default_settings_without_config_file() -> None:
    settings = load_settings()

    assert settings == PipelineSettings()
    assert settings.ocr_backend == "tesseract"
    assert settings.psm_modes == (6, 11)
    assert settings.apply_corrections_above is None


def test_settings_file_and_environment_overrides(tmp_path, monkeypatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "splitscan.toml").write_text(
        "\n".join(
            [
                "[ocr]",
                'backend = "http"',
                "psm_modes = [4, 6]",
                "[timeouts]",
                "pass_s = 12",
                "[corrections]",
                "apply_above = 0.65",
            ]
        )
    )
    monkeypatch.setenv("SPLITSCAN_OCR_URL", "http://ocr.internal:9000/ocr")

    settings = load_settings()

    assert settings.ocr_backend == "http"
    assert settings.psm_modes == (4, 6)
    assert settings.pass_timeout_s == 12.0
    assert settings.apply_corrections_above == pytest.approx(0.65)
    assert settings.ocr_url == "http://ocr.internal:9000/ocr"


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown OCR backend"):
        settings_from_mapping({"ocr": {"backend": "cloud"}})


def test_packaged_sanity_rules_load_with_project_override(tmp_path) -> None:
    assert get_paths().default_sanity_rules.exists()
    assert load_sanity_rules().suspicious_quantity == 6

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "sanity_rules.toml").write_text('[low_unit_price]\nmin_price = "2.50"\n')
    load_sanity_rules.cache_clear()

    rules = load_sanity_rules()

    assert rules.min_food_price == Decimal("2.50")
    assert rules.suspicious_quantity == 6


def test_run_with_timeout_returns_result() -> None:
    assert run_with_timeout(lambda: 42, 1.0, stage="answer") == 42


def test_run_with_timeout_raises_processing_timeout() -> None:
    release = threading.Event()
    try:
        with pytest.raises(ProcessingTimeout) as exc:
            run_with_timeout(lambda: release.wait(2), 0.05, stage="slow")
    finally:
        release.set()
    assert exc.value.stage == "slow"


def test_run_with_timeout_propagates_errors() -> None:
    def fail() -> None:
        raise KeyError("missing")

    with pytest.raises(KeyError):
        run_with_timeout(fail, 1.0, stage="fail")


def test_cancellation_interrupts_wait() -> None:
    cancel = CancellationToken()
    release = threading.Event()
    threading.Timer(0.05, cancel.cancel).start()

    start = time.monotonic()
    try:
        with pytest.raises(ScanCancelled):
            run_with_timeout(lambda: release.wait(2), 5.0, stage="ocr", cancel=cancel)
    finally:
        release.set()
    assert time.monotonic() - start < 1.0


def test_deadline_counts_down() -> None:
    now = [100.0]
    deadline = Deadline(10.0, clock=lambda: now[0])

    assert deadline.remaining() == pytest.approx(10.0)
    now[0] = 108.0
    assert deadline.remaining() == pytest.approx(2.0)
    now[0] = 111.0
    assert deadline.expired


def test_loggers_live_under_the_package_namespace() -> None:
    assert get_logger("splitscan.receipt.ocr_engine").name == "splitscan.receipt.ocr_engine"
    assert get_logger("plugin").name == "splitscan.plugin"

    set_log_level(logging.DEBUG)
    try:
        assert is_debug_enabled()
    finally:
        set_log_level(logging.INFO)
    assert not is_debug_enabled()
