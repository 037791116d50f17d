"""Runtime loader for pipeline settings.

Sources, lowest precedence first:
    built-in defaults < TOML file (SPLITSCAN_CONFIG or config/splitscan.toml)
    < environment (SPLITSCAN_OCR_BACKEND, SPLITSCAN_OCR_URL)

Example config/splitscan.toml:

    [ocr]
    backend = "http"
    url = "http://127.0.0.1:8001/ocr"
    psm_modes = [6, 11]
    high_confidence = 0.8

    [timeouts]
    pass_s = 30
    overall_s = 60

    [corrections]
    apply_above = 0.6
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from splitscan.runtime.logging import get_logger
from splitscan.runtime.paths import get_paths

logger = get_logger(__name__)

OCRBackendName = Literal["tesseract", "http"]
_BACKENDS: tuple[str, ...] = ("tesseract", "http")

DEFAULT_OCR_URL = "http://127.0.0.1:8001/ocr"


@dataclass(frozen=True)
class PipelineSettings:
    ocr_backend: OCRBackendName = "tesseract"
    ocr_url: str = DEFAULT_OCR_URL
    psm_modes: tuple[int, ...] = (6, 11)
    high_confidence: float = 0.8
    min_text_length: int = 10
    pass_timeout_s: float = 30.0
    overall_timeout_s: float = 60.0
    preprocess_timeout_s: float = 20.0
    request_timeout_s: float = 90.0
    # None disables auto-application of corrections
    apply_corrections_above: float | None = None
    sanity_rules_path: str | None = None


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file and return parsed dict; missing files map to empty dict."""
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def _check_backend(value: Any, source: str) -> OCRBackendName:
    if value not in _BACKENDS:
        raise ValueError(f"Unknown OCR backend {value!r} in {source}; expected one of {', '.join(_BACKENDS)}")
    return value  # type: ignore[no-any-return]


def settings_from_mapping(config: dict[str, Any], *, source: str = "config") -> PipelineSettings:
    """Build settings from a parsed TOML mapping, keeping defaults for missing keys."""
    settings = PipelineSettings()
    ocr = config.get("ocr", {})
    timeouts = config.get("timeouts", {})
    corrections = config.get("corrections", {})
    rules = config.get("rules", {})

    updates: dict[str, Any] = {}
    if "backend" in ocr:
        updates["ocr_backend"] = _check_backend(ocr["backend"], source)
    if "url" in ocr:
        updates["ocr_url"] = str(ocr["url"])
    if "psm_modes" in ocr:
        updates["psm_modes"] = tuple(int(mode) for mode in ocr["psm_modes"])
    if "high_confidence" in ocr:
        updates["high_confidence"] = float(ocr["high_confidence"])
    if "min_text_length" in ocr:
        updates["min_text_length"] = int(ocr["min_text_length"])

    for key, attr in (
        ("pass_s", "pass_timeout_s"),
        ("overall_s", "overall_timeout_s"),
        ("preprocess_s", "preprocess_timeout_s"),
        ("request_s", "request_timeout_s"),
    ):
        if key in timeouts:
            updates[attr] = float(timeouts[key])

    if "apply_above" in corrections:
        updates["apply_corrections_above"] = float(corrections["apply_above"])
    if "sanity_rules" in rules:
        updates["sanity_rules_path"] = str(rules["sanity_rules"])

    return replace(settings, **updates)


def _apply_env(settings: PipelineSettings) -> PipelineSettings:
    updates: dict[str, Any] = {}
    backend = os.environ.get("SPLITSCAN_OCR_BACKEND")
    if backend:
        updates["ocr_backend"] = _check_backend(backend.lower(), "SPLITSCAN_OCR_BACKEND")
    url = os.environ.get("SPLITSCAN_OCR_URL")
    if url:
        updates["ocr_url"] = url
    return replace(settings, **updates) if updates else settings


@lru_cache(maxsize=4)
def load_settings(config_path: str | None = None) -> PipelineSettings:
    """
    Load pipeline settings.

    Args:
        config_path: Optional TOML path override. If None, uses the project settings file.

    Returns:
        Frozen PipelineSettings with file and environment overrides applied.
    """
    path = Path(config_path) if config_path is not None else get_paths().settings_file
    config = _load_toml(path)
    if config:
        logger.debug("Loaded settings from %s", path)
    return _apply_env(settings_from_mapping(config, source=str(path)))
