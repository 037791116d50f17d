"""Runtime infrastructure for splitscan.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- Settings and sanity rule loading via load_settings(), load_sanity_rules()
- Stage timeouts and cancellation via run_with_timeout(), CancellationToken

Usage:
    from splitscan.runtime import get_logger, load_settings

    logger = get_logger(__name__)
    settings = load_settings()
    print(settings.ocr_backend, settings.psm_modes)
"""

from splitscan.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    is_debug_enabled,
    set_log_level,
)
from splitscan.runtime.deadline import CancellationToken, Deadline, run_with_timeout
from splitscan.runtime.paths import ProjectPaths, get_paths, reset_paths
from splitscan.runtime.settings import PipelineSettings, load_settings
from splitscan.runtime.sanity_rules import load_sanity_rules

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "is_debug_enabled",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Timeouts
    "CancellationToken",
    "Deadline",
    "run_with_timeout",
    # Configuration
    "PipelineSettings",
    "load_settings",
    "load_sanity_rules",
    # Paths
    "get_paths",
    "reset_paths",
    "ProjectPaths",
]
