"""Centralized path management for splitscan.

Single source of truth for configuration and rule file locations.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    """Project root: SPLITSCAN_HOME if set, else the working directory."""
    env_root = os.environ.get("SPLITSCAN_HOME")
    if env_root:
        return Path(env_root)
    return Path.cwd()


@dataclass
class ProjectPaths:
    """Container for project-related paths.

    Project-level files are resolved relative to the project root; packaged
    defaults are resolved relative to the installed ``splitscan`` package.
    """

    root: Path = field(default_factory=_get_project_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Source code paths ---
    @property
    def src(self) -> Path:
        """Installed splitscan package directory."""
        return Path(__file__).resolve().parents[1]

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def settings_file(self) -> Path:
        """Pipeline settings TOML file (SPLITSCAN_CONFIG overrides)."""
        env_path = os.environ.get("SPLITSCAN_CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        return self.config / "splitscan.toml"

    @property
    def sanity_rules(self) -> Path:
        """Project-level sanity rule overrides."""
        return self.config / "sanity_rules.toml"

    @property
    def default_sanity_rules(self) -> Path:
        """Packaged default sanity rules TOML file."""
        return self.src / "receipt" / "rules" / "default_sanity_rules.toml"


_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the singleton ProjectPaths instance."""
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def reset_paths() -> None:
    """Forget the cached singleton (tests change SPLITSCAN_HOME)."""
    global _paths
    _paths = None
