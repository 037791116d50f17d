"""Runtime loader for receipt sanity rules."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from splitscan.receipt.validate.rules import SanityRules, build_sanity_rules
from splitscan.runtime.paths import get_paths


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file and return parsed dict; missing files map to empty dict."""
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


@lru_cache(maxsize=8)
def load_sanity_rules(rule_paths: tuple[str, ...] | None = None) -> SanityRules:
    """Load sanity rules from the packaged defaults plus project overrides.

    Args:
        rule_paths: Optional explicit TOML layers, lowest precedence first.
    """
    if rule_paths is None:
        p = get_paths()
        seen_paths: set[Path] = set()
        rule_files: list[Path] = []
        for candidate in (p.default_sanity_rules, p.sanity_rules):
            resolved = candidate.resolve()
            if resolved in seen_paths:
                continue
            seen_paths.add(resolved)
            rule_files.append(candidate)
    else:
        rule_files = [Path(path) for path in rule_paths]

    return build_sanity_rules(tuple(_load_toml(path) for path in rule_files))
