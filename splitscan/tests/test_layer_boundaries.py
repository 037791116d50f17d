"""Architecture boundary checks between the package layers."""

from __future__ import annotations

import ast
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]

# Source layer -> splitscan modules it may import (prefix match)
_ALLOWED_IMPORTS = {
    "domain": ("splitscan.domain",),
    "receipt": (
        "splitscan.domain",
        "splitscan.receipt",
        "splitscan.runtime.logging",
        "splitscan.runtime.deadline",
    ),
    "application": (
        "splitscan.application",
        "splitscan.domain",
        "splitscan.receipt",
        "splitscan.runtime",
    ),
}


def _imports(path: Path) -> list[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    result: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                result.append(alias.name)
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            result.append(node.module)
    return result


def _violations(layer: str) -> list[str]:
    allowed = _ALLOWED_IMPORTS[layer]
    violations: list[str] = []
    for path in sorted((_ROOT / layer).rglob("*.py")):
        for mod in _imports(path):
            if not mod.startswith("splitscan"):
                continue
            if not any(mod == prefix or mod.startswith(f"{prefix}.") for prefix in allowed):
                violations.append(f"{path.relative_to(_ROOT)}: {mod}")
    return violations


def test_domain_imports_only_domain() -> None:
    violations = _violations("domain")
    assert not violations, "Domain import violations:\n" + "\n".join(violations)


def test_receipt_pipeline_does_not_reach_into_config_or_surfaces() -> None:
    violations = _violations("receipt")
    assert not violations, "Receipt import violations:\n" + "\n".join(violations)


def test_application_does_not_import_cli_or_server() -> None:
    violations = _violations("application") + [
        f"{path.relative_to(_ROOT)}: {mod}"
        for path in sorted((_ROOT / "application").rglob("*.py"))
        for mod in _imports(path)
        if mod == "splitscan.runtime.receipt_server"
    ]
    assert not violations, "Application import violations:\n" + "\n".join(violations)
