"""Public smoke tests for basic module wiring.

Keep these minimal and free of any real-world data.
"""

from __future__ import annotations


def test_imports() -> None:
    import splitscan
    import splitscan.cli.main
    import splitscan.receipt.receipt_parser
    import splitscan.runtime
    import splitscan.runtime.receipt_server

    assert splitscan.scan_receipt_bytes is not None
    assert splitscan.cli.main is not None
    assert splitscan.receipt.receipt_parser is not None
    assert splitscan.runtime is not None
    assert splitscan.runtime.receipt_server.app is not None


def test_cli_help_without_command_returns_error_code() -> None:
    from splitscan.cli.main import main

    assert main([]) == 1
