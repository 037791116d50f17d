#!/usr/bin/env python3

import argparse
import logging
from collections.abc import Callable, Sequence

from splitscan.runtime import set_log_level


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that call sys.exit().

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def _threshold(value: str) -> float:
    threshold = float(value)
    if not 0.0 <= threshold <= 1.0:
        raise argparse.ArgumentTypeError("threshold must be between 0 and 1")
    return threshold


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Receipt recognition CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  scan <image>               Scan a receipt image and print the parsed items
  serve [--host] [--port]    Start receipt upload server

Exit codes for scan:
  0 = parsed, 1 = invalid input, 2 = parsed but needs manual entry
""",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Scan a receipt image")
    scan_parser.add_argument("image", help="Path to receipt image")
    scan_parser.add_argument("--json", action="store_true", help="Print the receipt as JSON")
    scan_parser.add_argument(
        "--backend", choices=("tesseract", "http"), default=None, help="OCR backend (default: from settings)"
    )
    scan_parser.add_argument("--ocr-url", default=None, help="OCR service URL for the http backend")
    scan_parser.add_argument(
        "--apply-corrections",
        type=_threshold,
        default=None,
        metavar="THRESHOLD",
        help="Apply suggested price corrections above this confidence (default: never)",
    )
    scan_parser.add_argument("--hint", choices=("thermal", "document"), default=None, help="Receipt layout hint")
    scan_parser.add_argument("--config", default=None, help="Settings TOML (default: config/splitscan.toml)")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start receipt upload server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")

    args = parser.parse_args(argv)

    if args.debug:
        set_log_level(logging.DEBUG)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "scan":
        from splitscan.cli.receipt import cmd_scan

        return _run_command(cmd_scan, args)
    elif args.command == "serve":
        from splitscan.cli.receipt import cmd_serve

        return _run_command(cmd_serve, args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
