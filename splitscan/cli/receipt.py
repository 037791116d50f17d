"""Receipt command handlers used by the unified CLI."""

import argparse
import json
import mimetypes
import sys
from dataclasses import replace
from pathlib import Path

from splitscan.domain.receipt import detect_image_format
from splitscan.runtime import get_logger, load_settings

logger = get_logger(__name__)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI server for receiving receipt uploads."""
    import uvicorn

    from splitscan.runtime import receipt_server as server

    print(f"Starting receipt server on {args.host}:{args.port}")
    print(f"Upload endpoint: http://{args.host}:{args.port}/receipts/scan")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)


def _guess_mime_type(path: Path, data: bytes) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type is not None:
        return mime_type
    detected = detect_image_format(data)
    return f"image/{detected}" if detected else "application/octet-stream"


def cmd_scan(args: argparse.Namespace) -> None:
    """Scan a receipt image and print the parsed receipt."""
    from splitscan.application.receipts.scan import ReceiptScanRequest, run_receipt_scan
    from splitscan.receipt.formatter import format_receipt_summary, receipt_to_dict

    receipt_path = Path(args.image)
    if not receipt_path.exists():
        print(f"Error: Receipt file not found: {receipt_path}")
        sys.exit(1)

    settings = load_settings(args.config)
    overrides: dict[str, object] = {}
    if args.backend:
        overrides["ocr_backend"] = args.backend
    if args.ocr_url:
        overrides["ocr_url"] = args.ocr_url
    if args.apply_corrections is not None:
        overrides["apply_corrections_above"] = args.apply_corrections
    if overrides:
        settings = replace(settings, **overrides)

    data = receipt_path.read_bytes()
    result = run_receipt_scan(
        ReceiptScanRequest(
            data=data,
            mime_type=_guess_mime_type(receipt_path, data),
            settings=settings,
            hint=args.hint,
        )
    )

    if result.status == "invalid_input":
        logger.error("%s (%s)", result.error, result.error_code)
        print(f"Error: {result.error}")
        sys.exit(1)

    receipt = result.receipt
    if receipt is None:
        print("Scan failed: missing receipt output.")
        sys.exit(1)

    if args.json:
        print(json.dumps(receipt_to_dict(receipt), indent=2, ensure_ascii=False))
    else:
        print("=" * 60)
        print("PARSED RECEIPT")
        print("=" * 60)
        print(format_receipt_summary(receipt))
        print("=" * 60)

    if result.status == "needs_manual_entry":
        sys.exit(2)
