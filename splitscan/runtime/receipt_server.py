"""FastAPI server for receiving receipt images from phones."""

import asyncio
import re
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from splitscan.application.receipts.scan import ReceiptScanRequest, run_receipt_scan
from splitscan.domain.receipt import ALLOWED_MIME_TYPES
from splitscan.receipt.formatter import receipt_to_dict
from splitscan.receipt.ocr_engine import OCRBackend
from splitscan.runtime.logging import get_logger
from splitscan.runtime.settings import PipelineSettings, load_settings

logger = get_logger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
CROP_HINTS = ("thermal", "document")


class FixiOSMultipartMiddleware(BaseHTTPMiddleware):
    """Fix iOS Shortcuts multipart boundary issue (LF vs CRLF)."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        content_type = request.headers.get("content-type", "")
        if not content_type.startswith("multipart/form-data"):
            return await call_next(request)

        boundary_match = re.search(r"boundary=([^;]+)", content_type)
        if not boundary_match:
            logger.debug("Multipart request missing boundary; skipping normalization")
            return await call_next(request)

        body = await request.body()
        boundary_bytes = b"--" + boundary_match.group(1).strip().strip('"').encode()
        if re.search(rb"(?<!\r)\n" + re.escape(boundary_bytes), body) is not None:
            logger.debug("Multipart boundary uses LF-only line endings; normalizing headers to CRLF")

        # Part headers may still be LF-only even when the boundaries are not
        fixed_parts: list[bytes] = []
        for i, part in enumerate(body.split(boundary_bytes)):
            if i == 0 or not part or part.startswith(b"--"):
                fixed_parts.append(part)
                continue

            leading = b""
            if part.startswith(b"\r\n"):
                leading, part_content = b"\r\n", part[2:]
            elif part.startswith(b"\n"):
                leading, part_content = b"\n", part[1:]
            else:
                part_content = part

            if b"\r\n\r\n" in part_content:
                header, body_rest = part_content.split(b"\r\n\r\n", 1)
            elif b"\n\n" in part_content:
                header, body_rest = part_content.split(b"\n\n", 1)
            else:
                fixed_parts.append(part)
                continue

            header = header.replace(b"\r\n", b"\n").replace(b"\n", b"\r\n")
            fixed_parts.append(leading + header + b"\r\n\r\n" + body_rest)

        fixed_body = boundary_bytes.join(fixed_parts)

        async def receive() -> dict[str, Any]:
            return {"type": "http.request", "body": fixed_body}

        # Downstream replays the cached body on current Starlette, the receive channel on older ones
        request._body = fixed_body
        request._receive = receive
        return await call_next(request)


def _error(code: str, message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"ok": False, "code": code, "message": message}, status_code=status_code)


def create_app(settings: PipelineSettings | None = None, backend: OCRBackend | None = None) -> FastAPI:
    """Build the upload server; ``settings`` default to ``load_settings()`` per request."""
    app = FastAPI(title="Receipt Scanner")
    app.add_middleware(FixiOSMultipartMiddleware)

    @app.post("/receipts/scan")
    async def scan_receipt(request: Request) -> JSONResponse:
        """Receive a receipt image and return the parsed receipt."""
        form = await request.form()

        file = None
        for key, value in form.items():
            if hasattr(value, "read"):
                logger.debug("Using form field %r as the upload", key)
                file = value
                break

        if file is None:
            return _error("NO_FILE", "No file found in request")

        content_type = (getattr(file, "content_type", None) or "").split(";")[0].strip().lower()
        if content_type not in ALLOWED_MIME_TYPES:
            return _error("INVALID_FILE_TYPE", f"Unsupported file type: {content_type or 'unknown'}")

        contents = await file.read()
        if len(contents) > MAX_UPLOAD_BYTES:
            return _error("FILE_TOO_LARGE", "File exceeds the 5 MB upload limit")

        hint = form.get("hint")
        scan_request = ReceiptScanRequest(
            data=contents,
            mime_type=content_type,
            settings=settings or load_settings(),
            hint=hint if hint in CROP_HINTS else None,
            backend=backend,
        )
        result = await asyncio.to_thread(run_receipt_scan, scan_request)

        if result.status == "invalid_input":
            return _error(result.error_code or "INVALID_IMAGE", result.error or "Invalid image")
        if result.status == "cancelled" or result.receipt is None:
            return _error("CANCELLED", result.error or "Scan cancelled", status_code=503)

        logger.info(
            "Scanned receipt: %d items, confidence %.2f, %s",
            len(result.receipt.items),
            result.receipt.confidence,
            result.status,
        )
        return JSONResponse({"ok": True, "status": result.status, "receipt": receipt_to_dict(result.receipt)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
