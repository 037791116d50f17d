"""Error taxonomy for the receipt recognition pipeline."""


class ReceiptPipelineError(Exception):
    """Base class for every typed pipeline error."""


class InvalidInput(ReceiptPipelineError):
    """Empty, corrupt, oversized or non-image input. Fatal for the request."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ProcessingTimeout(ReceiptPipelineError):
    """A stage timer fired before the stage finished."""

    def __init__(self, stage: str, timeout_s: float) -> None:
        super().__init__(f"{stage} timed out after {timeout_s:.1f}s")
        self.stage = stage
        self.timeout_s = timeout_s


class BackendUnavailable(ReceiptPipelineError):
    """An optional imaging or OCR backend is missing or unreachable."""

    def __init__(self, backend: str, reason: str) -> None:
        super().__init__(f"{backend} unavailable: {reason}")
        self.backend = backend
        self.reason = reason


class ScanCancelled(ReceiptPipelineError):
    """The caller cancelled the request."""
