import time

from docpipe.ocr.base import BaseOcrEngine, OcrOutput
from docpipe.ocr.exceptions import OcrError
from docpipe.queue.cancellation import CancellationToken
from docpipe.storage.base import BaseStorage

SAMPLE_TEXT = "Sample text document content with important information."
SAMPLE_INVOICE = "Invoice #INV-2024-001\nAmount: $1,234.56\nDate: 2024-01-15\nVendor: ABC Company"
SAMPLE_RECEIPT = "Receipt\nStore: XYZ Market\nTotal: $45.67\nDate: 2024-01-15"
SAMPLE_GENERIC = "Document content extracted via OCR simulation."


class SimulatedOcrEngine(BaseOcrEngine):
    """Returns canned text per MIME family instead of recognizing characters.

    The stored file must exist; its contents are not read.
    """

    TICK_SECONDS = 0.1

    def __init__(self, storage: BaseStorage, delay_seconds: float = 0.0) -> None:
        self._storage = storage
        self._delay_seconds = delay_seconds

    def run(self, file_path: str, mime_type: str, token: CancellationToken) -> OcrOutput:
        if not self._storage.exists(file_path):
            raise OcrError(f"File not found in storage: {file_path}")
        self._wait(token)

        if "text" in mime_type:
            return OcrOutput(text=SAMPLE_TEXT, confidence=0.95)
        if "pdf" in mime_type:
            return OcrOutput(text=SAMPLE_INVOICE, confidence=0.88)
        if "image" in mime_type:
            return OcrOutput(text=SAMPLE_RECEIPT, confidence=0.82)
        return OcrOutput(text=SAMPLE_GENERIC, confidence=0.75)

    def _wait(self, token: CancellationToken) -> None:
        remaining = self._delay_seconds
        while remaining > 0:
            token.raise_if_cancelled()
            step = min(self.TICK_SECONDS, remaining)
            time.sleep(step)
            remaining -= step
        token.raise_if_cancelled()
