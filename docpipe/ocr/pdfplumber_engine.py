import io

import pdfplumber

from docpipe.ocr.base import BaseOcrEngine, OcrOutput
from docpipe.ocr.exceptions import OcrError, UnsupportedMimeTypeError
from docpipe.queue.cancellation import CancellationToken
from docpipe.queue.exceptions import JobCancelledError
from docpipe.storage.base import BaseStorage


def page_confidence(pages: list[str]) -> float:
    """Share of pages that carry any text."""
    if not pages:
        return 0.0
    return sum(1 for text in pages if text.strip()) / len(pages)


class PdfPlumberOcrEngine(BaseOcrEngine):
    """Reads the embedded text layer of a PDF using pdfplumber."""

    def __init__(self, storage: BaseStorage) -> None:
        self._storage = storage

    def run(self, file_path: str, mime_type: str, token: CancellationToken) -> OcrOutput:
        if mime_type != "application/pdf":
            raise UnsupportedMimeTypeError(f"pdfplumber cannot read '{mime_type}'")
        try:
            pdf_bytes = self._storage.download(file_path)
            pages: list[str] = []
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                for page in pdf.pages:
                    token.raise_if_cancelled()
                    pages.append(page.extract_text() or "")
        except (OcrError, JobCancelledError):
            raise
        except Exception as exc:
            raise OcrError(f"pdfplumber extraction failed: {exc}") from exc
        return OcrOutput(text="\n".join(pages).strip(), confidence=page_confidence(pages))
