import pymupdf

from docpipe.ocr.base import BaseOcrEngine, OcrOutput
from docpipe.ocr.exceptions import OcrError, UnsupportedMimeTypeError
from docpipe.ocr.pdfplumber_engine import page_confidence
from docpipe.queue.cancellation import CancellationToken
from docpipe.queue.exceptions import JobCancelledError
from docpipe.storage.base import BaseStorage


class PyMuPdfOcrEngine(BaseOcrEngine):
    """Reads the embedded text layer of a PDF using PyMuPDF."""

    def __init__(self, storage: BaseStorage) -> None:
        self._storage = storage

    def run(self, file_path: str, mime_type: str, token: CancellationToken) -> OcrOutput:
        if mime_type != "application/pdf":
            raise UnsupportedMimeTypeError(f"pymupdf cannot read '{mime_type}'")
        try:
            pdf_bytes = self._storage.download(file_path)
            pages: list[str] = []
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                for page in doc:
                    token.raise_if_cancelled()
                    pages.append(page.get_text())
        except (OcrError, JobCancelledError):
            raise
        except Exception as exc:
            raise OcrError(f"pymupdf extraction failed: {exc}") from exc
        return OcrOutput(text="\n".join(pages).strip(), confidence=page_confidence(pages))
