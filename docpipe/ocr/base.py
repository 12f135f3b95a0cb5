from abc import ABC, abstractmethod
from dataclasses import dataclass

from docpipe.queue.cancellation import CancellationToken


@dataclass(frozen=True)
class OcrOutput:
    """Text extracted from a document and the engine's confidence in [0, 1]."""

    text: str
    confidence: float


class BaseOcrEngine(ABC):
    """Contract for all OCR engines."""

    @abstractmethod
    def run(self, file_path: str, mime_type: str, token: CancellationToken) -> OcrOutput:
        """Extract text from the stored file at ``file_path``.

        Args:
            file_path: Path of the file inside storage.
            mime_type: MIME type recorded at upload.
            token: Checked between units of work.

        Raises:
            OcrError: if extraction fails for any reason.
            JobCancelledError: if the token reports a cancellation.
        """
