from abc import ABC, abstractmethod

from docpipe.domain.document import Document
from docpipe.queue.cancellation import CancellationToken


class BaseArchiver(ABC):
    """Contract for the persistence stage capability."""

    @abstractmethod
    def run(self, document: Document, token: CancellationToken) -> str:
        """Store the document permanently and return its final file path.

        Raises:
            ArchiveError: if the file cannot be stored.
        """
