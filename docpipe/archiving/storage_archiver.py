from docpipe.archiving.base import BaseArchiver
from docpipe.archiving.exceptions import ArchiveError
from docpipe.domain.document import Document
from docpipe.queue.cancellation import CancellationToken
from docpipe.storage.base import BaseStorage
from docpipe.storage.exceptions import StorageError
from docpipe.storage.local_storage import permanent_file_path


class StorageArchiver(BaseArchiver):
    """Moves an uploaded file from the temp area to its permanent location.

    Re-running after a crash between the move and the status update finds the
    file already in place and returns the same path.
    """

    def __init__(self, storage: BaseStorage) -> None:
        self._storage = storage

    def run(self, document: Document, token: CancellationToken) -> str:
        destination = permanent_file_path(document.document_id, document.metadata.file_name)
        source = document.file_path
        if source == destination:
            return destination
        try:
            if not self._storage.exists(source) and self._storage.exists(destination):
                return destination
            token.raise_if_cancelled()
            return self._storage.move(source, destination)
        except StorageError as exc:
            raise ArchiveError(f"Cannot archive {source}: {exc}") from exc
