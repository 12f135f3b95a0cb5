from pathlib import Path
from unittest.mock import MagicMock

import pytest

from docpipe.archiving.exceptions import ArchiveError
from docpipe.archiving.storage_archiver import StorageArchiver
from docpipe.queue.cancellation import CancellationToken
from docpipe.queue.exceptions import JobCancelledError
from docpipe.storage.exceptions import StorageError
from docpipe.storage.local_storage import LocalFileStorage
from tests.helpers import make_document

SOURCE = "tmp/doc-1/invoice.pdf"
DESTINATION = "documents/doc-1/invoice.pdf"


def _token(cancelled: bool = False) -> CancellationToken:
    mock_queue = MagicMock()
    mock_queue.is_cancelled.return_value = cancelled
    return CancellationToken(mock_queue, job_id=1)


class TestStorageArchiver:
    def test_moves_file_to_permanent_location(self, tmp_path: Path) -> None:
        storage = LocalFileStorage(tmp_path)
        storage.upload(b"pdf", SOURCE)

        result = StorageArchiver(storage).run(make_document(), _token())

        assert result == DESTINATION
        assert storage.download(DESTINATION) == b"pdf"
        assert not storage.exists(SOURCE)

    def test_rerun_after_move_returns_destination(self, tmp_path: Path) -> None:
        storage = LocalFileStorage(tmp_path)
        storage.upload(b"pdf", DESTINATION)

        result = StorageArchiver(storage).run(make_document(), _token())

        assert result == DESTINATION

    def test_already_archived_path(self) -> None:
        storage = MagicMock()
        document = make_document(file_path=DESTINATION)

        assert StorageArchiver(storage).run(document, _token()) == DESTINATION
        storage.move.assert_not_called()

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match=SOURCE):
            StorageArchiver(LocalFileStorage(tmp_path)).run(make_document(), _token())

    def test_storage_error_is_wrapped(self) -> None:
        storage = MagicMock()
        storage.exists.return_value = True
        storage.move.side_effect = StorageError("read-only filesystem")

        with pytest.raises(ArchiveError, match="read-only filesystem"):
            StorageArchiver(storage).run(make_document(), _token())

    def test_cancelled_before_move(self, tmp_path: Path) -> None:
        storage = LocalFileStorage(tmp_path)
        storage.upload(b"pdf", SOURCE)

        with pytest.raises(JobCancelledError):
            StorageArchiver(storage).run(make_document(), _token(cancelled=True))

        assert storage.exists(SOURCE)
