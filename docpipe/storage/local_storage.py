from pathlib import Path

from docpipe.storage.base import BaseStorage
from docpipe.storage.exceptions import StorageError, StoredFileNotFoundError, UnsafePathError

TEMP_PREFIX = "tmp"
PERMANENT_PREFIX = "documents"


def temp_file_path(document_id: str, file_name: str) -> str:
    """Build upload path: tmp/{document_id}/{file_name}"""
    return f"{TEMP_PREFIX}/{document_id}/{Path(file_name).name}"


def permanent_file_path(document_id: str, file_name: str) -> str:
    """Build archive path: documents/{document_id}/{file_name}"""
    return f"{PERMANENT_PREFIX}/{document_id}/{Path(file_name).name}"


class LocalFileStorage(BaseStorage):
    """Stores files under a root directory on the local filesystem."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def upload(self, data: bytes, path: str) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc}") from exc
        return path

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise StoredFileNotFoundError(f"File not found: {path}")
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot delete {path}: {exc}") from exc

    def move(self, source: str, destination: str) -> str:
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.is_file():
            raise StoredFileNotFoundError(f"File not found: {source}")
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            src.replace(dst)
        except OSError as exc:
            raise StorageError(f"Cannot move {source} to {destination}: {exc}") from exc
        return destination

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if not target.is_relative_to(self._root):
            raise UnsafePathError(f"Path escapes storage root: {path}")
        return target
