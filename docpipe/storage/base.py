from abc import ABC, abstractmethod


class BaseStorage(ABC):
    """Contract for file storage addressed by relative paths."""

    @abstractmethod
    def upload(self, data: bytes, path: str) -> str:
        """Write ``data`` at ``path`` and return the stored path."""

    @abstractmethod
    def download(self, path: str) -> bytes:
        """Read the bytes stored at ``path``.

        Raises:
            StoredFileNotFoundError: if nothing is stored at ``path``.
        """

    @abstractmethod
    def delete(self, path: str) -> None: ...

    @abstractmethod
    def move(self, source: str, destination: str) -> str:
        """Move a stored file and return its new path."""

    @abstractmethod
    def exists(self, path: str) -> bool: ...
