"""Exceptions for files app.

Every error the file store reports derives from ``FileStoreError`` and
carries a ``kind`` so callers (views, management commands) can tell the
failure classes apart without inspecting messages.
"""

from pathlib import Path


class FileStoreError(Exception):
    """Base class for all file store failures."""

    kind = 'file_store_error'


class NotFoundError(FileStoreError):
    """Raised when a storage key has no record or no payload."""

    kind = 'not_found'

    def __init__(self, storage_key: str) -> None:
        """Initialize NotFoundError.

        Args:
            storage_key: Storage key that could not be resolved.
        """
        self.storage_key = storage_key
        super().__init__(f'No file stored under key {storage_key!r}')


class UnsupportedMediaError(FileStoreError):
    """Raised when a thumbnail is requested for non-image content."""

    kind = 'unsupported_media'

    def __init__(self, storage_key: str, mime_type: str) -> None:
        """Initialize UnsupportedMediaError.

        Args:
            storage_key: Storage key of the payload.
            mime_type: MIME type sniffed from the payload content.
        """
        self.storage_key = storage_key
        self.mime_type = mime_type
        super().__init__(
            f'Cannot preview {storage_key!r}: {mime_type} is not an image',
        )


class PersistenceError(FileStoreError):
    """Raised when the metadata document cannot be read or written."""

    kind = 'persistence'

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize PersistenceError.

        Args:
            path: Location of the metadata document.
            reason: Short description of what went wrong.
        """
        self.path = path
        self.reason = reason
        super().__init__(f'Metadata document {path}: {reason}')


class PayloadIOError(FileStoreError):
    """Raised when a payload cannot be written, read or deleted."""

    kind = 'io'

    def __init__(self, storage_key: str, operation: str) -> None:
        """Initialize PayloadIOError.

        Args:
            storage_key: Storage key of the payload.
            operation: Operation that failed ('write', 'read', 'delete').
        """
        self.storage_key = storage_key
        self.operation = operation
        super().__init__(f'Failed to {operation} payload {storage_key!r}')


class DerivationError(FileStoreError):
    """Raised when a thumbnail cannot be derived from its source.

    Always recoverable: callers fall back to the original payload.
    """

    kind = 'derivation'

    def __init__(self, storage_key: str, reason: str) -> None:
        """Initialize DerivationError.

        Args:
            storage_key: Storage key of the source payload.
            reason: Short description of what went wrong.
        """
        self.storage_key = storage_key
        self.reason = reason
        super().__init__(
            f'Thumbnail derivation failed for {storage_key!r}: {reason}',
        )
