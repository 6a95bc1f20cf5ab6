"""Local disk storage for payloads and derived thumbnails."""

import logging
from typing import Any, final, override

from django.core.files.storage import FileSystemStorage

from server.apps.files.infrastructure.metadata import next_timestamp_ms

logger = logging.getLogger(__name__)


@final
class FileStorage(FileSystemStorage):
    """Filesystem storage keyed by storage key.

    Existing files are never overwritten. When a key is already taken,
    the next value of the monotonic clock replaces its stem, so keys
    always stay ``<digits><extension>`` and ``save`` returns the key
    actually used.
    """

    @override
    def get_alternative_name(self, file_root: str, file_ext: str) -> str:
        alternative = f'{next_timestamp_ms()}{file_ext}'
        logger.warning(
            'Storage key %s%s taken, using %s',
            file_root,
            file_ext,
            alternative,
        )
        return alternative

    @override
    def save(
        self,
        name: str | None,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Write content under a free storage key.

        Args:
            name: Preferred storage key.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Storage key the content was written under.

        Raises:
            OSError: If the write fails.
        """
        try:
            saved_name = super().save(name, content, max_length)
        except OSError:
            logger.exception('Failed to write payload: %s', name)
            raise
        logger.debug('Wrote %s to %s', saved_name, self.location)
        return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete a file; a file that is already gone counts as deleted.

        Raises:
            OSError: If the file exists but cannot be deleted.
        """
        try:
            super().delete(name)
        except OSError:
            logger.exception('Failed to delete %s from %s', name, self.location)
            raise
        logger.debug('Deleted %s from %s', name, self.location)

    def rollback_upload(self, name: str) -> None:
        """Remove a payload whose upload failed after it was written.

        Best effort: the upload failure is what the caller reports, so
        a failed removal is only logged. The file is left as an orphan.

        Args:
            name: Storage key of the written payload.
        """
        logger.warning('Rolling back upload: %s', name)
        try:
            self.delete(name)
        except OSError:
            # reconcile_files --orphans purges it later
            logger.exception('Rollback left orphaned payload: %s', name)

    def list_names(self) -> list[str]:
        """List storage keys of all files at the storage root.

        Returns:
            Sorted storage keys. Missing root directory means no files.
        """
        try:
            _, files = self.listdir('')
        except FileNotFoundError:
            return []
        return sorted(files)
