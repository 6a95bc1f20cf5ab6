"""Data model for files app.

Records are plain value objects: they are persisted as entries of a
single JSON document by ``infrastructure.records.RecordStore`` rather
than as database rows.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Final, final

# Keys of a record entry inside the metadata document
_KEY_ID: Final = 'id'
_KEY_DISPLAY_NAME: Final = 'originalName'
_KEY_STORAGE_KEY: Final = 'newName'
_KEY_SIZE: Final = 'size'
_KEY_MIME_TYPE: Final = 'mimeType'
_KEY_UPLOADED_AT: Final = 'uploadTime'
_KEY_MODIFIED_AT: Final = 'lastModified'


def format_timestamp(moment: datetime) -> str:
    """Format an aware datetime as ISO 8601 UTC with milliseconds.

    Example: 2024-05-01T12:30:00.125Z
    """
    iso = moment.isoformat(timespec='milliseconds')
    return iso.replace('+00:00', 'Z')


@final
@dataclass(frozen=True)
class FileRecord:
    """Metadata of one stored file.

    ``display_name`` is what users see and is unique (case-insensitive)
    among active records. ``storage_key`` locates the payload and its
    thumbnail; it is generated independently of the display name and
    never changes.
    """

    id: str
    display_name: str
    storage_key: str
    size_bytes: int
    mime_type: str
    uploaded_at: datetime
    modified_at: datetime

    def __str__(self) -> str:
        """String representation."""
        return f'{self.display_name} ({self.storage_key})'

    @property
    def is_image(self) -> bool:
        """Whether the sniffed content type belongs to the image family."""
        return self.mime_type.startswith('image/')

    def get_extension(self) -> str:
        """Extract file extension from the display name.

        Example: 'report.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        extension = Path(self.display_name).suffix
        return extension.lstrip('.').lower()

    def to_document(self) -> dict[str, Any]:
        """Serialize record to its metadata document entry.

        Returns:
            JSON-compatible dictionary.
        """
        return {
            _KEY_ID: self.id,
            _KEY_DISPLAY_NAME: self.display_name,
            _KEY_STORAGE_KEY: self.storage_key,
            _KEY_SIZE: self.size_bytes,
            _KEY_MIME_TYPE: self.mime_type,
            _KEY_UPLOADED_AT: format_timestamp(self.uploaded_at),
            _KEY_MODIFIED_AT: format_timestamp(self.modified_at),
        }

    @classmethod
    def from_document(cls, entry: dict[str, Any]) -> 'FileRecord':
        """Build record from a metadata document entry.

        Args:
            entry: Dictionary as produced by ``to_document``.

        Returns:
            FileRecord instance.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If a timestamp or size is malformed.
        """
        uploaded_at = datetime.fromisoformat(entry[_KEY_UPLOADED_AT])
        modified_raw = entry.get(_KEY_MODIFIED_AT)
        return cls(
            id=str(entry[_KEY_ID]),
            display_name=entry[_KEY_DISPLAY_NAME],
            storage_key=entry[_KEY_STORAGE_KEY],
            size_bytes=int(entry[_KEY_SIZE]),
            mime_type=entry[_KEY_MIME_TYPE],
            uploaded_at=uploaded_at,
            modified_at=(
                datetime.fromisoformat(modified_raw)
                if modified_raw
                else uploaded_at
            ),
        )
