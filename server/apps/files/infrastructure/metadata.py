"""Metadata extraction utilities for files."""

import re
import threading
import time
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import BinaryIO, Final
from urllib.parse import unquote

import magic

_SNIFF_BYTES: Final = 2048  # libmagic only needs the leading bytes
_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'
_FALLBACK_DISPLAY_NAME: Final = 'unnamed'

# Extensions kept in storage keys: a dot followed by letters and digits
_SAFE_EXTENSION: Final = re.compile(r'\.[A-Za-z0-9]{1,16}')


def detect_mime_type(file_obj: BinaryIO) -> str:
    """Detect MIME type from file contents.

    Uses python-magic on the leading bytes of the file. Client-supplied
    content types and file names are never consulted, since both are
    untrusted input.

    Args:
        file_obj: Seekable file-like object.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    file_obj.seek(0)
    head = file_obj.read(_SNIFF_BYTES)
    # Reset file pointer to beginning for subsequent operations
    file_obj.seek(0)

    if not head:
        return _DEFAULT_MIME_TYPE
    return magic.from_buffer(head, mime=True) or _DEFAULT_MIME_TYPE


def detect_path_mime_type(path: Path) -> str:
    """Detect MIME type of a file on disk.

    Args:
        path: Location of the file.

    Returns:
        MIME type string, see ``detect_mime_type``.

    Raises:
        OSError: If the file cannot be opened.
    """
    with path.open('rb') as file_obj:
        return detect_mime_type(file_obj)


def is_image_mime_type(mime_type: str) -> bool:
    """Check whether MIME type belongs to the image family."""
    return mime_type.startswith('image/')


def normalize_display_name(claimed_name: str) -> str:
    """Turn a client-claimed file name into a display name.

    Browsers may send the name percent-encoded, and some clients send
    full paths. Both are undone here; the result is only ever used for
    display, never for locating files.

    Args:
        claimed_name: File name as sent by the client.

    Returns:
        Decoded base name, or 'unnamed' if nothing is left.
    """
    try:
        decoded = unquote(claimed_name, errors='strict')
    except UnicodeDecodeError:
        # Not percent-encoded after all, keep the name as sent
        decoded = claimed_name

    # Strip directory components of both path flavours
    base_name = PureWindowsPath(PurePosixPath(decoded).name).name
    return base_name.strip() or _FALLBACK_DISPLAY_NAME


def get_file_extension(filename: str) -> str:
    """Get a storage-safe file extension from filename.

    Args:
        filename: Filename (e.g., 'document.pdf').

    Returns:
        Extension with dot, as given (e.g., '.pdf'). Returns empty
        string if there is no extension or it is not storage-safe.
    """
    extension = Path(filename).suffix
    if _SAFE_EXTENSION.fullmatch(extension):
        return extension
    return ''


class MonotonicClock:
    """Millisecond clock that never issues the same value twice.

    Wall-clock milliseconds are used while they advance; when two calls
    land on the same millisecond (or the clock steps back), the previous
    value plus one is issued instead.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_issued = 0

    def next_millis(self) -> int:
        with self._lock:
            now = time.time_ns() // 1_000_000
            self._last_issued = max(now, self._last_issued + 1)
            return self._last_issued


_clock = MonotonicClock()


def next_timestamp_ms() -> int:
    """Issue the next value of the process-wide monotonic clock."""
    return _clock.next_millis()


def generate_storage_key(display_name: str) -> str:
    """Generate a storage key for a new payload.

    The key is derived from the monotonic clock plus the extension of
    the display name, never from the rest of the display name.

    Args:
        display_name: Display name of the upload (e.g., 'photo.JPG').

    Returns:
        Storage key (e.g., '1714566600125.JPG').
    """
    return f'{next_timestamp_ms()}{get_file_extension(display_name)}'
