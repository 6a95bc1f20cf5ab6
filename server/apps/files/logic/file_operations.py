"""Business logic for file operations.

Every operation keeps three things in step: the payload on disk, its
metadata record and its cached thumbnail. The payload is written
before the record and removed before the record, so a record never
points at a payload that was never written, and a failed delete never
loses the only reference to a payload still on disk.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Final, final

from django.core.files.base import File as DjangoFile
from django.core.files.storage import default_storage, storages
from django.utils import timezone

from server.apps.files.exceptions import (
    DerivationError,
    FileStoreError,
    NotFoundError,
    PayloadIOError,
)
from server.apps.files.infrastructure.metadata import (
    detect_mime_type,
    detect_path_mime_type,
    generate_storage_key,
    is_image_mime_type,
    normalize_display_name,
)
from server.apps.files.infrastructure.records import get_record_store
from server.apps.files.infrastructure.thumbnails import get_thumbnail_cache
from server.apps.files.logic.outcome import StepOutcome, attempt
from server.apps.files.models import FileRecord

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import FileStorage

logger = logging.getLogger(__name__)

_ORPHAN_PAYLOAD: Final = 'payload'
_ORPHAN_THUMBNAIL: Final = 'thumbnail'


@final
@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful upload."""

    storage_key: str
    display_name: str
    record: FileRecord


@final
@dataclass(frozen=True)
class FileDescription:
    """Record of a file together with its on-disk modification time."""

    record: FileRecord
    modified: datetime


@final
@dataclass(frozen=True)
class Preview:
    """Renderable preview of a file.

    ``is_fallback`` is set when the thumbnail could not be derived and
    the original payload is served instead.
    """

    path: Path
    mime_type: str
    is_fallback: bool


@final
@dataclass(frozen=True)
class Download:
    """Opened payload plus the name it should be saved under."""

    file: DjangoFile
    filename: str
    mime_type: str


@final
@dataclass(frozen=True)
class Orphan:
    """File on disk that no metadata record references."""

    kind: str
    storage_key: str


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance holding the payloads.
    """
    return default_storage  # type: ignore[return-value]


def _get_record(storage_key: str) -> FileRecord:
    record = get_record_store().find_by_storage_key(storage_key)
    if record is None:
        raise NotFoundError(storage_key)
    return record


def upload_file(
    file_obj: BinaryIO | DjangoFile,
    claimed_name: str,
) -> UploadResult:
    """Store payload and create its metadata record.

    Transaction safety: write the payload first, then create the record.
    If anything after the write fails, the payload and any thumbnail
    derived from it are deleted again (rollback).

    Args:
        file_obj: File-like object to upload.
        claimed_name: File name sent by the client (untrusted).

    Returns:
        UploadResult with the final display name and storage key.

    Raises:
        PayloadIOError: If the payload cannot be written or read back.
        PersistenceError: If the metadata record cannot be saved.
    """
    display_name = normalize_display_name(claimed_name)
    storage = _get_storage()

    # Step 1: Place payload under a fresh storage key
    storage_key = generate_storage_key(display_name)
    try:
        storage_key = storage.save(storage_key, file_obj)
    except OSError as error:
        raise PayloadIOError(storage_key, 'write') from error

    try:
        # Step 2: Sniff the real content type from the stored bytes
        with storage.open(storage_key, 'rb') as stored:
            mime_type = detect_mime_type(stored)
        size_bytes = storage.size(storage_key)

        # Step 3: Warm the thumbnail cache, never blocking the upload
        if is_image_mime_type(mime_type):
            outcome = attempt(
                'thumbnail',
                lambda: get_thumbnail_cache().get_thumbnail(
                    storage_key,
                    Path(storage.path(storage_key)),
                ),
                fatal=False,
            )
            if not outcome.ok:
                logger.warning(
                    'Thumbnail not pre-generated for %s: %s',
                    storage_key,
                    outcome.error,
                )

        # Step 4: Create metadata record
        record = get_record_store().create(
            display_name,
            storage_key,
            size_bytes,
            mime_type,
        )
    except (FileStoreError, OSError) as error:
        # Rollback: no record may be left without payload and no
        # payload without record
        logger.exception(
            'Upload failed after storage write, rolling back: %s',
            storage_key,
        )
        storage.rollback_upload(storage_key)
        _discard_thumbnail(storage_key)
        if isinstance(error, FileStoreError):
            raise
        raise PayloadIOError(storage_key, 'read') from error

    logger.info(
        'File uploaded: %s -> %s (%d bytes, %s)',
        record.display_name,
        record.storage_key,
        record.size_bytes,
        record.mime_type,
    )
    return UploadResult(
        storage_key=record.storage_key,
        display_name=record.display_name,
        record=record,
    )


def delete_file(storage_key: str) -> str:
    """Delete payload, thumbnail and metadata record.

    Order matters: the payload goes first and its failure aborts before
    the record is touched, so an undeletable payload keeps its record.
    A record that outlives its payload is pruned by the next listing.

    Args:
        storage_key: Storage key of file to delete.

    Returns:
        Display name of the deleted file.

    Raises:
        NotFoundError: If no record references the storage key.
        PayloadIOError: If the payload exists but cannot be deleted.
        PersistenceError: If the record cannot be removed.
    """
    record = _get_record(storage_key)
    logger.info(
        'Deleting file: %s (key: %s)',
        record.display_name,
        storage_key,
    )

    # Step 1: Payload (already missing counts as deleted)
    _delete_payload(storage_key).raise_if_fatal()

    # Step 2: Thumbnail, best effort
    _discard_thumbnail(storage_key)

    # Step 3: Record
    try:
        get_record_store().remove(storage_key)
    except FileStoreError:
        logger.exception(
            'Payload deleted but record kept, next listing prunes it: %s',
            storage_key,
        )
        raise

    logger.info('File deleted: %s', record.display_name)
    return record.display_name


def list_files() -> list[FileRecord]:
    """List files, newest first.

    Records whose payload has disappeared are pruned first, so stale
    entries never reach the caller.

    Returns:
        Records with an existing payload.

    Raises:
        PersistenceError: If the metadata document cannot be used.
    """
    return get_record_store().reconcile(_get_storage().exists)


def describe_file(storage_key: str) -> FileDescription:
    """Describe one file.

    If the record exists but its payload is gone, the stale record is
    removed and the file reported as missing.

    Args:
        storage_key: Storage key of the file.

    Returns:
        FileDescription with the on-disk modification time.

    Raises:
        NotFoundError: If there is no record or no payload.
    """
    record = _get_record(storage_key)
    try:
        modified = _get_storage().get_modified_time(storage_key)
    except FileNotFoundError as error:
        logger.warning('Payload missing, pruning record: %s', storage_key)
        get_record_store().remove(storage_key)
        raise NotFoundError(storage_key) from error
    return FileDescription(record=record, modified=modified)


def get_thumbnail(storage_key: str) -> Preview:
    """Get a renderable preview of an image file.

    Falls back to the original payload when the thumbnail cannot be
    derived; a broken thumbnail degrades the preview, never the request.

    Args:
        storage_key: Storage key of the file.

    Returns:
        Preview pointing at the thumbnail or the original payload.

    Raises:
        NotFoundError: If there is no record or no payload.
        UnsupportedMediaError: If the payload is not an image.
    """
    _get_record(storage_key)
    storage = _get_storage()
    if not storage.exists(storage_key):
        raise NotFoundError(storage_key)

    source_path = Path(storage.path(storage_key))
    try:
        path = get_thumbnail_cache().get_thumbnail(storage_key, source_path)
    except DerivationError:
        logger.warning(
            'Serving original instead of thumbnail: %s',
            storage_key,
        )
        path = source_path
        is_fallback = True
    else:
        is_fallback = False

    return Preview(
        path=path,
        mime_type=detect_path_mime_type(path),
        is_fallback=is_fallback,
    )


def open_download(storage_key: str) -> Download:
    """Open a payload for download.

    Args:
        storage_key: Storage key of the file.

    Returns:
        Download with the opened file and its display name.

    Raises:
        NotFoundError: If there is no record or no payload.
    """
    record = _get_record(storage_key)
    try:
        file_obj = _get_storage().open(storage_key, 'rb')
    except FileNotFoundError as error:
        raise NotFoundError(storage_key) from error
    return Download(
        file=file_obj,
        filename=record.display_name,
        mime_type=record.mime_type,
    )


def _delete_payload(storage_key: str) -> StepOutcome:
    def remove() -> None:  # noqa: WPS430
        try:
            _get_storage().delete(storage_key)
        except OSError as error:
            raise PayloadIOError(storage_key, 'delete') from error

    outcome = attempt('payload', remove, fatal=True)
    if outcome.fatal:
        logger.error('Payload not deleted, record kept: %s', storage_key)
    return outcome


def _discard_thumbnail(storage_key: str) -> StepOutcome:
    outcome = attempt(
        'thumbnail',
        lambda: get_thumbnail_cache().invalidate(storage_key),
        fatal=False,
    )
    if not outcome.ok:
        logger.warning(
            'Failed to delete thumbnail (orphaned): %s: %s',
            storage_key,
            outcome.error,
        )
    return outcome


def find_stale_records() -> list[FileRecord]:
    """Find records whose payload is gone, without pruning them.

    Returns:
        Records that the next listing would prune.
    """
    storage = _get_storage()
    return [
        record for record in get_record_store().load_all()
        if not storage.exists(record.storage_key)
    ]


def prune_stale_records() -> list[FileRecord]:
    """Prune records whose payload is gone.

    Returns:
        Records that were pruned.
    """
    return get_record_store().prune(_get_storage().exists)


def find_orphaned_files(min_age: timedelta) -> list[Orphan]:
    """Find payloads and thumbnails that no record references.

    Files younger than ``min_age`` are skipped: an upload in progress
    has its payload on disk before its record exists.

    Args:
        min_age: Minimum age of a file to count as orphaned.

    Returns:
        Orphans found in the payload and thumbnail storages.
    """
    referenced = {
        record.storage_key for record in get_record_store().load_all()
    }
    cutoff = timezone.now() - min_age
    orphans = []
    for kind, storage in _storages_by_kind():
        for name in storage.list_names():
            if name.startswith('.') or name in referenced:
                continue
            if storage.get_modified_time(name) <= cutoff:
                orphans.append(Orphan(kind=kind, storage_key=name))
    return orphans


def purge_orphan(orphan: Orphan) -> None:
    """Delete an orphaned payload or thumbnail.

    Args:
        orphan: Orphan returned by ``find_orphaned_files``.

    Raises:
        OSError: If the file cannot be deleted.
    """
    storage = dict(_storages_by_kind())[orphan.kind]
    storage.delete(orphan.storage_key)
    logger.info('Purged orphaned %s: %s', orphan.kind, orphan.storage_key)


def _storages_by_kind() -> list[tuple[str, 'FileStorage']]:
    return [
        (_ORPHAN_PAYLOAD, _get_storage()),
        (_ORPHAN_THUMBNAIL, storages['thumbnails']),  # type: ignore[list-item]
    ]
