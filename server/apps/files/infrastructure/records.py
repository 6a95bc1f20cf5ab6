"""Metadata record store backed by a single JSON document.

The whole collection is rewritten on every mutation. Writes go to a
temporary file next to the document which then atomically replaces it,
so a crash mid-write leaves either the old or the new document, never
a torn one.

All read-modify-write cycles run under a lock owned by the store, so
one store instance must own each document; use ``get_record_store``.
"""

import contextlib
import functools
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import final

from django.conf import settings
from django.utils import timezone

from server.apps.files.exceptions import PersistenceError
from server.apps.files.infrastructure.metadata import next_timestamp_ms
from server.apps.files.logic.naming import resolve_display_name
from server.apps.files.models import FileRecord

logger = logging.getLogger(__name__)


@final
class RecordStore:
    """Durable, ordered collection of FileRecord (newest first)."""

    def __init__(self, path: Path) -> None:
        """Initialize RecordStore.

        Args:
            path: Location of the JSON document. It is created on
                first write; a missing document reads as empty.
        """
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> list[FileRecord]:
        """Load every record, newest first.

        Returns:
            List of records as last persisted.

        Raises:
            PersistenceError: If the document cannot be read or parsed.
        """
        with self._lock:
            return self._read()

    def find_by_storage_key(self, storage_key: str) -> FileRecord | None:
        """Find the record referencing a storage key.

        Args:
            storage_key: Storage key of the payload.

        Returns:
            Matching record, or None if there is none.
        """
        for record in self.load_all():
            if record.storage_key == storage_key:
                return record
        return None

    def create(
        self,
        display_name: str,
        storage_key: str,
        size_bytes: int,
        mime_type: str,
    ) -> FileRecord:
        """Create a record and persist it at the front of the collection.

        The display name is first resolved against the current records
        so it never collides with an active one.

        Args:
            display_name: Name requested by the client.
            storage_key: Storage key of the already placed payload.
            size_bytes: Payload size in bytes.
            mime_type: MIME type sniffed from the payload.

        Returns:
            The created record.

        Raises:
            PersistenceError: If the document cannot be read or written.
        """
        with self._lock:
            records = self._read()
            # The document keeps millisecond precision
            now = timezone.now()
            now = now.replace(microsecond=now.microsecond // 1000 * 1000)
            record = FileRecord(
                id=str(next_timestamp_ms()),
                display_name=resolve_display_name(display_name, records),
                storage_key=storage_key,
                size_bytes=size_bytes,
                mime_type=mime_type,
                uploaded_at=now,
                modified_at=now,
            )
            self._write([record, *records])

        logger.info(
            'Record created: %s -> %s (ID: %s)',
            record.display_name,
            record.storage_key,
            record.id,
        )
        return record

    def remove(self, storage_key: str) -> bool:
        """Remove the record referencing a storage key.

        Removing an absent key is not an error and writes nothing.

        Args:
            storage_key: Storage key of the payload.

        Returns:
            True if a record was removed, False otherwise.

        Raises:
            PersistenceError: If the document cannot be read or written.
        """
        with self._lock:
            records = self._read()
            remaining = [
                record for record in records
                if record.storage_key != storage_key
            ]
            if len(remaining) == len(records):
                return False
            self._write(remaining)

        logger.info('Record removed: %s', storage_key)
        return True

    def reconcile(
        self,
        exists_on_disk: Callable[[str], bool],
    ) -> list[FileRecord]:
        """Drop records whose payload no longer exists.

        The pruned collection is persisted only if something was dropped.

        Args:
            exists_on_disk: Predicate telling whether a storage key
                still has a payload.

        Returns:
            Records that still have a payload, newest first.

        Raises:
            PersistenceError: If the document cannot be read or written.
        """
        present, _ = self._reconcile(exists_on_disk)
        return present

    def prune(
        self,
        exists_on_disk: Callable[[str], bool],
    ) -> list[FileRecord]:
        """Same as ``reconcile`` but report the dropped records instead.

        Returns:
            Records that were removed because their payload is gone.
        """
        _, stale = self._reconcile(exists_on_disk)
        return stale

    def _reconcile(
        self,
        exists_on_disk: Callable[[str], bool],
    ) -> tuple[list[FileRecord], list[FileRecord]]:
        with self._lock:
            present: list[FileRecord] = []
            stale: list[FileRecord] = []
            for record in self._read():
                if exists_on_disk(record.storage_key):
                    present.append(record)
                else:
                    stale.append(record)
            if stale:
                self._write(present)
                logger.warning(
                    'Pruned %d stale record(s) from %s',
                    len(stale),
                    self._path,
                )
        return present, stale

    def _read(self) -> list[FileRecord]:
        try:
            raw = self._path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return []
        except OSError as error:
            raise PersistenceError(self._path, 'cannot be read') from error

        try:
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise TypeError('document root is not a list')
            return [FileRecord.from_document(entry) for entry in entries]
        except (ValueError, TypeError, KeyError) as error:
            # Never treat a corrupt document as empty: the next write
            # would wipe every record.
            raise PersistenceError(self._path, 'cannot be parsed') from error

    def _write(self, records: list[FileRecord]) -> None:
        document = json.dumps(
            [record.to_document() for record in records],
            ensure_ascii=False,
            indent=2,
        )
        temp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w',
                encoding='utf-8',
                dir=self._path.parent,
                prefix=f'.{self._path.name}.',
                suffix='.tmp',
                delete=False,
            ) as temp_file:
                temp_name = temp_file.name
                temp_file.write(document)
                temp_file.flush()
                os.fsync(temp_file.fileno())
            os.replace(temp_name, self._path)
        except OSError as error:
            logger.exception('Failed to write metadata document: %s', self._path)
            if temp_name is not None:
                with contextlib.suppress(OSError):
                    Path(temp_name).unlink()
            raise PersistenceError(self._path, 'cannot be written') from error


@functools.cache
def _store_for(path: Path) -> RecordStore:
    return RecordStore(path)


def get_record_store() -> RecordStore:
    """Get the store owning the configured metadata document.

    Returns:
        The single RecordStore instance for FILES_METADATA_PATH.
    """
    return _store_for(Path(settings.FILES_METADATA_PATH).resolve())
