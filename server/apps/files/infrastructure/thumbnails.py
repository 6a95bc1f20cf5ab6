"""Thumbnail cache for image payloads.

Thumbnails are derived lazily: the first request for a storage key
renders a fixed-size center-cropped preview and stores it under the
same key; later requests reuse it. Payloads never change after upload,
so a cached preview is never considered stale. Deleting the cached
preview loses nothing, it is simply derived again.
"""

import contextlib
import functools
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Final, final

from django.conf import settings
from django.core.files.storage import Storage, storages
from PIL import Image, ImageOps

from server.apps.files.exceptions import (
    DerivationError,
    PayloadIOError,
    UnsupportedMediaError,
)
from server.apps.files.infrastructure.metadata import (
    detect_path_mime_type,
    is_image_mime_type,
)

logger = logging.getLogger(__name__)

_THUMBNAIL_STORAGE_ALIAS: Final = 'thumbnails'
_FALLBACK_FORMAT: Final = 'PNG'
_MAX_WORKERS: Final = 4

# Formats whose encoder cannot store an alpha channel or palette
_RGB_ONLY_FORMATS: Final = frozenset(('JPEG', 'MPO'))


@final
@dataclass
class _KeyLock:
    """Lock of one storage key with the number of threads using it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


@final
class ThumbnailCache:
    """Derives and caches previews, keyed by payload storage key."""

    def __init__(
        self,
        storage: Storage,
        size: tuple[int, int],
        timeout: float,
    ) -> None:
        """Initialize ThumbnailCache.

        Args:
            storage: Storage holding the cached previews.
            size: Preview width and height in pixels.
            timeout: Seconds a single derivation may take.
        """
        self._storage = storage
        self._size = size
        self._timeout = timeout
        # Both maps only hold keys with a request or derivation in flight
        self._locks: dict[str, _KeyLock] = {}
        self._pending: dict[str, object] = {}
        self._guard = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=_MAX_WORKERS,
            thread_name_prefix='thumbnail',
        )

    def get_thumbnail(self, storage_key: str, source_path: Path) -> Path:
        """Get the cached preview, deriving it on first access.

        Args:
            storage_key: Storage key of the source payload.
            source_path: Location of the source payload on disk.

        Returns:
            Location of the preview on disk.

        Raises:
            UnsupportedMediaError: If the payload is not an image.
            DerivationError: If the preview cannot be derived in time.
            PayloadIOError: If the source payload cannot be read.
        """
        if self._storage.exists(storage_key):
            return self._path(storage_key)

        try:
            mime_type = detect_path_mime_type(source_path)
        except OSError as error:
            raise PayloadIOError(storage_key, 'read') from error
        if not is_image_mime_type(mime_type):
            raise UnsupportedMediaError(storage_key, mime_type)

        with self._key_lock(storage_key):
            # Another request may have derived it while we waited
            if not self._storage.exists(storage_key):
                self._derive_in_time(storage_key, source_path)

        if not self._storage.exists(storage_key):
            raise DerivationError(storage_key, 'invalidated while deriving')
        return self._path(storage_key)

    def invalidate(self, storage_key: str) -> None:
        """Delete the cached preview for a storage key, if any.

        A derivation still running for the key, including one abandoned
        after a timeout, no longer stores its result.

        Args:
            storage_key: Storage key of the source payload.

        Raises:
            OSError: If the preview exists but cannot be deleted.
        """
        with self._guard:
            self._pending.pop(storage_key, None)
        self._storage.delete(storage_key)

    def _path(self, storage_key: str) -> Path:
        return Path(self._storage.path(storage_key))

    @contextlib.contextmanager
    def _key_lock(self, storage_key: str) -> Iterator[None]:
        with self._guard:
            key_lock = self._locks.setdefault(storage_key, _KeyLock())
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._guard:
                key_lock.users -= 1
                if not key_lock.users:
                    del self._locks[storage_key]

    def _derive_in_time(self, storage_key: str, source_path: Path) -> None:
        token = object()
        with self._guard:
            self._pending[storage_key] = token
        future = self._executor.submit(
            self._derive_and_store,
            storage_key,
            source_path,
            token,
        )
        try:
            future.result(timeout=self._timeout)
        except FutureTimeoutError as error:
            # The worker keeps running and stores its result unless the
            # key is invalidated first
            logger.warning(
                'Thumbnail derivation timed out after %.1fs: %s',
                self._timeout,
                storage_key,
            )
            raise DerivationError(storage_key, 'timed out') from error

    def _derive_and_store(
        self,
        storage_key: str,
        source_path: Path,
        token: object,
    ) -> None:
        try:
            content = self._derive(storage_key, source_path)
            self._write(storage_key, content, token)
        finally:
            with self._guard:
                if self._pending.get(storage_key) is token:
                    del self._pending[storage_key]

    def _derive(self, storage_key: str, source_path: Path) -> bytes:
        logger.info('Deriving thumbnail: %s', storage_key)
        try:
            with Image.open(source_path) as image:
                image_format = image.format or _FALLBACK_FORMAT
                preview = ImageOps.fit(
                    image,
                    self._size,
                    method=Image.Resampling.LANCZOS,
                    centering=(0.5, 0.5),
                )
            if image_format not in Image.SAVE:
                image_format = _FALLBACK_FORMAT
            if image_format in _RGB_ONLY_FORMATS and preview.mode != 'RGB':
                preview = preview.convert('RGB')
            buffer = BytesIO()
            preview.save(buffer, format=image_format)
        except Exception as error:  # noqa: BLE001
            # Pillow decoders fail on corrupt input with arbitrary errors
            logger.warning(
                'Cannot derive thumbnail for %s: %r',
                storage_key,
                error,
            )
            raise DerivationError(storage_key, str(error)) from error
        return buffer.getvalue()

    def _write(self, storage_key: str, content: bytes, token: object) -> None:
        target = self._path(storage_key)
        temp_name = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=target.parent,
                prefix=f'.{target.name}.',
                suffix='.tmp',
                delete=False,
            ) as temp_file:
                temp_name = temp_file.name
                temp_file.write(content)
            with self._guard:
                if self._pending.get(storage_key) is not token:
                    Path(temp_name).unlink()
                    logger.info(
                        'Thumbnail invalidated while deriving: %s',
                        storage_key,
                    )
                    return
                os.replace(temp_name, target)
        except OSError as error:
            if temp_name is not None:
                with contextlib.suppress(OSError):
                    Path(temp_name).unlink()
            raise DerivationError(storage_key, 'cannot be stored') from error
        logger.info('Thumbnail cached: %s', storage_key)


@functools.cache
def _cache_for(
    storage: Storage,
    size: tuple[int, int],
    timeout: float,
) -> ThumbnailCache:
    return ThumbnailCache(storage, size, timeout)


def get_thumbnail_cache() -> ThumbnailCache:
    """Get the cache bound to the configured thumbnail storage.

    Returns:
        Shared ThumbnailCache instance, so per-key locks are shared too.
    """
    width, height = settings.FILES_THUMBNAIL_SIZE
    return _cache_for(
        storages[_THUMBNAIL_STORAGE_ALIAS],
        (int(width), int(height)),
        float(settings.FILES_THUMBNAIL_TIMEOUT),
    )
