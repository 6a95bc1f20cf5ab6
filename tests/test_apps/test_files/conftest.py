"""Shared fixtures for files app tests."""

from io import BytesIO

import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage, storages
from PIL import Image

from server.apps.files.infrastructure.records import get_record_store
from server.apps.files.infrastructure.thumbnails import get_thumbnail_cache


def make_png(size=(640, 480), color=(200, 40, 40)) -> bytes:
    """Render a solid-color PNG image.

    Returns:
        PNG encoded bytes.
    """
    buffer = BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    """Valid PNG image content.

    Returns:
        PNG encoded bytes of a 640x480 image.
    """
    return make_png()


@pytest.fixture
def truncated_png_bytes(png_bytes):
    """PNG whose header is intact but whose pixel data is cut off.

    Sniffs as an image, but cannot be decoded.

    Returns:
        Truncated PNG bytes.
    """
    return png_bytes[:60]


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')


@pytest.fixture
def pdf_content():
    """Minimal content recognised as PDF.

    Returns:
        ContentFile with a PDF header.
    """
    return ContentFile(
        b'%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n%%EOF\n',
        name='report.pdf',
    )


@pytest.fixture
def record_store():
    """Record store bound to the temporary metadata document.

    Returns:
        RecordStore instance.
    """
    return get_record_store()


@pytest.fixture
def payload_storage():
    """Storage holding uploaded payloads.

    Returns:
        FileStorage instance.
    """
    return default_storage


@pytest.fixture
def thumbnail_storage():
    """Storage holding cached thumbnails.

    Returns:
        FileStorage instance.
    """
    return storages['thumbnails']


@pytest.fixture
def thumbnail_cache():
    """Thumbnail cache bound to the temporary thumbnail storage.

    Returns:
        ThumbnailCache instance.
    """
    return get_thumbnail_cache()
