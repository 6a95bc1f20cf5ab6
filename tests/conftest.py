"""Project-wide test fixtures."""

import pytest


@pytest.fixture(autouse=True)
def file_roots(settings, tmp_path):
    """Point payloads, thumbnails and metadata at a temporary directory.

    Returns:
        Root of the temporary data directory.
    """
    upload_root = tmp_path / 'uploads'
    thumbnail_root = tmp_path / 'thumbnails'

    settings.FILES_DATA_ROOT = tmp_path
    settings.FILES_UPLOAD_ROOT = upload_root
    settings.FILES_THUMBNAIL_ROOT = thumbnail_root
    settings.FILES_METADATA_PATH = tmp_path / 'data' / 'files.json'
    settings.STORAGES = {
        'default': {
            'BACKEND': 'server.apps.files.infrastructure.storage.FileStorage',
            'OPTIONS': {'location': str(upload_root)},
        },
        'thumbnails': {
            'BACKEND': 'server.apps.files.infrastructure.storage.FileStorage',
            'OPTIONS': {'location': str(thumbnail_root)},
        },
        'staticfiles': {
            'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
        },
    }
    return tmp_path
