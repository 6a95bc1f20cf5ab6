"""Django storage configuration for local filesystem backends.

Payloads and thumbnails are kept in two separate directories, both
served by the same storage class. The storage key of a payload is
also the name of its thumbnail.
"""

from typing import Any, Final

from server.settings.components.files import (
    FILES_THUMBNAIL_ROOT,
    FILES_UPLOAD_ROOT,
)

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.files.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'location': str(FILES_UPLOAD_ROOT),
        },
    },
    'thumbnails': {
        'BACKEND': 'server.apps.files.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'location': str(FILES_THUMBNAIL_ROOT),
        },
    },
    'staticfiles': {
        # Keep static files separate from user files
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
