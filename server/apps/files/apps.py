"""Django app configuration for files app."""

import logging
from pathlib import Path
from typing import override

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class FilesConfig(AppConfig):
    """Configuration for files app."""

    name = 'server.apps.files'
    verbose_name = 'File store'

    @override
    def ready(self) -> None:
        """Create payload, thumbnail and metadata directories."""
        directories = (
            Path(settings.FILES_UPLOAD_ROOT),
            Path(settings.FILES_THUMBNAIL_ROOT),
            Path(settings.FILES_METADATA_PATH).parent,
        )
        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)
        logger.debug('File store directories ready: %s', directories)
