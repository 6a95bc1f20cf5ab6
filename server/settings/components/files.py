"""Settings for the file store: data locations and thumbnail options."""

from pathlib import Path

from server.settings.components import BASE_DIR, config

# Everything the service persists lives under this directory
FILES_DATA_ROOT = Path(
    config('FILES_DATA_ROOT', default=str(BASE_DIR.joinpath('var'))),
)

# Binary payloads, keyed by storage key
FILES_UPLOAD_ROOT = Path(
    config(
        'FILES_UPLOAD_ROOT',
        default=str(FILES_DATA_ROOT.joinpath('uploads')),
    ),
)

# Derived previews, keyed by the same storage key as the payload
FILES_THUMBNAIL_ROOT = Path(
    config(
        'FILES_THUMBNAIL_ROOT',
        default=str(FILES_DATA_ROOT.joinpath('thumbnails')),
    ),
)

# Single JSON document holding every metadata record
FILES_METADATA_PATH = Path(
    config(
        'FILES_METADATA_PATH',
        default=str(FILES_DATA_ROOT.joinpath('data', 'files.json')),
    ),
)

# Width x height of the center-cropped preview
FILES_THUMBNAIL_SIZE = (
    config('FILES_THUMBNAIL_WIDTH', cast=int, default=300),
    config('FILES_THUMBNAIL_HEIGHT', cast=int, default=225),
)

# Seconds a single thumbnail derivation may take before giving up
FILES_THUMBNAIL_TIMEOUT = config(
    'FILES_THUMBNAIL_TIMEOUT',
    cast=float,
    default=10.0,
)
