"""Main settings file.

Settings are split into components with django-split-settings.
Values are read from the environment or ``config/.env``.
"""

from split_settings.tools import include, optional

include(
    'components/common.py',
    'components/logging.py',
    'components/files.py',
    'components/storages.py',
    optional('components/local.py'),
)
