"""Django core settings for the file transfer service."""

from decouple import Csv

from server.settings.components import config

SECRET_KEY = config(
    'DJANGO_SECRET_KEY',
    default='django-insecure-filedrop-development-key',
)

DEBUG = config('DJANGO_DEBUG', cast=bool, default=False)

ALLOWED_HOSTS = config(
    'DJANGO_ALLOWED_HOSTS',
    cast=Csv(),
    default='localhost,127.0.0.1',
)

INSTALLED_APPS = [
    'django.contrib.staticfiles',
    'server.apps.files',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'server.urls'

WSGI_APPLICATION = 'server.wsgi.application'

# Metadata lives in a JSON document, not in a database
DATABASES: dict[str, dict[str, str]] = {}

USE_TZ = True
TIME_ZONE = 'UTC'

STATIC_URL = '/static/'
