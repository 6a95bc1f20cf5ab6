"""HTTP views for files app.

Thin layer over ``logic.file_operations``: decode the request, call
the operation, encode the result as JSON or a file response. Errors of
the file store are reported as JSON with their ``kind``.
"""

import functools
import logging
from collections.abc import Callable
from http import HTTPStatus
from typing import Any, Final

from django.http import FileResponse, HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from server.apps.files.exceptions import (
    FileStoreError,
    NotFoundError,
    UnsupportedMediaError,
)
from server.apps.files.logic import file_operations
from server.apps.files.models import FileRecord, format_timestamp

logger = logging.getLogger(__name__)

_UPLOAD_FIELD: Final = 'file'

_STATUS_BY_ERROR: Final = (
    (NotFoundError, HTTPStatus.NOT_FOUND),
    (UnsupportedMediaError, HTTPStatus.UNSUPPORTED_MEDIA_TYPE),
)

_View = Callable[..., HttpResponse]


def _error_response(error: FileStoreError) -> JsonResponse:
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    for error_class, error_status in _STATUS_BY_ERROR:
        if isinstance(error, error_class):
            status = error_status
            break
    return JsonResponse(
        {'error': str(error), 'kind': error.kind},
        status=status,
    )


def _reports_file_store_errors(view: _View) -> _View:
    """Turn FileStoreError raised by a view into a JSON error response."""

    @functools.wraps(view)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> HttpResponse:
        try:
            return view(request, *args, **kwargs)
        except FileStoreError as error:
            if not isinstance(error, NotFoundError):
                logger.exception('Request failed: %s', request.path)
            return _error_response(error)

    return wrapper


def _serialize(record: FileRecord) -> dict[str, Any]:
    return {
        'id': record.id,
        'originalName': record.display_name,
        'newName': record.storage_key,
        'size': record.size_bytes,
        'uploadTime': format_timestamp(record.uploaded_at),
        'mimeType': record.mime_type,
    }


@csrf_exempt
@require_http_methods(['POST'])
@_reports_file_store_errors
def upload(request: HttpRequest) -> HttpResponse:
    """Upload one file sent as multipart field ``file``."""
    uploaded = request.FILES.get(_UPLOAD_FIELD)
    if uploaded is None:
        return JsonResponse(
            {'error': 'No file uploaded', 'kind': 'bad_request'},
            status=HTTPStatus.BAD_REQUEST,
        )

    result = file_operations.upload_file(uploaded, uploaded.name or '')
    return JsonResponse({
        'success': True,
        'filename': result.storage_key,
        'originalName': result.display_name,
    })


@require_GET
@_reports_file_store_errors
def file_list(request: HttpRequest) -> HttpResponse:
    """List files, newest first."""
    records = file_operations.list_files()
    return JsonResponse([_serialize(record) for record in records], safe=False)


@require_GET
@_reports_file_store_errors
def file_info(request: HttpRequest, storage_key: str) -> HttpResponse:
    """Describe one file, including its on-disk modification time."""
    description = file_operations.describe_file(storage_key)
    payload = _serialize(description.record)
    payload['modified'] = format_timestamp(description.modified)
    return JsonResponse(payload)


@require_GET
@_reports_file_store_errors
def thumbnail(request: HttpRequest, storage_key: str) -> HttpResponse:
    """Serve the preview of an image, or the image itself as fallback."""
    preview = file_operations.get_thumbnail(storage_key)
    return FileResponse(
        preview.path.open('rb'),
        content_type=preview.mime_type,
    )


@require_GET
@_reports_file_store_errors
def download(request: HttpRequest, storage_key: str) -> HttpResponse:
    """Serve a payload as attachment named after its display name.

    Non-ASCII names are sent as RFC 5987 ``filename*=utf-8''...``.
    """
    prepared = file_operations.open_download(storage_key)
    return FileResponse(
        prepared.file,
        as_attachment=True,
        filename=prepared.filename,
        content_type=prepared.mime_type,
    )


@csrf_exempt
@require_http_methods(['DELETE'])
@_reports_file_store_errors
def delete(request: HttpRequest, storage_key: str) -> HttpResponse:
    """Delete a file with its thumbnail and record."""
    display_name = file_operations.delete_file(storage_key)
    return JsonResponse({
        'success': True,
        'message': f'File {display_name} deleted',
        'originalName': display_name,
    })
