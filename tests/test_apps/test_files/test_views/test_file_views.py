"""Tests for the HTTP surface of files app."""

from http import HTTPStatus
from io import BytesIO
from urllib.parse import quote

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from PIL import Image


@pytest.fixture
def upload(client):
    """Upload content through the HTTP endpoint.

    Returns:
        Function taking a file name and content, returning JSON payload.
    """
    def factory(name, content):
        response = client.post(
            reverse('files:upload'),
            {'file': SimpleUploadedFile(name, content)},
        )
        assert response.status_code == HTTPStatus.OK
        return response.json()

    return factory


def test_upload(upload, pdf_content):
    """Test upload reports the storage key and display name."""
    payload = upload('report.pdf', pdf_content.read())

    assert payload['success'] is True
    assert payload['originalName'] == 'report.pdf'
    assert payload['filename'].endswith('.pdf')


def test_upload_without_file(client):
    """Test upload without the file field is a bad request."""
    response = client.post(reverse('files:upload'))

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json() == {
        'error': 'No file uploaded',
        'kind': 'bad_request',
    }


def test_upload_requires_post(client):
    """Test upload only accepts POST."""
    response = client.get(reverse('files:upload'))

    assert response.status_code == HTTPStatus.METHOD_NOT_ALLOWED


def test_file_list(client, upload, png_bytes, pdf_content):
    """Test listing returns serialized records newest first."""
    upload('photo.png', png_bytes)
    newest = upload('report.pdf', pdf_content.read())

    response = client.get(reverse('files:list'))

    assert response.status_code == HTTPStatus.OK
    listed = response.json()
    assert [entry['originalName'] for entry in listed] == [
        'report.pdf',
        'photo.png',
    ]
    assert listed[0]['newName'] == newest['filename']
    assert listed[0]['mimeType'] == 'application/pdf'
    assert set(listed[0]) == {
        'id',
        'originalName',
        'newName',
        'size',
        'uploadTime',
        'mimeType',
    }


def test_file_list_empty(client):
    """Test listing an empty store."""
    response = client.get(reverse('files:list'))

    assert response.json() == []


def test_file_info(client, upload, sample_file_content):
    """Test file info includes the modification time."""
    uploaded = upload('test.txt', sample_file_content.read())

    response = client.get(
        reverse('files:info', args=[uploaded['filename']]),
    )

    assert response.status_code == HTTPStatus.OK
    info = response.json()
    assert info['originalName'] == 'test.txt'
    assert info['size'] == len(b'test file content')
    assert info['modified'].endswith('Z')


def test_file_info_not_found(client):
    """Test unknown keys are reported as not found."""
    response = client.get(reverse('files:info', args=['99999.txt']))

    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.json()['kind'] == 'not_found'


def test_thumbnail(client, upload, png_bytes):
    """Test thumbnails are served as images."""
    uploaded = upload('photo.png', png_bytes)

    response = client.get(
        reverse('files:thumbnail', args=[uploaded['filename']]),
    )

    assert response.status_code == HTTPStatus.OK
    assert response['Content-Type'] == 'image/png'
    with Image.open(BytesIO(response.getvalue())) as image:
        assert image.format == 'PNG'


def test_thumbnail_size(client, upload, png_bytes, thumbnail_storage):
    """Test the served thumbnail is the cached preview."""
    uploaded = upload('photo.png', png_bytes)

    response = client.get(
        reverse('files:thumbnail', args=[uploaded['filename']]),
    )
    content = response.getvalue()

    with thumbnail_storage.open(uploaded['filename']) as cached:
        assert content == cached.read()
    with Image.open(thumbnail_storage.path(uploaded['filename'])) as image:
        assert image.size == (300, 225)


def test_thumbnail_non_image(client, upload, pdf_content):
    """Test thumbnails of non-images are unsupported media."""
    uploaded = upload('report.pdf', pdf_content.read())

    response = client.get(
        reverse('files:thumbnail', args=[uploaded['filename']]),
    )

    assert response.status_code == HTTPStatus.UNSUPPORTED_MEDIA_TYPE
    assert response.json()['kind'] == 'unsupported_media'


def test_thumbnail_not_found(client):
    """Test thumbnails of unknown keys are not found."""
    response = client.get(reverse('files:thumbnail', args=['99999.png']))

    assert response.status_code == HTTPStatus.NOT_FOUND


def test_download(client, upload):
    """Test downloads are attachments named after the display name."""
    uploaded = upload('test.txt', b'test file content')

    response = client.get(
        reverse('files:download', args=[uploaded['filename']]),
    )

    assert response.status_code == HTTPStatus.OK
    assert response.getvalue() == b'test file content'
    assert response['Content-Disposition'] == (
        'attachment; filename="test.txt"'
    )


def test_download_non_ascii_name(client, upload):
    """Test non-ASCII display names use the extended filename form."""
    uploaded = upload('%E6%97%A5%E6%9C%AC.txt', b'content')
    assert uploaded['originalName'] == '日本.txt'

    response = client.get(
        reverse('files:download', args=[uploaded['filename']]),
    )

    assert response['Content-Disposition'] == (
        "attachment; filename*=utf-8''{0}".format(quote('日本.txt'))
    )
    response.close()


def test_download_not_found(client):
    """Test downloads of unknown keys are not found."""
    response = client.get(reverse('files:download', args=['99999.txt']))

    assert response.status_code == HTTPStatus.NOT_FOUND


def test_delete(client, upload, record_store, payload_storage):
    """Test delete removes the file and reports its name."""
    uploaded = upload('test.txt', b'content')

    response = client.delete(
        reverse('files:delete', args=[uploaded['filename']]),
    )

    assert response.status_code == HTTPStatus.OK
    assert response.json() == {
        'success': True,
        'message': 'File test.txt deleted',
        'originalName': 'test.txt',
    }
    assert record_store.load_all() == []
    assert not payload_storage.exists(uploaded['filename'])


def test_delete_not_found(client):
    """Test deleting an unknown key is not found."""
    response = client.delete(reverse('files:delete', args=['99999.txt']))

    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.json()['kind'] == 'not_found'


def test_delete_requires_delete(client):
    """Test delete only accepts the DELETE method."""
    response = client.post(reverse('files:delete', args=['99999.txt']))

    assert response.status_code == HTTPStatus.METHOD_NOT_ALLOWED


def test_persistence_failure_is_server_error(
    client,
    settings,
    tmp_path,
    payload_storage,
):
    """Test an unusable metadata document yields a 500 with its kind."""
    blocker = tmp_path / 'blocker'
    blocker.write_text('a regular file', encoding='utf-8')
    settings.FILES_METADATA_PATH = blocker / 'files.json'

    response = client.post(
        reverse('files:upload'),
        {'file': SimpleUploadedFile('test.txt', b'content')},
    )

    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.json()['kind'] == 'persistence'
    assert payload_storage.list_names() == []
