"""Shared fixtures for drive app tests."""

import pytest
from django.contrib.auth import get_user_model
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile

from server.apps.drive.logic.file_operations import upload_file
from server.apps.drive.logic.folder_operations import create_folder

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture(autouse=True)
def mirror_root(settings, tmp_path):
    """Point the physical mirror at a temporary directory.

    Overriding STORAGES resets ``default_storage``, so every test works
    on an empty tree.

    Returns:
        Path of the mirror root (<ROOT_DIRECTORY>/root).
    """
    root = tmp_path / 'files' / 'root'
    root.mkdir(parents=True)
    settings.DRIVE_ROOT_DIRECTORY = str(tmp_path / 'files')
    settings.STORAGES = {
        'default': {
            'BACKEND': 'server.apps.drive.infrastructure.storage.MirrorStorage',
            'OPTIONS': {'location': str(root)},
        },
        'staticfiles': {
            'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
        },
    }
    return root


@pytest.fixture
def storage(mirror_root):
    """Get the mirror storage bound to the temporary root.

    Returns:
        MirrorStorage instance.
    """
    return default_storage


@pytest.fixture
def make_upload():
    """Build uploads the way Django hands them to views.

    Returns:
        Factory taking (name, content, content_type).
    """
    def factory(
        name='test.txt',
        content=b'test file content',
        content_type='text/plain',
    ):
        return SimpleUploadedFile(name, content, content_type=content_type)
    return factory


@pytest.fixture
def uploaded_file(user, make_upload):
    """Upload a text file into the user's root.

    Returns:
        File instance.
    """
    return upload_file(user, make_upload())


@pytest.fixture
def docs_folder(user):
    """Create a 'Docs' folder in the user's root.

    Returns:
        Folder instance.
    """
    return create_folder(user, 'Docs')
