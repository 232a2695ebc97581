"""Tests for version history business logic."""

import hashlib
from unittest import mock

import pytest
from django.db import DatabaseError

from server.apps.drive.exceptions import (
    InvalidInputError,
    NotFoundError,
    UploadRejectedError,
)
from server.apps.drive.logic.file_operations import upload_file
from server.apps.drive.logic.version_operations import (
    create_new_version,
    disable_versioning,
    enable_versioning,
    get_version,
    list_versions,
    open_version,
    restore_version,
)
from server.apps.drive.models import File, FileVersion


def _md5(content):
    return hashlib.md5(content).hexdigest()  # noqa: S324


@pytest.fixture
def versioned_file(user, uploaded_file):
    """Enable versioning on the uploaded text file.

    Returns:
        Refreshed File instance.
    """
    enable_versioning(user, uploaded_file.id)
    uploaded_file.refresh_from_db()
    return uploaded_file


@pytest.mark.django_db
class TestEnableVersioning:
    """Tests for enable_versioning function."""

    def test_initial_version_points_at_live(self, user, uploaded_file):
        """Test version 1 reuses the live content."""
        version = enable_versioning(user, uploaded_file.id)
        uploaded_file.refresh_from_db()

        assert uploaded_file.versioning_enabled is True
        assert uploaded_file.current_version == 1
        assert version.version == 1
        assert version.content.name == uploaded_file.file.name
        assert version.checksum == _md5(b'test file content')
        assert version.comment == 'Initial version'

    def test_enable_twice(self, user, versioned_file):
        """Test enabling an already versioned file."""
        with pytest.raises(InvalidInputError):
            enable_versioning(user, versioned_file.id)

    def test_foreign_file(self, other_user, uploaded_file):
        """Test isolation between users."""
        with pytest.raises(NotFoundError):
            enable_versioning(other_user, uploaded_file.id)


@pytest.mark.django_db
class TestCreateNewVersion:
    """Tests for create_new_version function."""

    def test_requires_versioning(self, user, uploaded_file, make_upload):
        """Test new versions need versioning enabled."""
        with pytest.raises(InvalidInputError):
            create_new_version(user, uploaded_file.id, make_upload(content=b'x'))

    def test_archives_previous_content(
        self,
        user,
        versioned_file,
        make_upload,
        mirror_root,
    ):
        """Test the old content moves to a _v1 archive."""
        new_version = create_new_version(
            user,
            versioned_file.id,
            make_upload(content=b'second'),
            comment='edit',
        )
        versioned_file.refresh_from_db()
        archived = FileVersion.objects.get(file=versioned_file, version=1)
        archive_path = mirror_root / archived.content.name

        assert new_version.version == 2
        assert new_version.comment == 'edit'
        assert new_version.content.name == versioned_file.file.name
        assert new_version.checksum == _md5(b'second')
        assert versioned_file.current_version == 2
        assert versioned_file.size == len(b'second')
        assert archived.content.name.endswith('_test_v1.txt')
        assert archive_path.read_bytes() == b'test file content'
        assert archived.checksum == _md5(b'test file content')
        assert (mirror_root / versioned_file.file.name).read_bytes() == b'second'

    def test_numbering_and_single_live_row(
        self,
        user,
        versioned_file,
        make_upload,
    ):
        """Test versions are numbered 1..N+1 with one row at the live path."""
        for index in range(3):
            create_new_version(
                user,
                versioned_file.id,
                make_upload(content=f'rev {index}'.encode()),
            )
        versioned_file.refresh_from_db()

        _, versions = list_versions(user, versioned_file.id)
        numbers = [version.version for version in versions]
        live_rows = [
            version
            for version in versions
            if version.content.name == versioned_file.file.name
        ]

        assert numbers == [4, 3, 2, 1]
        assert versioned_file.current_version == 4
        assert len(live_rows) == 1
        assert live_rows[0].version == 4

    def test_upload_policy(self, user, versioned_file, make_upload, settings):
        """Test new versions go through the upload policy."""
        settings.DRIVE_MAX_UPLOAD_SIZE = 2

        with pytest.raises(UploadRejectedError):
            create_new_version(
                user,
                versioned_file.id,
                make_upload(content=b'too long'),
            )

        assert versioned_file.versions.count() == 1

    def test_db_failure_restores_live_content(
        self,
        user,
        versioned_file,
        make_upload,
        mirror_root,
    ):
        """Test a failed update puts the old bytes back and drops the archive."""
        with mock.patch.object(
            FileVersion.objects,
            'create',
            side_effect=DatabaseError('boom'),
        ):
            with pytest.raises(DatabaseError):
                create_new_version(
                    user,
                    versioned_file.id,
                    make_upload(content=b'lost'),
                )

        versioned_file.refresh_from_db()
        live_path = mirror_root / versioned_file.file.name

        assert live_path.read_bytes() == b'test file content'
        archive_path = live_path.parent / '.versions' / f'{live_path.stem}_v1.txt'
        assert not archive_path.exists()
        assert versioned_file.current_version == 1
        assert versioned_file.versions.count() == 1


@pytest.mark.django_db
class TestRestoreVersion:
    """Tests for restore_version and open_version."""

    def test_restore_round_trip(self, user, versioned_file, make_upload, mirror_root):
        """Test restoring v1 brings back identical bytes."""
        create_new_version(user, versioned_file.id, make_upload(content=b'changed'))

        restored = restore_version(user, versioned_file.id, 1)
        versioned_file.refresh_from_db()

        assert restored.version == 1
        assert (mirror_root / versioned_file.file.name).read_bytes() == (
            b'test file content'
        )
        assert versioned_file.size == len(b'test file content')
        assert versioned_file.current_version == 2
        assert versioned_file.versions.count() == 2

    def test_restore_back_to_current_version(
        self,
        user,
        versioned_file,
        make_upload,
        mirror_root,
    ):
        """Test restoring the current version brings its bytes and size back."""
        create_new_version(
            user,
            versioned_file.id,
            make_upload(content=b'version-two'),
        )
        live_path = mirror_root / versioned_file.file.name

        restore_version(user, versioned_file.id, 1)
        restore_version(user, versioned_file.id, 2)
        versioned_file.refresh_from_db()

        assert live_path.read_bytes() == b'version-two'
        assert versioned_file.size == live_path.stat().st_size
        assert versioned_file.size == len(b'version-two')
        assert not list((live_path.parent / '.versions').glob('*_restore*'))

    def test_repeated_restore_keeps_current_bytes(
        self,
        user,
        versioned_file,
        make_upload,
        mirror_root,
    ):
        """Test restoring old versions twice still leaves the current one reachable."""
        create_new_version(user, versioned_file.id, make_upload(content=b'second'))
        create_new_version(user, versioned_file.id, make_upload(content=b'third!'))
        live_path = mirror_root / versioned_file.file.name

        restore_version(user, versioned_file.id, 1)
        restore_version(user, versioned_file.id, 2)
        assert live_path.read_bytes() == b'second'

        restore_version(user, versioned_file.id, 3)
        versioned_file.refresh_from_db()

        assert live_path.read_bytes() == b'third!'
        assert versioned_file.size == len(b'third!')

    def test_restore_current_without_changes(self, user, versioned_file, mirror_root):
        """Test restoring the untouched current version keeps the live bytes."""
        restore_version(user, versioned_file.id, 1)
        versioned_file.refresh_from_db()

        live_path = mirror_root / versioned_file.file.name
        assert live_path.read_bytes() == b'test file content'
        assert versioned_file.size == len(b'test file content')

    def test_new_version_after_restore_drops_restore_point(
        self,
        user,
        versioned_file,
        make_upload,
        mirror_root,
    ):
        """Test uploading a new version clears the kept live copy."""
        create_new_version(user, versioned_file.id, make_upload(content=b'two'))
        restore_version(user, versioned_file.id, 1)
        versions_dir = mirror_root / str(user.id) / '.versions'
        assert list(versions_dir.glob('*_restore*'))

        create_new_version(user, versioned_file.id, make_upload(content=b'three'))

        assert not list(versions_dir.glob('*_restore*'))

    def test_versioning_keeps_lookalike_upload(
        self,
        user,
        versioned_file,
        make_upload,
        mirror_root,
    ):
        """Test archiving never overwrites an upload named like the archive."""
        lookalike = upload_file(
            user,
            make_upload(name='test_v1.txt', content=b'unrelated bytes'),
        )

        create_new_version(user, versioned_file.id, make_upload(content=b'v2'))
        restore_version(user, versioned_file.id, 1)

        lookalike.refresh_from_db()
        assert (mirror_root / lookalike.file.name).read_bytes() == (
            b'unrelated bytes'
        )
        assert lookalike.size == len(b'unrelated bytes')
        assert (mirror_root / versioned_file.file.name).read_bytes() == (
            b'test file content'
        )

    def test_restore_missing_version(self, user, versioned_file):
        """Test unknown version numbers."""
        with pytest.raises(NotFoundError, match='Version not found'):
            restore_version(user, versioned_file.id, 7)

    def test_open_version(self, user, versioned_file, make_upload):
        """Test archived content and download name."""
        create_new_version(user, versioned_file.id, make_upload(content=b'new'))

        version, download_name, handle = open_version(user, versioned_file.id, 1)
        with handle:
            content = handle.read()

        assert version.version == 1
        assert download_name == 'test_v1.txt'
        assert content == b'test file content'

    def test_get_version(self, user, versioned_file):
        """Test lookup by number."""
        assert get_version(user, versioned_file.id, 1).version == 1


@pytest.mark.django_db
class TestDisableVersioning:
    """Tests for disable_versioning function."""

    def test_disable_removes_archives(
        self,
        user,
        versioned_file,
        make_upload,
        mirror_root,
    ):
        """Test archives are removed while live content stays."""
        create_new_version(user, versioned_file.id, make_upload(content=b'v2'))
        create_new_version(user, versioned_file.id, make_upload(content=b'v3'))

        file_instance = disable_versioning(user, versioned_file.id)
        user_dir = mirror_root / str(user.id)

        assert file_instance.versioning_enabled is False
        assert file_instance.current_version == 1
        assert not FileVersion.objects.filter(file=versioned_file).exists()
        assert [path.name for path in user_dir.iterdir() if path.is_file()] == [
            f'{user.id}_test.txt',
        ]
        assert list((user_dir / '.versions').iterdir()) == []
        assert (user_dir / f'{user.id}_test.txt').read_bytes() == b'v3'

    def test_list_after_disable(self, user, versioned_file):
        """Test history is unavailable once disabled."""
        disable_versioning(user, versioned_file.id)

        with pytest.raises(InvalidInputError, match='Versioning not enabled'):
            list_versions(user, versioned_file.id)

    def test_disable_unversioned(self, user, uploaded_file):
        """Test disabling a file that was never versioned."""
        with pytest.raises(InvalidInputError):
            disable_versioning(user, uploaded_file.id)

    def test_file_row_survives(self, user, versioned_file):
        """Test disabling keeps the file itself."""
        disable_versioning(user, versioned_file.id)

        assert File.objects.filter(id=versioned_file.id).exists()
