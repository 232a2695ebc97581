"""Tests for file operations business logic."""

from unittest import mock

import pytest
from django.db import DatabaseError

from server.apps.drive.exceptions import (
    InvalidInputError,
    NotFoundError,
    PhysicalIOError,
    UploadRejectedError,
)
from server.apps.drive.infrastructure.storage import MirrorStorage
from server.apps.drive.logic.file_operations import (
    check_upload_policy,
    delete_file,
    move_file,
    open_file,
    rename_file,
    upload_file,
)
from server.apps.drive.logic.version_operations import (
    create_new_version,
    enable_versioning,
)
from server.apps.drive.models import File


@pytest.mark.django_db
class TestUploadFile:
    """Tests for upload_file function."""

    def test_upload_success(self, user, make_upload, mirror_root):
        """Test flat storage name, metadata and bytes on disk."""
        file_instance = upload_file(user, make_upload('report.txt'))

        assert file_instance.file.name == f'{user.id}/{user.id}_report.txt'
        assert file_instance.name == 'report.txt'
        assert file_instance.original_name == 'report.txt'
        assert file_instance.size == len(b'test file content')
        assert file_instance.mime_type == 'text/plain'
        assert file_instance.folder is None
        assert file_instance.versioning_enabled is False
        assert (mirror_root / file_instance.file.name).read_bytes() == (
            b'test file content'
        )

    def test_upload_into_folder_stays_flat(self, user, docs_folder, make_upload):
        """Test folder placement does not change the storage name."""
        file_instance = upload_file(user, make_upload('a.txt'), docs_folder.id)

        assert file_instance.folder == docs_folder
        assert file_instance.file.name == f'{user.id}/{user.id}_a.txt'

    def test_same_name_gets_unique_storage_name(self, user, make_upload):
        """Test a second upload never overwrites the first."""
        first = upload_file(user, make_upload('a.txt', b'one'))
        second = upload_file(user, make_upload('a.txt', b'two'))

        assert first.file.name != second.file.name
        assert first.name == second.name == 'a.txt'

    def test_client_path_is_stripped(self, user, make_upload):
        """Test directory components of the upload name are dropped."""
        file_instance = upload_file(user, make_upload('../../evil.txt'))

        assert file_instance.name == 'evil.txt'

    def test_missing_folder(self, user, make_upload):
        """Test upload into unknown folder."""
        with pytest.raises(NotFoundError):
            upload_file(user, make_upload(), 9999)

    def test_db_failure_removes_written_file(self, user, make_upload, mirror_root):
        """Test rollback of the physical write."""
        with mock.patch.object(
            File.objects,
            'create',
            side_effect=DatabaseError('boom'),
        ):
            with pytest.raises(DatabaseError):
                upload_file(user, make_upload('a.txt'))

        assert not (mirror_root / str(user.id) / f'{user.id}_a.txt').exists()

    def test_write_failure(self, user, make_upload):
        """Test disk errors surface as PhysicalIOError."""
        with mock.patch.object(
            MirrorStorage,
            'save',
            side_effect=OSError('disk full'),
        ):
            with pytest.raises(PhysicalIOError):
                upload_file(user, make_upload())

        assert not File.objects.exists()


class TestUploadPolicy:
    """Tests for check_upload_policy."""

    def test_too_large(self, settings):
        """Test size limit maps to 413."""
        settings.DRIVE_MAX_UPLOAD_SIZE = 10

        with pytest.raises(UploadRejectedError) as exc_info:
            check_upload_policy(11, 'text/plain')

        assert exc_info.value.status_code == 413

    def test_type_not_allowed(self, settings):
        """Test MIME allow list maps to 400."""
        settings.DRIVE_ALLOWED_MIME_TYPES = ['image/*']

        with pytest.raises(UploadRejectedError) as exc_info:
            check_upload_policy(1, 'text/plain')

        assert exc_info.value.status_code == 400

    def test_accepted(self, settings):
        """Test uploads inside the policy pass."""
        settings.DRIVE_MAX_UPLOAD_SIZE = 10
        settings.DRIVE_ALLOWED_MIME_TYPES = ['image/*']

        check_upload_policy(10, 'image/png')


@pytest.mark.django_db
class TestFileLifecycle:
    """Tests for open/rename/move/delete."""

    def test_open_file(self, user, uploaded_file):
        """Test live content is returned."""
        file_instance, handle = open_file(user, uploaded_file.id)
        with handle:
            assert handle.read() == b'test file content'
        assert file_instance == uploaded_file

    def test_open_foreign_file(self, other_user, uploaded_file):
        """Test isolation between users."""
        with pytest.raises(NotFoundError):
            open_file(other_user, uploaded_file.id)

    def test_rename_keeps_storage_name(self, user, uploaded_file):
        """Test rename is logical only."""
        renamed = rename_file(user, uploaded_file.id, 'notes.txt')

        assert renamed.name == 'notes.txt'
        assert renamed.file.name == uploaded_file.file.name

    def test_rename_invalid(self, user, uploaded_file):
        """Test empty names are refused."""
        with pytest.raises(InvalidInputError):
            rename_file(user, uploaded_file.id, '  ')

    def test_move_file(self, user, uploaded_file, docs_folder):
        """Test moving between folders."""
        moved = move_file(user, uploaded_file.id, docs_folder.id)
        assert moved.folder == docs_folder

        moved = move_file(user, uploaded_file.id, 0)
        assert moved.folder is None

    def test_delete_removes_content(self, user, uploaded_file, mirror_root):
        """Test row and content are removed."""
        live_path = mirror_root / uploaded_file.file.name

        delete_file(user, uploaded_file.id)

        assert not File.objects.filter(id=uploaded_file.id).exists()
        assert not live_path.exists()

    def test_delete_removes_version_archives(
        self,
        user,
        uploaded_file,
        make_upload,
        mirror_root,
    ):
        """Test archived versions go with the file."""
        enable_versioning(user, uploaded_file.id)
        create_new_version(user, uploaded_file.id, make_upload(content=b'v2'))
        user_dir = mirror_root / str(user.id)
        archive_path = user_dir / '.versions' / f'{user.id}_test_v1.txt'
        assert archive_path.exists()

        delete_file(user, uploaded_file.id)

        assert not archive_path.exists()
        assert [path for path in user_dir.rglob('*') if path.is_file()] == []

    def test_delete_keeps_lookalike_upload(
        self,
        user,
        uploaded_file,
        make_upload,
        mirror_root,
    ):
        """Test deleting a versioned file leaves an upload named like its archive."""
        lookalike = upload_file(
            user,
            make_upload(name='test_v1.txt', content=b'unrelated bytes'),
        )
        enable_versioning(user, uploaded_file.id)
        create_new_version(user, uploaded_file.id, make_upload(content=b'v2'))

        delete_file(user, uploaded_file.id)

        lookalike.refresh_from_db()
        lookalike_path = mirror_root / lookalike.file.name
        assert lookalike_path.read_bytes() == b'unrelated bytes'
        assert lookalike.size == len(b'unrelated bytes')

    def test_unlink_failure_keeps_row(self, user, uploaded_file):
        """Test the row stays when content cannot be removed."""
        with mock.patch.object(
            MirrorStorage,
            'delete',
            side_effect=PermissionError('denied'),
        ):
            with pytest.raises(PhysicalIOError):
                delete_file(user, uploaded_file.id)

        assert File.objects.filter(id=uploaded_file.id).exists()
