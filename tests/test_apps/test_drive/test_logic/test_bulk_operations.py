"""Tests for bulk delete and move."""

import threading

import pytest

from server.apps.drive.exceptions import InvalidInputError, NotFoundError
from server.apps.drive.logic.bulk_operations import (
    BulkResult,
    bulk_delete,
    bulk_move,
    run_bulk_action,
)
from server.apps.drive.logic.file_operations import delete_file, upload_file
from server.apps.drive.logic.folder_operations import create_folder
from server.apps.drive.models import File, Folder


@pytest.mark.django_db
class TestBulkDelete:
    """Tests for bulk_delete function."""

    def test_partial_failure(self, user, uploaded_file, make_upload):
        """Test a deleted id is reported while the rest is processed."""
        gone = upload_file(user, make_upload('gone.txt'))
        delete_file(user, gone.id)

        result = bulk_delete(user, [uploaded_file.id, gone.id], [])

        assert result.processed == 1
        assert result.failed == 1
        assert result.failed_items == [f'file_{gone.id}']
        assert result.success is False
        assert result.message == 'Processed 1 items, 1 failed'
        assert not File.objects.filter(id=uploaded_file.id).exists()

    def test_files_and_folders(self, user, uploaded_file, docs_folder, mirror_root):
        """Test both item kinds are removed with their content."""
        result = bulk_delete(user, [uploaded_file.id], [docs_folder.id])

        assert result.success is True
        assert result.processed == 2
        assert not Folder.objects.filter(user=user).exists()
        assert not (mirror_root / str(user.id) / 'Docs').exists()

    def test_foreign_items_fail(self, other_user, uploaded_file):
        """Test items of other users are never touched."""
        result = bulk_delete(other_user, [uploaded_file.id], [])

        assert result.failed == 1
        assert File.objects.filter(id=uploaded_file.id).exists()

    def test_cancelled_before_start(self, user, uploaded_file):
        """Test a set cancel event stops processing."""
        cancel_event = threading.Event()
        cancel_event.set()

        result = bulk_delete(user, [uploaded_file.id], [], cancel_event)

        assert result.cancelled is True
        assert result.processed == 0
        assert result.success is False
        assert File.objects.filter(id=uploaded_file.id).exists()


@pytest.mark.django_db
class TestBulkMove:
    """Tests for bulk_move function."""

    def test_move_into_folder(self, user, uploaded_file, docs_folder):
        """Test files and folders land under the target."""
        archive = create_folder(user, 'Archive')

        result = bulk_move(user, [uploaded_file.id], [archive.id], docs_folder.id)
        uploaded_file.refresh_from_db()
        archive.refresh_from_db()

        assert result.message == 'Moved 2 items, 0 failed'
        assert uploaded_file.folder == docs_folder
        assert archive.parent == docs_folder
        assert archive.path == 'Docs/Archive'

    def test_cycle_is_reported_by_name(self, user, docs_folder):
        """Test a folder cannot be moved into itself."""
        result = bulk_move(user, [], [docs_folder.id], docs_folder.id)

        assert result.failed == 1
        assert result.failed_items == ['Docs']

    def test_missing_target(self, user, uploaded_file):
        """Test an unknown target aborts the whole batch."""
        with pytest.raises(NotFoundError):
            bulk_move(user, [uploaded_file.id], [], 9999)


@pytest.mark.django_db
class TestRunBulkAction:
    """Tests for run_bulk_action dispatch."""

    def test_dispatch_delete(self, user, uploaded_file):
        """Test 'delete' reaches bulk_delete."""
        result = run_bulk_action(user, 'delete', [uploaded_file.id], [])

        assert result.processed == 1

    def test_unknown_action(self, user):
        """Test unknown actions are refused."""
        with pytest.raises(InvalidInputError, match='Invalid action'):
            run_bulk_action(user, 'explode', [], [])

    def test_download_not_dispatched(self, user):
        """Test downloads go through the archive builder."""
        with pytest.raises(InvalidInputError):
            run_bulk_action(user, 'download', [], [])


def test_result_as_dict():
    """Test JSON serialization of results."""
    result = BulkResult(message='m', processed=2, failed=1, failed_items=['x'])

    assert result.as_dict() == {
        'success': False,
        'message': 'm',
        'processed': 2,
        'failed': 1,
        'failed_items': ['x'],
        'cancelled': False,
    }
