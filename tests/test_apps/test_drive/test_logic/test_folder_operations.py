"""Tests for folder hierarchy business logic."""

from unittest import mock

import pytest
from django.db import DatabaseError

from server.apps.drive.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PhysicalIOError,
)
from server.apps.drive.infrastructure.storage import MirrorStorage
from server.apps.drive.logic.file_operations import upload_file
from server.apps.drive.logic.folder_operations import (
    collect_subtree,
    create_folder,
    delete_folder,
    get_breadcrumbs,
    get_folder,
    list_folder_contents,
    move_folder,
    rename_folder,
    update_folder,
)
from server.apps.drive.models import File, Folder


@pytest.mark.django_db
class TestCreateFolder:
    """Tests for create_folder function."""

    def test_nested_folder_path_and_directory(self, user, mirror_root):
        """Test 'Docs' then '2024' gives Docs/2024 on disk and in DB."""
        docs = create_folder(user, 'Docs')
        year = create_folder(user, '2024', parent_id=docs.id)

        assert year.path == 'Docs/2024'
        assert year.parent == docs
        assert (mirror_root / str(user.id) / 'Docs' / '2024').is_dir()

    def test_root_parent_id_zero(self, user, mirror_root):
        """Test parent id 0 addresses the root."""
        folder = create_folder(user, 'Photos', parent_id=0)

        assert folder.parent is None
        assert folder.path == 'Photos'
        assert folder.icon_type == 'folder'

    def test_duplicate_sibling_name(self, user, docs_folder):
        """Test sibling names are unique."""
        with pytest.raises(ConflictError):
            create_folder(user, 'Docs')

    def test_same_name_for_other_user(self, user, other_user, docs_folder, mirror_root):
        """Test users have independent trees."""
        folder = create_folder(other_user, 'Docs')

        assert folder.path == 'Docs'
        assert (mirror_root / str(other_user.id) / 'Docs').is_dir()

    def test_foreign_parent(self, user, other_user, docs_folder):
        """Test creating under another user's folder."""
        with pytest.raises(NotFoundError):
            create_folder(other_user, 'x', parent_id=docs_folder.id)

    @pytest.mark.parametrize('name', ['', '..', 'a/b', '.versions', 5])
    def test_invalid_name(self, user, name):
        """Test names that cannot be directory names."""
        with pytest.raises(InvalidInputError):
            create_folder(user, name)

        assert not Folder.objects.exists()

    def test_directory_failure_rolls_back_row(self, user):
        """Test failed mkdir leaves no folder row."""
        with mock.patch.object(
            MirrorStorage,
            'make_directory',
            side_effect=PermissionError('denied'),
        ):
            with pytest.raises(PhysicalIOError):
                create_folder(user, 'Docs')

        assert not Folder.objects.filter(user=user).exists()


@pytest.mark.django_db
class TestRenameFolder:
    """Tests for rename_folder and update_folder."""

    def test_rename_moves_directory(self, user, docs_folder, mirror_root):
        """Test new path is readable and old path is gone."""
        renamed = rename_folder(user, docs_folder.id, 'Papers')

        assert renamed.path == 'Papers'
        assert Folder.objects.get(id=docs_folder.id).path == 'Papers'
        assert (mirror_root / str(user.id) / 'Papers').is_dir()
        assert not (mirror_root / str(user.id) / 'Docs').exists()

    def test_rename_updates_descendant_paths(self, user, docs_folder, mirror_root):
        """Test every descendant path follows the renamed ancestor."""
        year = create_folder(user, '2024', parent_id=docs_folder.id)
        quarter = create_folder(user, 'Q1', parent_id=year.id)

        rename_folder(user, docs_folder.id, 'Papers')

        year.refresh_from_db()
        quarter.refresh_from_db()
        assert year.path == 'Papers/2024'
        assert quarter.path == 'Papers/2024/Q1'
        assert (mirror_root / str(user.id) / 'Papers' / '2024' / 'Q1').is_dir()

    def test_rename_to_archive_directory(self, user, docs_folder, mirror_root):
        """Test a folder cannot take the name of the version archive directory."""
        with pytest.raises(InvalidInputError):
            rename_folder(user, docs_folder.id, '.versions')

        assert (mirror_root / str(user.id) / 'Docs').is_dir()

    def test_rename_to_sibling_name(self, user, docs_folder):
        """Test renaming onto an existing sibling."""
        create_folder(user, 'Papers')

        with pytest.raises(ConflictError):
            rename_folder(user, docs_folder.id, 'Papers')

    def test_failed_db_update_moves_directory_back(self, user, docs_folder, mirror_root):
        """Test compensation after the logical step fails."""
        with mock.patch.object(
            Folder,
            'save',
            side_effect=DatabaseError('boom'),
        ):
            with pytest.raises(DatabaseError):
                rename_folder(user, docs_folder.id, 'Papers')

        assert (mirror_root / str(user.id) / 'Docs').is_dir()
        assert not (mirror_root / str(user.id) / 'Papers').exists()
        assert Folder.objects.get(id=docs_folder.id).path == 'Docs'

    def test_update_icon_only(self, user, docs_folder):
        """Test icon change without rename."""
        folder = update_folder(user, docs_folder.id, icon_type='star')

        assert folder.icon_type == 'star'
        assert folder.path == 'Docs'


@pytest.mark.django_db
class TestMoveFolder:
    """Tests for move_folder function."""

    def test_move_under_other_folder(self, user, docs_folder, mirror_root):
        """Test directory and paths follow the move."""
        archive = create_folder(user, 'Archive')
        create_folder(user, '2024', parent_id=docs_folder.id)

        moved = move_folder(user, docs_folder.id, archive.id)

        assert moved.path == 'Archive/Docs'
        assert Folder.objects.get(name='2024').path == 'Archive/Docs/2024'
        assert (mirror_root / str(user.id) / 'Archive' / 'Docs' / '2024').is_dir()
        assert not (mirror_root / str(user.id) / 'Docs').exists()

    def test_move_to_root(self, user, docs_folder, mirror_root):
        """Test target 0 moves to the root."""
        year = create_folder(user, '2024', parent_id=docs_folder.id)

        moved = move_folder(user, year.id, 0)

        assert moved.parent is None
        assert moved.path == '2024'
        assert (mirror_root / str(user.id) / '2024').is_dir()

    def test_move_into_descendant(self, user, docs_folder):
        """Test cycles are refused."""
        year = create_folder(user, '2024', parent_id=docs_folder.id)

        with pytest.raises(InvalidInputError):
            move_folder(user, docs_folder.id, year.id)
        with pytest.raises(InvalidInputError):
            move_folder(user, docs_folder.id, docs_folder.id)

    def test_move_to_same_parent_is_noop(self, user, docs_folder):
        """Test moving to the current parent changes nothing."""
        moved = move_folder(user, docs_folder.id, None)

        assert moved.path == 'Docs'


@pytest.mark.django_db
class TestDeleteFolder:
    """Tests for delete_folder function."""

    def test_delete_removes_subtree(self, user, docs_folder, mirror_root, make_upload):
        """Test rows, directories and flat files of the subtree go."""
        year = create_folder(user, '2024', parent_id=docs_folder.id)
        nested_file = upload_file(user, make_upload('n.txt'), year.id)
        live_path = mirror_root / nested_file.file.name

        delete_folder(user, docs_folder.id)

        assert not Folder.objects.filter(user=user).exists()
        assert not File.objects.filter(id=nested_file.id).exists()
        assert not (mirror_root / str(user.id) / 'Docs').exists()
        assert not live_path.exists()

    def test_delete_missing_folder(self, user):
        """Test unknown folder id."""
        with pytest.raises(NotFoundError):
            delete_folder(user, 9999)

    def test_physical_failure_keeps_row(self, user, docs_folder):
        """Test the row survives when the directory cannot be removed."""
        with mock.patch.object(
            MirrorStorage,
            'remove_tree',
            side_effect=PermissionError('denied'),
        ):
            with pytest.raises(PhysicalIOError):
                delete_folder(user, docs_folder.id)

        assert Folder.objects.filter(id=docs_folder.id).exists()


@pytest.mark.django_db
class TestListing:
    """Tests for listing and navigation helpers."""

    def test_list_root_contents(self, user, docs_folder, uploaded_file):
        """Test root listing returns root items only."""
        create_folder(user, '2024', parent_id=docs_folder.id)

        folders, files = list_folder_contents(user)

        assert list(folders) == [docs_folder]
        assert list(files) == [uploaded_file]

    def test_list_other_users_folder(self, other_user, docs_folder):
        """Test isolation between users."""
        with pytest.raises(NotFoundError):
            list_folder_contents(other_user, docs_folder.id)

    def test_get_folder_prefetches_children(self, user, docs_folder):
        """Test sub-folders are available on the result."""
        create_folder(user, '2024', parent_id=docs_folder.id)

        folder = get_folder(user, docs_folder.id)

        assert [child.name for child in folder.subfolders.all()] == ['2024']

    def test_breadcrumbs(self, user, docs_folder):
        """Test trail starts at Home and ends at the folder."""
        year = create_folder(user, '2024', parent_id=docs_folder.id)

        assert get_breadcrumbs(user, year.id) == [
            {'id': 0, 'name': 'Home'},
            {'id': docs_folder.id, 'name': 'Docs'},
            {'id': year.id, 'name': '2024'},
        ]
        assert get_breadcrumbs(user, None) == [{'id': 0, 'name': 'Home'}]

    def test_collect_subtree(self, user, docs_folder):
        """Test breadth first collection."""
        year = create_folder(user, '2024', parent_id=docs_folder.id)
        quarter = create_folder(user, 'Q1', parent_id=year.id)

        assert collect_subtree(docs_folder) == [docs_folder, year, quarter]
