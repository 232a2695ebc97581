"""Business logic for the folder hierarchy.

Every mutation touches two independently failing resources: the physical
directory tree and the database. There is no transaction spanning both,
so operations order their steps and compensate:

- create: the row is inserted and the directory created inside one
  database transaction; a failed mkdir rolls the row back.
- rename/move: the directory is moved first; the row (and the paths of
  all descendants) are updated afterwards, and a failed update moves the
  directory back.
- delete: disk content is removed first; the row is deleted last.

A crash between the two steps leaves an orphaned directory rather than
a row without one. ``manage.py verify_mirror`` reports such drift.
"""

import logging
from collections import deque
from typing import Any

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import QuerySet

from server.apps.drive.exceptions import (
    CompensationError,
    ConflictError,
    InvalidInputError,
)
from server.apps.drive.infrastructure.locks import item_lock
from server.apps.drive.infrastructure.paths import (
    PathResolver,
    join_logical,
    validate_name,
)
from server.apps.drive.logic.common import (
    get_parent_folder,
    get_storage,
    get_user_folder,
    physical_step,
)
from server.apps.drive.logic.file_operations import purge_file_content
from server.apps.drive.models import ROOT_FOLDER_ID, File, Folder, ItemType

# User type for Django's dynamic user model
_User = Any

_DEFAULT_ICON = 'folder'
_HOME_LABEL = 'Home'

logger = logging.getLogger(__name__)


def create_folder(
    user: _User,
    name: str,
    parent_id: int | None = None,
    icon_type: str = '',
) -> Folder:
    """Create a folder and its physical directory.

    Args:
        user: Owner of the folder.
        name: Folder name.
        parent_id: Parent folder, None or 0 for root.
        icon_type: Icon metadata, defaults to 'folder'.

    Returns:
        Created Folder instance.

    Raises:
        InvalidInputError: If the name is invalid.
        NotFoundError: If the parent does not exist.
        ConflictError: If a sibling folder has the same name.
        PhysicalIOError: If the directory cannot be created.
    """
    name = validate_name(name)
    storage = get_storage()
    lock_id = parent_id or ROOT_FOLDER_ID

    with item_lock(user.id, ItemType.FOLDER, lock_id):
        parent = get_parent_folder(user, parent_id)
        _ensure_name_free(user, parent, name)
        path = join_logical(parent.path if parent else None, name)

        directory_created = False
        try:
            with transaction.atomic():
                folder = Folder.objects.create(
                    user=user,
                    name=name,
                    parent=parent,
                    path=path,
                    icon_type=icon_type or _DEFAULT_ICON,
                )
                # Raising here rolls the row back
                with physical_step('Failed to create physical folder'):
                    storage.make_directory(folder.storage_name())
                directory_created = True
        except IntegrityError as error:
            logger.warning('Folder name clash on insert: %s', path)
            raise ConflictError(
                'A folder with this name already exists',
            ) from error
        except DatabaseError:
            logger.exception('Failed to create folder record: %s', path)
            if directory_created:
                _remove_created_directory(folder)
            raise

    logger.info('Folder created: %s (ID: %d)', folder.path, folder.id)
    return folder


def update_folder(
    user: _User,
    folder_id: int,
    name: str | None = None,
    icon_type: str | None = None,
) -> Folder:
    """Rename a folder and/or change its icon.

    A rename moves the physical directory first and only then updates
    the logical path of the folder and all its descendants.

    Args:
        user: Owner of the folder.
        folder_id: Folder to update.
        name: New name, None or '' keeps the current one.
        icon_type: New icon, None or '' keeps the current one.

    Returns:
        Updated Folder instance.

    Raises:
        InvalidInputError: If the name is invalid.
        NotFoundError: If the folder does not exist.
        ConflictError: If a sibling already uses the name.
        PhysicalIOError: If the directory rename fails.
    """
    with item_lock(user.id, ItemType.FOLDER, folder_id):
        folder = get_user_folder(user, folder_id)

        if name:
            new_name = validate_name(name)
            if new_name != folder.name:
                _relocate_folder(folder, folder.parent, new_name)

        if icon_type:
            folder.icon_type = icon_type
            folder.save(update_fields=['icon_type', 'updated_at'])

    return folder


def rename_folder(user: _User, folder_id: int, new_name: str) -> Folder:
    """Rename a folder.

    Args:
        user: Owner of the folder.
        folder_id: Folder to rename.
        new_name: New name.

    Returns:
        Updated Folder instance.
    """
    return update_folder(user, folder_id, name=validate_name(new_name))


def move_folder(user: _User, folder_id: int, target_id: int | None) -> Folder:
    """Move a folder under another folder or to the root.

    Args:
        user: Owner of both folders.
        folder_id: Folder to move.
        target_id: New parent, None or 0 for root.

    Returns:
        Updated Folder instance.

    Raises:
        NotFoundError: If either folder does not exist.
        InvalidInputError: If the target is the folder or a descendant.
        ConflictError: If the target already holds a folder with the name.
        PhysicalIOError: If the directory move fails.
    """
    with item_lock(user.id, ItemType.FOLDER, folder_id):
        folder = get_user_folder(user, folder_id)
        target = get_parent_folder(user, target_id)

        if target is not None and _is_same_or_descendant(target, folder):
            raise InvalidInputError(
                f'Cannot move folder "{folder.name}" into itself',
            )

        target_pk = target.id if target else None
        if target_pk == folder.parent_id:
            return folder

        _relocate_folder(folder, target, folder.name)

    return folder


def delete_folder(user: _User, folder_id: int) -> None:
    """Delete a folder with its whole subtree.

    Disk content goes first: the flat files of every file in the
    subtree, then the directory tree. The row is deleted last and the
    database cascade removes descendant folders and files.

    Args:
        user: Owner of the folder.
        folder_id: Folder to delete.

    Raises:
        NotFoundError: If the folder does not exist.
        PhysicalIOError: If disk deletion fails (the row is kept).
    """
    storage = get_storage()

    with item_lock(user.id, ItemType.FOLDER, folder_id):
        folder = get_user_folder(user, folder_id)
        subtree = collect_subtree(folder)

        files = File.objects.filter(
            folder__in=[node.id for node in subtree],
        ).prefetch_related('versions')
        for file_instance in files:
            purge_file_content(storage, file_instance)

        with physical_step('Failed to delete physical folder'):
            storage.remove_tree(folder.storage_name())

        try:
            with transaction.atomic():
                folder.delete()
        except DatabaseError:
            logger.exception(
                'Failed to delete folder from database after removal: ID=%d',
                folder_id,
            )
            raise

    logger.info(
        'Folder deleted: %s (ID: %d, %d folders in subtree)',
        folder.path,
        folder_id,
        len(subtree),
    )


def list_folder_contents(
    user: _User,
    folder_id: int | None = None,
) -> tuple[QuerySet[Folder], QuerySet[File]]:
    """List sub-folders and files directly inside a folder.

    Args:
        user: Owner of the items.
        folder_id: Folder to list, None or 0 for root.

    Returns:
        Tuple of (folders, files) querysets.

    Raises:
        NotFoundError: If the folder does not exist.
    """
    parent = get_parent_folder(user, folder_id)

    folders = Folder.objects.filter(user=user, parent=parent)
    files = File.objects.filter(user=user, folder=parent)

    logger.debug('Listing folder: %s', parent.path if parent else '/')
    return folders, files


def get_folder(user: _User, folder_id: int) -> Folder:
    """Get a folder with its immediate sub-folders and files prefetched.

    Args:
        user: Owner of the folder.
        folder_id: Folder primary key.

    Returns:
        Folder instance.

    Raises:
        NotFoundError: If the folder does not exist.
    """
    get_user_folder(user, folder_id)
    return Folder.objects.prefetch_related('subfolders', 'files').get(
        id=folder_id,
    )


def get_breadcrumbs(user: _User, folder_id: int | None) -> list[dict[str, Any]]:
    """Build the navigation trail from the root to a folder.

    Args:
        user: Owner of the folder.
        folder_id: Current folder, None or 0 for root.

    Returns:
        List of {'id', 'name'} dicts starting with the synthetic root.

    Raises:
        NotFoundError: If the folder does not exist.
    """
    breadcrumbs: list[dict[str, Any]] = [
        {'id': ROOT_FOLDER_ID, 'name': _HOME_LABEL},
    ]
    current = get_parent_folder(user, folder_id)

    trail: list[Folder] = []
    while current is not None:
        trail.append(current)
        current = current.parent

    breadcrumbs.extend(
        {'id': folder.id, 'name': folder.name}
        for folder in reversed(trail)
    )
    return breadcrumbs


def collect_subtree(folder: Folder) -> list[Folder]:
    """Collect a folder and all its descendants, breadth first.

    Args:
        folder: Subtree root.

    Returns:
        List starting with ``folder``.
    """
    subtree = [folder]
    queue = deque([folder.id])
    while queue:
        children = list(Folder.objects.filter(parent_id=queue.popleft()))
        subtree.extend(children)
        queue.extend(child.id for child in children)
    return subtree


def _ensure_name_free(
    user: _User,
    parent: Folder | None,
    name: str,
    exclude_id: int | None = None,
) -> None:
    siblings = Folder.objects.filter(user=user, parent=parent, name=name)
    if exclude_id is not None:
        siblings = siblings.exclude(id=exclude_id)
    if siblings.exists():
        raise ConflictError(f'A folder named "{name}" already exists here')


def _is_same_or_descendant(candidate: Folder, ancestor: Folder) -> bool:
    node: Folder | None = candidate
    while node is not None:
        if node.id == ancestor.id:
            return True
        node = node.parent
    return False


def _remove_created_directory(folder: Folder) -> None:
    storage_name = folder.storage_name()
    try:
        get_storage().remove_tree(storage_name)
    except OSError as error:
        logger.exception(
            'Failed to remove directory of rolled back folder: %s',
            storage_name,
        )
        raise CompensationError() from error


def _relocate_folder(
    folder: Folder,
    new_parent: Folder | None,
    new_name: str,
) -> None:
    """Move the directory, then persist the new paths of the subtree.

    Args:
        folder: Folder being renamed or moved.
        new_parent: Destination parent, None for root.
        new_name: Destination name.

    Raises:
        ConflictError: If the destination name is taken.
        PhysicalIOError: If the directory move fails.
        CompensationError: If the DB update failed and the directory
            could not be moved back.
    """
    storage = get_storage()
    _ensure_name_free(folder.user, new_parent, new_name, exclude_id=folder.id)

    old_state = (folder.name, folder.parent, folder.path)
    old_storage_name = folder.storage_name()
    new_path = join_logical(new_parent.path if new_parent else None, new_name)
    new_storage_name = PathResolver(folder.user_id).to_storage_path(new_path)

    # Step 1: Physical move; nothing logical has changed if it fails
    with physical_step('Failed to rename physical folder'):
        storage.rename_directory(old_storage_name, new_storage_name)

    # Step 2: Logical update of the folder and every descendant path
    try:
        with transaction.atomic():
            folder.name = new_name
            folder.parent = new_parent
            folder.path = new_path
            folder.save(update_fields=['name', 'parent', 'path', 'updated_at'])
            descendants = _refresh_descendant_paths(folder)
    except DatabaseError as error:
        folder.name, folder.parent, folder.path = old_state
        logger.exception(
            'Database update failed, moving directory back: %s -> %s',
            new_storage_name,
            old_storage_name,
        )
        try:
            storage.rename_directory(new_storage_name, old_storage_name)
        except OSError as undo_error:
            raise CompensationError() from undo_error
        if isinstance(error, IntegrityError):
            raise ConflictError(
                f'A folder named "{new_name}" already exists here',
            ) from error
        raise

    logger.info(
        'Folder relocated: %s -> %s (ID: %d, %d descendants updated)',
        old_state[2],
        new_path,
        folder.id,
        descendants,
    )


def _refresh_descendant_paths(folder: Folder) -> int:
    """Recompute the stored path of every descendant of ``folder``.

    Args:
        folder: Folder whose path was just changed.

    Returns:
        Number of descendants updated.
    """
    updated = 0
    queue = deque([folder])
    while queue:
        node = queue.popleft()
        children = list(Folder.objects.filter(parent_id=node.id))
        for child in children:
            child.path = join_logical(node.path, child.name)
        if children:
            Folder.objects.bulk_update(children, ['path'])
            updated += len(children)
        queue.extend(children)
    return updated
