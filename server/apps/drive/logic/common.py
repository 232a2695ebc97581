"""Lookups and helpers shared by drive operations."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from django.core.exceptions import SuspiciousFileOperation
from django.core.files.storage import default_storage

from server.apps.drive.exceptions import (
    InvalidInputError,
    NotFoundError,
    PhysicalIOError,
)
from server.apps.drive.models import ROOT_FOLDER_ID, File, Folder, ItemType

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.storage import MirrorStorage

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def get_storage() -> 'MirrorStorage':
    """Get the configured physical mirror backend.

    Returns:
        MirrorStorage rooted at <ROOT_DIRECTORY>/root.
    """
    return default_storage  # type: ignore[return-value]


def parse_item_id(raw_id: object, field: str = 'id') -> int:
    """Convert a client supplied id into an integer.

    Args:
        raw_id: Value from the request.
        field: Field name for the error message.

    Returns:
        Non-negative integer id.

    Raises:
        InvalidInputError: If the value is not a non-negative integer.
    """
    if isinstance(raw_id, bool):
        raise InvalidInputError(f'Invalid {field}')
    try:
        item_id = int(raw_id)  # type: ignore[call-overload]
    except (TypeError, ValueError) as error:
        raise InvalidInputError(f'Invalid {field}') from error
    if item_id < 0:
        raise InvalidInputError(f'Invalid {field}')
    return item_id


def is_root(folder_id: int | None) -> bool:
    """Check whether an id addresses the user's root.

    Args:
        folder_id: Folder id, None or 0 for root.

    Returns:
        True for the synthetic root.
    """
    return folder_id is None or folder_id == ROOT_FOLDER_ID


def get_user_folder(user: _User, folder_id: int, *, for_update: bool = False) -> Folder:
    """Get a folder owned by the user.

    Args:
        user: Expected owner.
        folder_id: Folder primary key.
        for_update: Lock the row (must be called inside a transaction).

    Returns:
        Folder instance.

    Raises:
        NotFoundError: If the folder does not exist or belongs to
            another user.
    """
    queryset = Folder.objects.filter(user=user)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=folder_id)
    except Folder.DoesNotExist as error:
        logger.info('Folder not found: ID=%s, user=%s', folder_id, user.id)
        raise NotFoundError('Folder not found') from error


def get_user_file(user: _User, file_id: int, *, for_update: bool = False) -> File:
    """Get a file owned by the user.

    Args:
        user: Expected owner.
        file_id: File primary key.
        for_update: Lock the row (must be called inside a transaction).

    Returns:
        File instance.

    Raises:
        NotFoundError: If the file does not exist or belongs to another
            user.
    """
    queryset = File.objects.filter(user=user)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=file_id)
    except File.DoesNotExist as error:
        logger.info('File not found: ID=%s, user=%s', file_id, user.id)
        raise NotFoundError('File not found') from error


def parse_item_type(raw_type: object) -> ItemType:
    """Validate a client supplied item type.

    Args:
        raw_type: Value from the request.

    Returns:
        ItemType member.

    Raises:
        InvalidInputError: If the value is neither 'file' nor 'folder'.
    """
    try:
        return ItemType(raw_type)
    except ValueError as error:
        raise InvalidInputError('Invalid item type') from error


def get_user_item(user: _User, item_type: str, item_id: int) -> File | Folder:
    """Get a file or folder owned by the user.

    Args:
        user: Expected owner.
        item_type: 'file' or 'folder'.
        item_id: Primary key.

    Returns:
        File or Folder instance.

    Raises:
        InvalidInputError: If the type is unknown.
        NotFoundError: If the item does not exist.
    """
    if parse_item_type(item_type) is ItemType.FILE:
        return get_user_file(user, item_id)
    return get_user_folder(user, item_id)


def get_parent_folder(user: _User, folder_id: int | None) -> Folder | None:
    """Resolve an optional parent reference.

    Args:
        user: Expected owner.
        folder_id: Folder id, None or 0 for root.

    Returns:
        Folder instance or None for the root.

    Raises:
        NotFoundError: If a non-root folder is missing or foreign.
    """
    if is_root(folder_id):
        return None
    return get_user_folder(user, folder_id)  # type: ignore[arg-type]


@contextmanager
def physical_step(message: str) -> Iterator[None]:
    """Translate filesystem failures of one physical step.

    The storage backend has already logged the failing path; callers get
    a user-safe error instead.

    Args:
        message: User-visible description of the failed step.

    Yields:
        None while the step runs.

    Raises:
        PhysicalIOError: If the step raised OSError.
        InvalidInputError: If a path escaped the user's root.
    """
    try:
        yield
    except SuspiciousFileOperation as error:
        logger.warning('Rejected storage path: %s', error)
        raise InvalidInputError('Invalid path') from error
    except OSError as error:
        raise PhysicalIOError(message) from error


def load_items(
    user: _User,
    references: list[Any],
) -> dict[tuple[str, int], File | Folder]:
    """Fetch the items referenced by favorite or recent rows in two queries.

    Args:
        user: Owner of the items.
        references: Rows with ``item_type`` and ``item_id``.

    Returns:
        Mapping of (item_type, item_id) to the existing item.
    """
    wanted: dict[str, set[int]] = {ItemType.FILE: set(), ItemType.FOLDER: set()}
    for reference in references:
        wanted[reference.item_type].add(reference.item_id)

    items: dict[tuple[str, int], File | Folder] = {}
    for file_instance in File.objects.filter(user=user, id__in=wanted[ItemType.FILE]):
        items[ItemType.FILE, file_instance.id] = file_instance
    for folder in Folder.objects.filter(user=user, id__in=wanted[ItemType.FOLDER]):
        items[ItemType.FOLDER, folder.id] = folder
    return items
