"""Batch delete and move over sets of files and folders.

Items are processed one at a time, files first, then folders. A failing
item is recorded and processing continues; nothing already processed is
rolled back.
"""

import dataclasses
import enum
import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from server.apps.drive.exceptions import DriveError, InvalidInputError
from server.apps.drive.logic.common import get_parent_folder
from server.apps.drive.logic.file_operations import delete_file, move_file
from server.apps.drive.logic.folder_operations import delete_folder, move_folder
from server.apps.drive.models import File, Folder, ItemType

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


class BulkAction(enum.StrEnum):
    """Actions accepted by ``run_bulk_action``."""

    DELETE = 'delete'
    MOVE = 'move'
    DOWNLOAD = 'download'


@dataclasses.dataclass
class BulkResult:
    """Outcome of a bulk operation."""

    message: str = ''
    processed: int = 0
    failed: int = 0
    failed_items: list[str] = dataclasses.field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        """Whether every item was processed."""
        return self.failed == 0 and not self.cancelled

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses.

        Returns:
            Dictionary with success flag, counters and failed item tokens.
        """
        return {
            'success': self.success,
            'message': self.message,
            'processed': self.processed,
            'failed': self.failed,
            'failed_items': list(self.failed_items),
            'cancelled': self.cancelled,
        }


def _failure_token(
    user: _User,
    model: type[File] | type[Folder],
    item_id: int,
) -> str:
    """Name an item for failure reports: display name or ``file_<id>``."""
    prefix = ItemType.FILE.value if model is File else ItemType.FOLDER.value
    name = model.objects.filter(id=item_id, user=user).values_list(
        'name',
        flat=True,
    ).first()
    return name or f'{prefix}_{item_id}'


def _run(  # noqa: WPS211
    user: _User,
    file_ids: Iterable[int],
    folder_ids: Iterable[int],
    file_step: Callable[[int], object],
    folder_step: Callable[[int], object],
    cancel_event: threading.Event | None,
) -> BulkResult:
    result = BulkResult()
    passes = (
        (File, list(file_ids), file_step),
        (Folder, list(folder_ids), folder_step),
    )

    for model, item_ids, step in passes:
        for item_id in item_ids:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    'Bulk operation cancelled after %d items (user %s)',
                    result.processed + result.failed,
                    user.id,
                )
                result.cancelled = True
                return result
            # Resolved up front: the item may be gone after a partial step
            token = _failure_token(user, model, item_id)
            try:
                step(item_id)
            except DriveError as error:
                logger.warning(
                    'Bulk item failed: %s (%s)',
                    token,
                    error.message,
                )
                result.failed += 1
                result.failed_items.append(token)
            else:
                result.processed += 1

    return result


def bulk_delete(
    user: _User,
    file_ids: Iterable[int],
    folder_ids: Iterable[int],
    cancel_event: threading.Event | None = None,
) -> BulkResult:
    """Delete a set of files and folders.

    Args:
        user: Owner of the items.
        file_ids: Files to delete.
        folder_ids: Folders to delete with their subtrees.
        cancel_event: Checked between items; processing stops once set.

    Returns:
        BulkResult with per-item failures.
    """
    result = _run(
        user,
        file_ids,
        folder_ids,
        lambda file_id: delete_file(user, file_id),
        lambda folder_id: delete_folder(user, folder_id),
        cancel_event,
    )
    result.message = (
        f'Processed {result.processed} items, {result.failed} failed'
    )
    logger.info('Bulk delete for user %s: %s', user.id, result.message)
    return result


def bulk_move(  # noqa: WPS211
    user: _User,
    file_ids: Iterable[int],
    folder_ids: Iterable[int],
    target_id: int | None,
    cancel_event: threading.Event | None = None,
) -> BulkResult:
    """Move a set of files and folders under one target folder.

    Args:
        user: Owner of the items.
        file_ids: Files to move.
        folder_ids: Folders to move with their subtrees.
        target_id: Destination folder, None or 0 for root.
        cancel_event: Checked between items; processing stops once set.

    Returns:
        BulkResult with per-item failures.

    Raises:
        NotFoundError: If the target folder does not exist.
    """
    get_parent_folder(user, target_id)

    result = _run(
        user,
        file_ids,
        folder_ids,
        lambda file_id: move_file(user, file_id, target_id),
        lambda folder_id: move_folder(user, folder_id, target_id),
        cancel_event,
    )
    result.message = f'Moved {result.processed} items, {result.failed} failed'
    logger.info('Bulk move for user %s: %s', user.id, result.message)
    return result


def run_bulk_action(  # noqa: WPS211
    user: _User,
    action: str,
    file_ids: Iterable[int],
    folder_ids: Iterable[int],
    target_id: int | None = None,
    cancel_event: threading.Event | None = None,
) -> BulkResult:
    """Dispatch a delete or move bulk action.

    Downloads are served by ``archive_operations.create_archive``.

    Args:
        user: Owner of the items.
        action: 'delete' or 'move'.
        file_ids: Files to process.
        folder_ids: Folders to process.
        target_id: Destination for 'move'.
        cancel_event: Checked between items.

    Returns:
        BulkResult.

    Raises:
        InvalidInputError: If the action is unknown.
    """
    try:
        bulk_action = BulkAction(action)
    except ValueError as error:
        raise InvalidInputError('Invalid action') from error

    if bulk_action is BulkAction.DELETE:
        return bulk_delete(user, file_ids, folder_ids, cancel_event)
    if bulk_action is BulkAction.MOVE:
        return bulk_move(user, file_ids, folder_ids, target_id, cancel_event)
    raise InvalidInputError('Use the archive endpoint for downloads')
