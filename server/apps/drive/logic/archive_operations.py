"""Zip archives of files and folder subtrees for download.

The archive is written to an anonymous temporary file that disappears
when closed. Until ``BulkArchive`` is handed to the caller it is owned
here and closed on every error path, including cancellation mid-walk.
"""

import contextlib
import dataclasses
import logging
import tempfile
import threading
import zipfile
from collections.abc import Iterable
from typing import IO, Any, Final

from django.utils import timezone

from server.apps.drive.exceptions import NotFoundError, OperationCancelledError
from server.apps.drive.logic.common import (
    get_storage,
    get_user_file,
    get_user_folder,
    physical_step,
)
from server.apps.drive.models import File, Folder

# User type for Django's dynamic user model
_User = Any

_BULK_ARCHIVE_PREFIX: Final = 'drive_download'
_ZIP_SEPARATOR: Final = '/'
_COPY_CHUNK_SIZE: Final = 64 * 1024

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class BulkArchive:
    """Built archive ready to stream.

    ``handle`` is positioned at the start; closing it deletes the
    temporary file.
    """

    handle: IO[bytes]
    filename: str
    entries: int = 0
    failed_items: list[str] = dataclasses.field(default_factory=list)


class _ArchiveWriter:
    """Appends stored files to a zip under unique entry names."""

    def __init__(
        self,
        archive: zipfile.ZipFile,
        cancel_event: threading.Event | None,
    ) -> None:
        self._archive = archive
        self._cancel_event = cancel_event
        self._used_names: set[str] = set()
        self._storage = get_storage()
        self.entries = 0

    def add_file(self, file_instance: File, entry_name: str) -> None:
        """Copy one stored file into the archive.

        Raises:
            OperationCancelledError: If cancellation was requested.
            OSError: If the stored content cannot be read.
        """
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise OperationCancelledError()

        entry_name = self._unique(entry_name)
        with self._storage.open(file_instance.file.name, 'rb') as source:
            with self._archive.open(entry_name, 'w') as target:
                while chunk := source.read(_COPY_CHUNK_SIZE):
                    target.write(chunk)
        self.entries += 1

    def add_folder(self, folder: Folder, prefix: str = '') -> None:
        """Append every file in a folder subtree, keeping relative paths.

        Directories themselves get no entries.
        """
        base = f'{prefix}{folder.name}{_ZIP_SEPARATOR}'
        for file_instance in File.objects.filter(folder=folder).order_by('name'):
            self.add_file(file_instance, f'{base}{file_instance.name}')
        for subfolder in Folder.objects.filter(parent=folder).order_by('name'):
            self.add_folder(subfolder, base)

    def _unique(self, entry_name: str) -> str:
        candidate = entry_name
        counter = 1
        while candidate in self._used_names:
            stem, _, suffix = entry_name.rpartition('.')
            if stem and _ZIP_SEPARATOR not in suffix:
                candidate = f'{stem} ({counter}).{suffix}'
            else:
                candidate = f'{entry_name} ({counter})'
            counter += 1
        self._used_names.add(candidate)
        return candidate


def create_archive(
    user: _User,
    file_ids: Iterable[int],
    folder_ids: Iterable[int],
    cancel_event: threading.Event | None = None,
) -> BulkArchive:
    """Build a zip of the requested files and folder subtrees.

    Missing or foreign items are skipped and reported, like other bulk
    operations.

    Args:
        user: Owner of the items.
        file_ids: Files added by display name at the archive root.
        folder_ids: Folders added with their whole subtree.
        cancel_event: Checked before every file.

    Returns:
        BulkArchive; the caller must close ``handle``.

    Raises:
        OperationCancelledError: If cancelled; the archive is discarded.
        PhysicalIOError: If stored content cannot be read.
    """
    filename = f'{_BULK_ARCHIVE_PREFIX}_{timezone.now():%Y%m%d_%H%M%S}.zip'
    return _build(
        user,
        filename,
        list(file_ids),
        list(folder_ids),
        cancel_event,
    )


def zip_folder(
    user: _User,
    folder_id: int,
    cancel_event: threading.Event | None = None,
) -> BulkArchive:
    """Build a zip of one folder subtree.

    Args:
        user: Owner of the folder.
        folder_id: Folder to archive.
        cancel_event: Checked before every file.

    Returns:
        BulkArchive named after the folder.

    Raises:
        NotFoundError: If the folder does not exist.
        OperationCancelledError: If cancelled.
        PhysicalIOError: If stored content cannot be read.
    """
    folder = get_user_folder(user, folder_id)
    return _build(user, f'{folder.name}.zip', [], [folder.id], cancel_event)


def _build(  # noqa: WPS211
    user: _User,
    filename: str,
    file_ids: list[int],
    folder_ids: list[int],
    cancel_event: threading.Event | None,
) -> BulkArchive:
    failed_items: list[str] = []

    with contextlib.ExitStack() as stack:
        handle = stack.enter_context(tempfile.TemporaryFile(suffix='.zip'))
        with physical_step('Failed to build archive'):
            with zipfile.ZipFile(handle, 'w', zipfile.ZIP_DEFLATED) as archive:
                writer = _ArchiveWriter(archive, cancel_event)
                for file_id in file_ids:
                    try:
                        file_instance = get_user_file(user, file_id)
                    except NotFoundError:
                        failed_items.append(f'file_{file_id}')
                        continue
                    writer.add_file(file_instance, file_instance.name)
                for folder_id in folder_ids:
                    try:
                        folder = get_user_folder(user, folder_id)
                    except NotFoundError:
                        failed_items.append(f'folder_{folder_id}')
                        continue
                    writer.add_folder(folder)

        handle.seek(0)
        # Built successfully: ownership passes to the caller
        stack.pop_all()

    logger.info(
        'Archive built: %s (%d entries, %d skipped, user %s)',
        filename,
        writer.entries,
        len(failed_items),
        user.id,
    )
    return BulkArchive(
        handle=handle,
        filename=filename,
        entries=writer.entries,
        failed_items=failed_items,
    )
