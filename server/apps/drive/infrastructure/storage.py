"""Filesystem storage backend holding the physical mirror."""

import logging
import os
import shutil
import tempfile
from typing import IO, Any, Final, final, override

from django.core.files.storage import FileSystemStorage

logger = logging.getLogger(__name__)

_COPY_BUFFER_SIZE: Final = 64 * 1024


@final
class MirrorStorage(FileSystemStorage):
    """Local storage backend for user folders and files.

    Extends Django's FileSystemStorage with:
    - Directory operations (create, rename, recursive remove)
    - In-place copies and atomic overwrites for the version engine
    - Rollback support for failed DB operations
    - Enhanced error logging

    Every name is relative to ``location``; ``path()`` rejects names that
    escape it with ``SuspiciousFileOperation``.
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str | None,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (differs from name on conflicts).

        Raises:
            OSError: If writing to disk fails.
        """
        try:
            logger.info('Writing file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully wrote file: %s', saved_name)
        except OSError:
            logger.exception('Failed to write file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file with error handling and logging.

        Missing files are ignored.

        Args:
            name: Storage path of file to delete.

        Raises:
            OSError: If the unlink fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except OSError:
            logger.exception('Failed to delete file from storage: %s', name)
            raise

    def rollback_upload(self, name: str) -> None:
        """Delete written file for DB transaction rollback.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.
        The orphaned file is reported by the verify_mirror command.

        Args:
            name: Storage path of file to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting file: %s', name)
            self.delete(name)
            logger.info('Successfully rolled back file upload: %s', name)
        except OSError:
            logger.exception(
                'Failed to rollback upload, orphaned file: %s',
                name,
            )

    def make_directory(self, name: str) -> None:
        """Create a directory and any missing parents.

        Args:
            name: Storage path of the directory.

        Raises:
            OSError: If the directory cannot be created.
        """
        directory = self.path(name)
        try:
            os.makedirs(directory, exist_ok=True)
            if self.directory_permissions_mode is not None:
                os.chmod(directory, self.directory_permissions_mode)
        except OSError:
            logger.exception('Failed to create directory: %s', name)
            raise
        logger.info('Created directory: %s', name)

    def directory_exists(self, name: str) -> bool:
        """Check whether a directory exists.

        Args:
            name: Storage path of the directory.

        Returns:
            True if the path exists and is a directory.
        """
        return os.path.isdir(self.path(name))

    def rename_directory(self, source: str, destination: str) -> None:
        """Move/rename a directory with all its contents.

        Unlike ``os.rename`` this never replaces an existing destination.

        Args:
            source: Current storage path.
            destination: New storage path.

        Raises:
            FileExistsError: If destination already exists.
            OSError: If the rename fails.
        """
        source_path = self.path(source)
        destination_path = self.path(destination)
        try:
            logger.info('Moving directory: %s -> %s', source, destination)
            if os.path.lexists(destination_path):
                raise FileExistsError(destination_path)
            os.makedirs(os.path.dirname(destination_path), exist_ok=True)
            os.rename(source_path, destination_path)
        except OSError:
            logger.exception(
                'Directory move failed: %s -> %s',
                source,
                destination,
            )
            raise
        logger.info('Moved directory: %s -> %s', source, destination)

    def remove_tree(self, name: str) -> None:
        """Recursively delete a directory.

        A directory that does not exist counts as removed.

        Args:
            name: Storage path of the directory.

        Raises:
            OSError: If the directory cannot be removed.
        """
        directory = self.path(name)
        try:
            logger.info('Removing directory tree: %s', name)
            shutil.rmtree(directory)
        except FileNotFoundError:
            logger.warning('Directory not found (already deleted?): %s', name)
        except OSError:
            logger.exception('Failed to remove directory tree: %s', name)
            raise
        else:
            logger.info('Removed directory tree: %s', name)

    def copy(self, source: str, destination: str) -> None:
        """Copy file content, replacing the destination.

        Args:
            source: Source storage path.
            destination: Destination storage path.

        Raises:
            OSError: If the copy fails.
        """
        try:
            logger.info('Copying file: %s -> %s', source, destination)
            with self.open(source, 'rb') as source_file:
                self._replace_from(destination, source_file)
        except OSError:
            logger.exception('Copy failed: %s -> %s', source, destination)
            raise
        logger.info('Copied file: %s -> %s', source, destination)

    def overwrite(self, name: str, content: IO[bytes]) -> int:
        """Replace file content atomically.

        Writes into a temporary sibling first and renames it over the
        target, so the old content survives a failed write.

        Args:
            name: Storage path to overwrite.
            content: New content.

        Returns:
            Number of bytes written.

        Raises:
            OSError: If writing fails.
        """
        try:
            logger.info('Overwriting file in storage: %s', name)
            written = self._replace_from(name, content)
        except OSError:
            logger.exception('Failed to overwrite file: %s', name)
            raise
        logger.info('Overwrote file: %s (%d bytes)', name, written)
        return written

    def _replace_from(self, name: str, content: IO[bytes]) -> int:
        target = self.path(name)
        directory = os.path.dirname(target)
        os.makedirs(directory, exist_ok=True)
        file_descriptor, temp_path = tempfile.mkstemp(
            dir=directory,
            prefix='.upload-',
        )
        written = 0
        try:
            with os.fdopen(file_descriptor, 'wb') as temp_file:
                if hasattr(content, 'seek'):
                    content.seek(0)
                while chunk := content.read(_COPY_BUFFER_SIZE):
                    temp_file.write(chunk)
                    written += len(chunk)
            if self.file_permissions_mode is not None:
                os.chmod(temp_path, self.file_permissions_mode)
            os.replace(temp_path, target)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        return written
