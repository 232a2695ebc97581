"""Business logic for file operations."""

import logging
from typing import IO, TYPE_CHECKING, Any, BinaryIO, Final

from django.conf import settings
from django.core.files.base import File as DjangoFile
from django.db import DatabaseError, transaction

from server.apps.drive.exceptions import UploadRejectedError
from server.apps.drive.infrastructure.locks import item_lock
from server.apps.drive.infrastructure.metadata import (
    detect_mime_type,
    get_file_size,
    mime_type_allowed,
)
from server.apps.drive.infrastructure.paths import (
    PathResolver,
    restore_point_name,
    sanitize_upload_name,
    validate_name,
)
from server.apps.drive.logic.common import (
    get_parent_folder,
    get_storage,
    get_user_file,
    physical_step,
)
from server.apps.drive.models import File, ItemType

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.storage import MirrorStorage

# User type for Django's dynamic user model
_User = Any

_DEFAULT_MAX_UPLOAD_SIZE: Final = 100 * 1024 * 1024
_HTTP_PAYLOAD_TOO_LARGE: Final = 413

logger = logging.getLogger(__name__)


def get_max_upload_size() -> int:
    """Get maximum accepted upload size.

    Returns:
        Size limit in bytes from settings or default of 100 MB.
    """
    return getattr(settings, 'DRIVE_MAX_UPLOAD_SIZE', _DEFAULT_MAX_UPLOAD_SIZE)


def get_allowed_mime_types() -> list[str]:
    """Get the MIME type allow list.

    Returns:
        Allowed types from settings, ['*'] accepts everything.
    """
    return list(getattr(settings, 'DRIVE_ALLOWED_MIME_TYPES', ['*']))


def check_upload_policy(size_bytes: int, mime_type: str) -> None:
    """Check an upload against the configured size and type policy.

    Args:
        size_bytes: Size of the upload in bytes.
        mime_type: Detected MIME type.

    Raises:
        UploadRejectedError: If the upload is too large or of a type
            that is not allowed.
    """
    max_size = get_max_upload_size()
    if size_bytes > max_size:
        logger.warning(
            'Upload rejected: %d bytes exceeds limit of %d',
            size_bytes,
            max_size,
        )
        raise UploadRejectedError(
            f'File exceeds maximum size of {max_size} bytes',
            status_code=_HTTP_PAYLOAD_TOO_LARGE,
        )

    if not mime_type_allowed(mime_type, get_allowed_mime_types()):
        logger.warning('Upload rejected: type %s not allowed', mime_type)
        raise UploadRejectedError(f'File type {mime_type} is not allowed')


def upload_file(
    user: _User,
    upload: BinaryIO | DjangoFile,
    folder_id: int | None = None,
) -> File:
    """Store an upload and create its database record.

    Transaction safety: Write to storage first, then create DB record.
    If DB transaction fails, the written file is deleted from storage
    (rollback).

    Args:
        user: Owner of the file.
        upload: Uploaded content with a ``name`` attribute.
        folder_id: Logical parent folder, None or 0 for root.

    Returns:
        Created File instance.

    Raises:
        InvalidInputError: If the filename is unusable.
        UploadRejectedError: If size or type policy rejects the upload.
        NotFoundError: If the folder does not exist.
        PhysicalIOError: If writing to disk fails.
    """
    filename = sanitize_upload_name(getattr(upload, 'name', ''))
    mime_type = detect_mime_type(
        filename,
        getattr(upload, 'content_type', None),
    )
    check_upload_policy(get_file_size(upload), mime_type)

    folder = get_parent_folder(user, folder_id)
    storage = get_storage()
    storage_name = PathResolver(user.id).file_storage_name(filename)

    # Step 1: Write to storage first
    with physical_step('Failed to save file'):
        saved_name = storage.save(storage_name, upload)
        file_size = storage.size(saved_name)

    # Step 2: Create database record (in transaction)
    try:
        with transaction.atomic():
            file_instance = File.objects.create(
                user=user,
                name=filename,
                original_name=filename,
                folder=folder,
                file=saved_name,  # Use actual saved name from storage
                size=file_size,
                mime_type=mime_type,
            )
    except DatabaseError:
        # Rollback: Delete file from storage since DB transaction failed
        logger.exception(
            'Database transaction failed, rolling back storage upload: %s',
            saved_name,
        )
        storage.rollback_upload(saved_name)
        raise

    logger.info(
        'File uploaded: %s (ID: %d, %d bytes)',
        saved_name,
        file_instance.id,
        file_size,
    )
    return file_instance


def open_file(user: _User, file_id: int) -> tuple[File, IO[bytes]]:
    """Open the live content of a file for download.

    Args:
        user: Owner of the file.
        file_id: ID of file to read.

    Returns:
        File instance and an open binary handle the caller must close.

    Raises:
        NotFoundError: If file doesn't exist.
        PhysicalIOError: If the content cannot be opened.
    """
    file_instance = get_user_file(user, file_id)
    with physical_step('Failed to read file'):
        handle = get_storage().open(file_instance.file.name, 'rb')
    return file_instance, handle


def rename_file(user: _User, file_id: int, new_name: str) -> File:
    """Change the display name of a file.

    Files are stored flat, so only the record changes.

    Args:
        user: Owner of the file.
        file_id: ID of file to rename.
        new_name: New display name.

    Returns:
        Updated File instance.

    Raises:
        InvalidInputError: If the name is invalid.
        NotFoundError: If file doesn't exist.
    """
    name = validate_name(new_name)

    with item_lock(user.id, ItemType.FILE, file_id):
        with transaction.atomic():
            file_instance = get_user_file(user, file_id, for_update=True)
            old_name = file_instance.name
            file_instance.name = name
            file_instance.save(update_fields=['name', 'updated_at'])

    logger.info('File renamed: %s -> %s (ID: %d)', old_name, name, file_id)
    return file_instance


def move_file(user: _User, file_id: int, folder_id: int | None) -> File:
    """Place a file under another folder.

    Only the record changes; the content stays at its flat storage name.

    Args:
        user: Owner of the file and folder.
        file_id: ID of file to move.
        folder_id: Destination folder, None or 0 for root.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If the file or destination does not exist.
    """
    with item_lock(user.id, ItemType.FILE, file_id):
        folder = get_parent_folder(user, folder_id)
        with transaction.atomic():
            file_instance = get_user_file(user, file_id, for_update=True)
            file_instance.folder = folder
            file_instance.save(update_fields=['folder', 'updated_at'])

    logger.info(
        'File moved: ID=%d -> %s',
        file_id,
        folder.path if folder else '/',
    )
    return file_instance


def purge_file_content(storage: 'MirrorStorage', file_instance: File) -> None:
    """Remove the live content and every archived version of a file.

    Archives go first so that a failure leaves the live content, and
    with it the record, usable.

    Args:
        storage: Physical mirror.
        file_instance: File whose content is removed.

    Raises:
        PhysicalIOError: If any unlink fails.
    """
    live_name = file_instance.file.name
    archive_names = [
        version.content.name
        for version in file_instance.versions.all()
        if version.content.name != live_name
    ]
    if file_instance.versioning_enabled:
        archive_names.append(
            restore_point_name(live_name, file_instance.current_version),
        )

    with physical_step('Failed to delete file from disk'):
        for archive_name in archive_names:
            storage.delete(archive_name)
        storage.delete(live_name)


def delete_file(user: _User, file_id: int) -> None:
    """Delete file from storage and database.

    Ordering: the physical unlink happens first; if it fails the record
    is kept so no row ever points at removed content.

    Args:
        user: Owner of the file.
        file_id: ID of file to delete.

    Raises:
        NotFoundError: If file doesn't exist.
        PhysicalIOError: If disk deletion fails.
    """
    storage = get_storage()

    with item_lock(user.id, ItemType.FILE, file_id):
        file_instance = get_user_file(user, file_id)
        storage_name = file_instance.file.name
        logger.info('Deleting file: ID=%d, path=%s', file_id, storage_name)

        purge_file_content(storage, file_instance)

        try:
            with transaction.atomic():
                file_instance.delete()
        except DatabaseError:
            logger.exception(
                'Failed to delete file from database after unlink: ID=%d',
                file_id,
            )
            raise

    logger.info('File deleted: ID=%d', file_id)
