"""Business logic for file version history.

State per file: unversioned -> versioned (enable_versioning) ->
unversioned (disable_versioning). While versioned, the version whose
number equals ``File.current_version`` points at the live path and all
older versions point at full archive copies next to it.
"""

import logging
from typing import IO, Any, BinaryIO, Final

from django.core.files.base import File as DjangoFile
from django.db import DatabaseError, transaction
from django.db.models import QuerySet

from server.apps.drive.exceptions import (
    ChecksumError,
    CompensationError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.drive.infrastructure.locks import item_lock
from server.apps.drive.infrastructure.metadata import (
    calculate_checksum,
    detect_mime_type,
    get_file_size,
)
from server.apps.drive.infrastructure.paths import (
    restore_point_name,
    version_archive_name,
    version_download_name,
)
from server.apps.drive.logic.common import (
    get_storage,
    get_user_file,
    physical_step,
)
from server.apps.drive.logic.file_operations import check_upload_policy
from server.apps.drive.models import File, FileVersion, ItemType

# User type for Django's dynamic user model
_User = Any

_INITIAL_VERSION: Final = 1
_INITIAL_COMMENT: Final = 'Initial version'
_PREVIOUS_COMMENT: Final = 'Previous version'

logger = logging.getLogger(__name__)


def _checksum_of(storage_name: str) -> str:
    """Calculate checksum of stored content.

    Args:
        storage_name: Storage path to read.

    Returns:
        Hex digest.

    Raises:
        ChecksumError: If the content cannot be read.
    """
    try:
        with get_storage().open(storage_name, 'rb') as content:
            return calculate_checksum(content)
    except OSError as error:
        logger.exception('Failed to calculate checksum: %s', storage_name)
        raise ChecksumError() from error


def _require_versioning(file_instance: File) -> None:
    if not file_instance.versioning_enabled:
        raise InvalidInputError('Versioning not enabled for this file')


def enable_versioning(user: _User, file_id: int) -> FileVersion:
    """Start tracking versions of a file.

    Records the current content as version 1, pointing at the live path
    (no copy is made yet).

    Args:
        user: Owner of the file.
        file_id: File to version.

    Returns:
        The initial FileVersion.

    Raises:
        NotFoundError: If the file does not exist.
        InvalidInputError: If versioning is already enabled.
        ChecksumError: If the live content cannot be read.
    """
    with item_lock(user.id, ItemType.FILE, file_id):
        file_instance = get_user_file(user, file_id)
        if file_instance.versioning_enabled:
            raise InvalidInputError('Versioning already enabled for this file')

        checksum = _checksum_of(file_instance.file.name)

        with transaction.atomic():
            file_instance = get_user_file(user, file_id, for_update=True)
            version = FileVersion.objects.create(
                file=file_instance,
                version=_INITIAL_VERSION,
                content=file_instance.file.name,
                size=file_instance.size,
                checksum=checksum,
                comment=_INITIAL_COMMENT,
                created_by=user,
            )
            file_instance.versioning_enabled = True
            file_instance.current_version = _INITIAL_VERSION
            file_instance.save(update_fields=[
                'versioning_enabled',
                'current_version',
                'updated_at',
            ])

    logger.info('Versioning enabled: file ID=%d (checksum %s)', file_id, checksum)
    return version


def disable_versioning(user: _User, file_id: int) -> File:
    """Stop tracking versions and drop the history.

    Deletes every archive copy (never the live content), then all version
    rows, and resets the version counter to 1.

    Args:
        user: Owner of the file.
        file_id: Versioned file.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If the file does not exist.
        InvalidInputError: If versioning is not enabled.
        PhysicalIOError: If an archive copy cannot be removed.
    """
    storage = get_storage()

    with item_lock(user.id, ItemType.FILE, file_id):
        file_instance = get_user_file(user, file_id)
        _require_versioning(file_instance)

        live_name = file_instance.file.name
        archive_names = [
            name
            for name in file_instance.versions.values_list('content', flat=True)
            if name != live_name
        ]
        archive_names.append(
            restore_point_name(live_name, file_instance.current_version),
        )

        # Physical first: rows stay if an archive cannot be removed
        with physical_step('Failed to delete version files'):
            for archive_name in archive_names:
                storage.delete(archive_name)

        with transaction.atomic():
            file_instance = get_user_file(user, file_id, for_update=True)
            file_instance.versions.all().delete()
            file_instance.versioning_enabled = False
            file_instance.current_version = _INITIAL_VERSION
            file_instance.save(update_fields=[
                'versioning_enabled',
                'current_version',
                'updated_at',
            ])

    logger.info(
        'Versioning disabled: file ID=%d (%d archives removed)',
        file_id,
        len(archive_names),
    )
    return file_instance


def list_versions(user: _User, file_id: int) -> tuple[File, QuerySet[FileVersion]]:
    """List the version history of a file, newest first.

    Args:
        user: Owner of the file.
        file_id: Versioned file.

    Returns:
        Tuple of (file, versions).

    Raises:
        NotFoundError: If the file does not exist.
        InvalidInputError: If versioning is not enabled.
    """
    file_instance = get_user_file(user, file_id)
    _require_versioning(file_instance)
    versions = file_instance.versions.select_related('created_by').order_by(
        '-version',
    )
    return file_instance, versions


def create_new_version(
    user: _User,
    file_id: int,
    content: BinaryIO | DjangoFile,
    comment: str = '',
) -> FileVersion:
    """Replace the live content and record it as a new version.

    Steps:
    1. Copy the live content to ``{stem}_v{current}{suffix}``.
    2. Repoint the current version row at that archive, with a checksum
       computed from the copy.
    3. Atomically replace the live content with the upload.
    4. Record version ``current + 1`` at the live path and bump the file.

    A failed write removes the archive copy; a failed database update
    additionally restores the live content from the archive.

    Args:
        user: Owner of the file.
        file_id: Versioned file.
        content: New content.
        comment: Optional description of the change.

    Returns:
        The new FileVersion.

    Raises:
        NotFoundError: If the file does not exist.
        InvalidInputError: If versioning is not enabled.
        UploadRejectedError: If the upload violates the upload policy.
        PhysicalIOError: If a disk step fails.
        CompensationError: If a failed step could not be rolled back.
    """
    storage = get_storage()
    check_upload_policy(
        get_file_size(content),
        detect_mime_type(
            getattr(content, 'name', '') or '',
            getattr(content, 'content_type', None),
        ),
    )

    with item_lock(user.id, ItemType.FILE, file_id):
        file_instance = get_user_file(user, file_id)
        _require_versioning(file_instance)

        live_name = file_instance.file.name
        old_number = file_instance.current_version
        new_number = old_number + 1
        archive_name = version_archive_name(live_name, old_number)

        # Step 1: Keep a full copy of the current content
        with physical_step('Failed to backup current version'):
            storage.copy(live_name, archive_name)
        archive_checksum = _checksum_of(archive_name)
        archive_size = storage.size(archive_name)

        # Step 2: Write the new live content
        try:
            with physical_step('Failed to save new version'):
                new_size = storage.overwrite(live_name, content)
            new_checksum = _checksum_of(live_name)
        except Exception:
            _discard_archive(archive_name)
            raise

        # Step 3: Record both versions
        try:
            with transaction.atomic():
                file_instance = get_user_file(user, file_id, for_update=True)
                FileVersion.objects.update_or_create(
                    file=file_instance,
                    version=old_number,
                    defaults={
                        'content': archive_name,
                        'size': archive_size,
                        'checksum': archive_checksum,
                    },
                    create_defaults={
                        'content': archive_name,
                        'size': archive_size,
                        'checksum': archive_checksum,
                        'comment': _PREVIOUS_COMMENT,
                        'created_by': user,
                    },
                )
                new_version = FileVersion.objects.create(
                    file=file_instance,
                    version=new_number,
                    content=live_name,
                    size=new_size,
                    checksum=new_checksum,
                    comment=comment,
                    created_by=user,
                )
                file_instance.current_version = new_number
                file_instance.size = new_size
                file_instance.save(update_fields=[
                    'current_version',
                    'size',
                    'updated_at',
                ])
        except DatabaseError:
            logger.exception(
                'Database update failed, restoring live content: %s',
                live_name,
            )
            _restore_live_from_archive(live_name, archive_name)
            raise

        _drop_restore_point(restore_point_name(live_name, old_number))

    logger.info(
        'New version created: file ID=%d v%d -> v%d (%d bytes)',
        file_id,
        old_number,
        new_number,
        new_size,
    )
    return new_version


def get_version(user: _User, file_id: int, version_number: int) -> FileVersion:
    """Get one version of a file.

    Args:
        user: Owner of the file.
        file_id: Versioned file.
        version_number: Version to fetch.

    Returns:
        FileVersion instance.

    Raises:
        NotFoundError: If the file or version does not exist.
    """
    file_instance = get_user_file(user, file_id)
    try:
        return file_instance.versions.get(version=version_number)
    except FileVersion.DoesNotExist as error:
        raise NotFoundError('Version not found') from error


def restore_version(user: _User, file_id: int, version_number: int) -> FileVersion:
    """Copy a stored version back over the live content.

    No new version is recorded and the current version counter is left
    alone; the live content differs from the current version until the
    next ``create_new_version``, which archives it with a fresh checksum.

    The first restore away from the current version keeps the live bytes
    as a restore point, so restoring the current version later brings
    them back. The recorded size always comes from the bytes on disk.

    Args:
        user: Owner of the file.
        file_id: Versioned file.
        version_number: Version to restore.

    Returns:
        The restored FileVersion.

    Raises:
        NotFoundError: If the file or version does not exist.
        InvalidInputError: If versioning is not enabled.
        PhysicalIOError: If a copy fails.
    """
    storage = get_storage()

    with item_lock(user.id, ItemType.FILE, file_id):
        file_instance = get_user_file(user, file_id)
        _require_versioning(file_instance)
        version = get_version(user, file_id, version_number)

        live_name = file_instance.file.name
        restore_point = restore_point_name(
            live_name,
            file_instance.current_version,
        )

        with physical_step('Failed to restore version'):
            if version.content.name != live_name:
                if not storage.exists(restore_point):
                    storage.copy(live_name, restore_point)
                storage.copy(version.content.name, live_name)
            elif storage.exists(restore_point):
                storage.copy(restore_point, live_name)
                storage.delete(restore_point)
            live_size = storage.size(live_name)

        with transaction.atomic():
            file_instance = get_user_file(user, file_id, for_update=True)
            file_instance.size = live_size
            file_instance.save(update_fields=['size', 'updated_at'])

    logger.info(
        'Version restored: file ID=%d v%d (current stays v%d)',
        file_id,
        version.version,
        file_instance.current_version,
    )
    return version


def open_version(
    user: _User,
    file_id: int,
    version_number: int,
) -> tuple[FileVersion, str, IO[bytes]]:
    """Open the stored content of a version for download.

    Pure read; never mutates state.

    Args:
        user: Owner of the file.
        file_id: File whose version is read.
        version_number: Version to read.

    Returns:
        Tuple of (version, suggested download name, open handle).

    Raises:
        NotFoundError: If the file or version does not exist.
        PhysicalIOError: If the content cannot be opened.
    """
    version = get_version(user, file_id, version_number)
    download_name = version_download_name(version.file.name, version.version)
    with physical_step('Failed to read version'):
        handle = get_storage().open(version.content.name, 'rb')
    return version, download_name, handle


def _discard_archive(archive_name: str) -> None:
    try:
        get_storage().delete(archive_name)
    except OSError as error:
        raise CompensationError() from error


def _restore_live_from_archive(live_name: str, archive_name: str) -> None:
    storage = get_storage()
    try:
        storage.copy(archive_name, live_name)
        storage.delete(archive_name)
    except OSError as error:
        logger.exception('Failed to restore live content: %s', live_name)
        raise CompensationError() from error


def _drop_restore_point(restore_point: str) -> None:
    # The new version is committed; a leftover copy only wastes space
    try:
        get_storage().delete(restore_point)
    except OSError:
        logger.exception('Failed to remove restore point: %s', restore_point)
