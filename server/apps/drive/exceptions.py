"""Exceptions for drive app.

Every error raised by the logic layer derives from ``DriveError`` and
carries an HTTP-status-equivalent classification. Messages are safe to
show to users: they never contain physical paths.
"""

from typing import ClassVar


class DriveError(Exception):
    """Base class for hierarchy and version engine failures."""

    status_code: ClassVar[int] = 500
    default_message: ClassVar[str] = 'Internal storage error'

    def __init__(self, message: str | None = None) -> None:
        """Initialize DriveError.

        Args:
            message: User-visible message. Falls back to the class default.
        """
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DriveError):
    """Referenced folder, file or version is absent or not owned by caller."""

    status_code = 404
    default_message = 'Item not found'


class ConflictError(DriveError):
    """Item already exists (duplicate favorite, sibling name clash)."""

    status_code = 409
    default_message = 'Item already exists'


class InvalidInputError(DriveError):
    """Malformed id, missing field or forbidden name."""

    status_code = 400
    default_message = 'Invalid input'


class UploadRejectedError(InvalidInputError):
    """Upload violates the configured size or MIME type policy."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        """Initialize UploadRejectedError.

        Args:
            message: User-visible reason.
            status_code: 413 for oversized uploads, 400 otherwise.
        """
        super().__init__(message)
        self.status_code = status_code  # type: ignore[misc]


class PhysicalIOError(DriveError):
    """Directory or file create/rename/remove/copy failed on disk."""

    default_message = 'Storage operation failed'


class ChecksumError(PhysicalIOError):
    """File could not be read to compute its checksum."""

    default_message = 'Failed to calculate file checksum'


class CompensationError(PhysicalIOError):
    """A rollback after a failed step did not complete.

    The physical mirror and the database may have diverged; the error is
    surfaced instead of being swallowed.
    """

    default_message = 'Storage is inconsistent after a failed operation'


class OperationCancelledError(DriveError):
    """Caller cancelled a long running operation."""

    status_code = 499
    default_message = 'Operation cancelled'
