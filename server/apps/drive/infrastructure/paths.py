"""Path translation between logical folder paths and storage paths.

Logical paths are what users see: Docs/2024.
Storage paths are relative to the mirror root and include the user ID
prefix: {user_id}/Docs/2024. The mirror root itself is
<ROOT_DIRECTORY>/root.
"""

from pathlib import PurePosixPath
from typing import Final, final

from server.apps.drive.exceptions import InvalidInputError

# Character used to split logical and storage paths
_PATH_SEPARATOR: Final = '/'

# Characters never accepted inside a single name component
_FORBIDDEN_CHARACTERS: Final = ('/', '\\', '\x00')

# Directory holding archived version copies inside each user root
VERSIONS_DIRECTORY: Final = '.versions'

# Names that resolve outside their parent or clash with the archive directory
_RESERVED_NAMES: Final = frozenset(('.', '..', VERSIONS_DIRECTORY))

_NAME_MAX_LENGTH: Final = 255

# Infix used for archived version copies
_VERSION_INFIX: Final = '_v'

# Suffix of the copy kept while a restore has replaced the live content
_RESTORE_POINT_SUFFIX: Final = '_restore'


def validate_name(name: object) -> str:
    """Validate a single folder or file name component.

    Rejects names that would traverse out of the parent directory when
    used to build a physical path.

    Args:
        name: Proposed name.

    Returns:
        The name stripped of surrounding whitespace.

    Raises:
        InvalidInputError: If the name is not a string, is empty, reserved
            or contains a path separator.
    """
    if name is None:
        name = ''
    if not isinstance(name, str):
        raise InvalidInputError('Name must be a string')
    cleaned = name.strip()
    if not cleaned:
        raise InvalidInputError('Name is required')
    if cleaned in _RESERVED_NAMES:
        raise InvalidInputError(f'Name "{cleaned}" is reserved')
    if any(char in cleaned for char in _FORBIDDEN_CHARACTERS):
        raise InvalidInputError('Name must not contain path separators')
    if len(cleaned) > _NAME_MAX_LENGTH:
        raise InvalidInputError(
            f'Name must be at most {_NAME_MAX_LENGTH} characters',
        )
    return cleaned


def sanitize_upload_name(filename: str) -> str:
    """Reduce a client supplied filename to a safe base name.

    Browsers may send full client paths; only the last component is kept.

    Args:
        filename: Name from the upload.

    Returns:
        Validated base name.

    Raises:
        InvalidInputError: If nothing usable remains.
    """
    base_name = (filename or '').replace('\\', _PATH_SEPARATOR)
    base_name = base_name.rsplit(_PATH_SEPARATOR, 1)[-1]
    return validate_name(base_name)


def join_logical(parent_path: str | None, name: str) -> str:
    """Join a parent logical path and a child name.

    Args:
        parent_path: Logical path of the parent, None or '' for root.
        name: Child name.

    Returns:
        Joined logical path (e.g., Docs/2024).
    """
    parent_normalized = (parent_path or '').strip(_PATH_SEPARATOR)
    if not parent_normalized:
        return name
    return parent_normalized + _PATH_SEPARATOR + name


def _versions_sibling(storage_name: str, tail: str) -> str:
    path = PurePosixPath(storage_name)
    return str(path.parent / VERSIONS_DIRECTORY / f'{path.stem}{tail}{path.suffix}')


def version_archive_name(storage_name: str, version: int) -> str:
    """Build the archive name for a version of a stored file.

    Archives live in the user's ``.versions`` directory, which no upload
    or folder can be named, so an archive never replaces live content.

    Example: '7/7_report.pdf', 3 -> '7/.versions/7_report_v3.pdf'

    Args:
        storage_name: Live storage path of the file.
        version: Version number being archived.

    Returns:
        Storage path for the archived copy.
    """
    return _versions_sibling(storage_name, f'{_VERSION_INFIX}{version}')


def restore_point_name(storage_name: str, version: int) -> str:
    """Build the name of the copy kept while a restore replaces live content.

    Example: '7/7_report.pdf', 3 -> '7/.versions/7_report_v3_restore.pdf'

    Args:
        storage_name: Live storage path of the file.
        version: Current version number whose bytes are kept.

    Returns:
        Storage path for the restore point.
    """
    return _versions_sibling(
        storage_name,
        f'{_VERSION_INFIX}{version}{_RESTORE_POINT_SUFFIX}',
    )


def version_download_name(display_name: str, version: int) -> str:
    """Build the attachment name offered when downloading a version.

    Example: 'report.pdf', 2 -> 'report_v2.pdf'

    Args:
        display_name: File display name.
        version: Version number.

    Returns:
        Suggested download filename.
    """
    path = PurePosixPath(display_name)
    return f'{path.stem}{_VERSION_INFIX}{version}{path.suffix}'


@final
class PathResolver:
    """Translates between logical paths and storage paths for one user.

    Logical paths are what users see: Docs/2024
    Storage paths include user ID: {user_id}/Docs/2024

    Files do not follow their folder: they live flat in the user's root
    directory as {user_id}/{user_id}_{name}.
    """

    def __init__(self, user_id: int) -> None:
        """Initialize path resolver with user ID.

        Args:
            user_id: ID of the authenticated user.
        """
        self._user_id = user_id

    def user_root(self) -> str:
        """Get the storage path of the user's root directory.

        Returns:
            Storage path (e.g., 7).
        """
        return str(self._user_id)

    def to_storage_path(self, logical_path: str) -> str:
        """Convert logical folder path to storage path.

        Args:
            logical_path: Folder path (e.g., Docs/2024).

        Returns:
            Storage path with user ID prefix (e.g., 7/Docs/2024).

        Raises:
            InvalidInputError: If any component is not a valid name.
        """
        normalized = logical_path.strip(_PATH_SEPARATOR)

        # Handle root path
        if not normalized:
            return self.user_root()

        for component in normalized.split(_PATH_SEPARATOR):
            validate_name(component)

        return f'{self._user_id}/{normalized}'

    def file_storage_name(self, filename: str) -> str:
        """Get the flat storage path for an uploaded file.

        Args:
            filename: Original (sanitized) file name.

        Returns:
            Storage path (e.g., 7/7_report.pdf).
        """
        return f'{self._user_id}/{self._user_id}_{validate_name(filename)}'
