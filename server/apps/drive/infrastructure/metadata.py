"""Metadata extraction utilities for files."""

import hashlib
import mimetypes
from typing import BinaryIO, Final

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Detect MIME type of an upload.

    Prefers the type declared by the client and falls back to a guess
    from the filename extension.

    Args:
        filename: Filename with extension.
        declared: Content type sent with the upload, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    if declared:
        return declared.split(';', 1)[0].strip().lower()
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate MD5 checksum of file.

    The digest is a content fingerprint for integrity display, not a
    security boundary.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded MD5 hash string.
    """
    md5_hash = hashlib.md5(usedforsecurity=False)

    # Reset file pointer to beginning
    file_obj.seek(0)

    # Read in chunks to handle large files
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        md5_hash.update(chunk)

    # Reset file pointer to beginning for subsequent operations
    file_obj.seek(0)

    return md5_hash.hexdigest()


def get_file_size(file_obj: BinaryIO) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object.

    Returns:
        File size in bytes.
    """
    if hasattr(file_obj, 'size'):
        return file_obj.size
    file_obj.seek(0)
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def mime_type_allowed(mime_type: str, allowed: list[str] | tuple[str, ...]) -> bool:
    """Check a MIME type against an allow list.

    Entries may be exact types ('application/pdf'), family wildcards
    ('image/*') or '*' for any type.

    Args:
        mime_type: Detected MIME type.
        allowed: Configured allow list.

    Returns:
        True if the type is accepted.
    """
    for entry in allowed:
        pattern = entry.strip().lower()
        if pattern == '*' or pattern == mime_type:
            return True
        if pattern.endswith('/*') and mime_type.startswith(pattern[:-1]):
            return True
    return False
