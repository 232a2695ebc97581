"""Name search over a user's files and folders.

Queries support ``*`` and ``?`` wildcards; ``*.ext`` searches files by
extension only. Without wildcards the query matches as a
case-insensitive substring.
"""

import dataclasses
import logging
import re
from collections import defaultdict
from typing import Any, Final

from django.conf import settings
from django.db.models import Q, QuerySet

from server.apps.drive.exceptions import InvalidInputError
from server.apps.drive.models import File, Folder

# User type for Django's dynamic user model
_User = Any

_DEFAULT_SEARCH_LIMIT: Final = 25
_EXTENSION_PATTERN: Final = re.compile(r'^\*\.([a-zA-Z0-9]+)$')

_DOCUMENT_TYPES: Final = (
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'text/plain',
    'text/csv',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
)
_ARCHIVE_TYPES: Final = (
    'application/zip',
    'application/x-rar-compressed',
    'application/x-7z-compressed',
    'application/gzip',
    'application/x-tar',
)

# Filters accepted by the ``file_type`` argument of ``search``
TYPE_FILTERS: Final = {
    'image': Q(mime_type__startswith='image/'),
    'document': Q(mime_type__in=_DOCUMENT_TYPES),
    'video': Q(mime_type__startswith='video/'),
    'audio': Q(mime_type__startswith='audio/'),
    'archive': Q(mime_type__in=_ARCHIVE_TYPES),
}

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class SearchResult:
    """Matching files and folders."""

    files: list[File]
    folders: list[Folder]

    @property
    def total(self) -> int:
        """Number of matches over both lists."""
        return len(self.files) + len(self.folders)


def get_search_limit() -> int:
    """Get maximum number of files (and of folders) per search.

    Returns:
        Limit from settings or default of 25.
    """
    return getattr(settings, 'DRIVE_SEARCH_LIMIT', _DEFAULT_SEARCH_LIMIT)


def wildcard_to_regex(query: str) -> str | None:
    """Translate a wildcard query into an anchored regular expression.

    Args:
        query: User query.

    Returns:
        Regex for ``__iregex`` lookups, or None if the query has no
        wildcards.
    """
    if '*' not in query and '?' not in query:
        return None
    parts = []
    for char in query:
        if char == '*':
            parts.append('.*')
        elif char == '?':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return '^{0}$'.format(''.join(parts))


def _name_filter(query: str) -> Q:
    pattern = wildcard_to_regex(query)
    if pattern is None:
        return Q(name__icontains=query)
    return Q(name__iregex=pattern)


def search(
    user: _User,
    query: str,
    file_type: str = '',
) -> SearchResult:
    """Search the user's files and folders by name.

    Args:
        user: Owner of the items.
        query: Substring, wildcard pattern or ``*.ext``.
        file_type: Optional category filter for files (see TYPE_FILTERS).

    Returns:
        SearchResult, each list capped at DRIVE_SEARCH_LIMIT.

    Raises:
        InvalidInputError: If the query is empty or the type unknown.
    """
    query = (query or '').strip()
    if not query:
        raise InvalidInputError('Search query is required')

    limit = get_search_limit()
    files: QuerySet[File] = File.objects.filter(user=user)

    extension_match = _EXTENSION_PATTERN.match(query)
    if extension_match:
        files = files.filter(
            name__iendswith=f'.{extension_match.group(1).lower()}',
        )
    else:
        files = files.filter(_name_filter(query))

    if file_type:
        try:
            files = files.filter(TYPE_FILTERS[file_type.lower()])
        except KeyError as error:
            raise InvalidInputError('Invalid file type') from error

    # Folders have no extensions
    folders: list[Folder] = []
    if not extension_match:
        folders = list(
            Folder.objects.filter(user=user).filter(_name_filter(query))[:limit],
        )

    result = SearchResult(files=list(files[:limit]), folders=folders)
    logger.debug(
        'Search %r by user %s: %d matches',
        query,
        user.id,
        result.total,
    )
    return result


def categorize_mime_type(mime_type: str) -> str:
    """Map a MIME type onto a display category.

    Args:
        mime_type: MIME type such as 'application/pdf'.

    Returns:
        Category: the MIME family, with common application types
        mapped to 'document' or 'archive'.
    """
    family = mime_type.split('/', 1)[0]
    if family != 'application':
        return family
    if 'pdf' in mime_type:
        return 'document'
    if any(marker in mime_type for marker in ('zip', 'rar', 'tar', 'gzip')):
        return 'archive'
    if any(
        marker in mime_type
        for marker in ('word', 'excel', 'powerpoint', 'spreadsheet')
    ):
        return 'document'
    return family


def get_file_type_categories(user: _User) -> dict[str, list[str]]:
    """Group the distinct MIME types of the user's files by category.

    Args:
        user: Owner of the files.

    Returns:
        Mapping of category to sorted MIME types.
    """
    mime_types = (
        File.objects.filter(user=user)
        .exclude(mime_type='')
        .values_list('mime_type', flat=True)
        .distinct()
        .order_by('mime_type')
    )
    categories: defaultdict[str, list[str]] = defaultdict(list)
    for mime_type in mime_types:
        categories[categorize_mime_type(mime_type)].append(mime_type)
    return dict(categories)
