"""Business logic for recently accessed items."""

import logging
from typing import Any, Final

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from server.apps.drive.logic.common import (
    get_user_item,
    load_items,
    parse_item_type,
)
from server.apps.drive.models import File, Folder, RecentAccess

# User type for Django's dynamic user model
_User = Any

_DEFAULT_RECENT_LIMIT: Final = 20

logger = logging.getLogger(__name__)


def get_recent_limit() -> int:
    """Get number of recent items returned by listings.

    Returns:
        Limit from settings or default of 20.
    """
    return getattr(settings, 'DRIVE_RECENT_LIMIT', _DEFAULT_RECENT_LIMIT)


def track_access(user: _User, item_type: str, item_id: int) -> RecentAccess:
    """Record that the user opened a file or folder.

    Repeat access refreshes ``accessed_at`` of the existing row.

    Args:
        user: Owner of the item.
        item_type: 'file' or 'folder'.
        item_id: Item primary key.

    Returns:
        RecentAccess row.

    Raises:
        InvalidInputError: If the item type is unknown.
        NotFoundError: If the item does not exist.
    """
    kind = parse_item_type(item_type)
    get_user_item(user, kind, item_id)

    with transaction.atomic():
        access, created = RecentAccess.objects.select_for_update().update_or_create(
            user=user,
            item_type=kind,
            item_id=item_id,
            defaults={'accessed_at': timezone.now()},
        )

    logger.debug(
        'Access tracked: %s %d (user %s, new=%s)',
        kind,
        item_id,
        user.id,
        created,
    )
    return access


def list_recent(
    user: _User,
    limit: int | None = None,
) -> list[tuple[RecentAccess, File | Folder]]:
    """List the most recently accessed items, newest first.

    Rows whose item no longer exists are skipped, so fewer than ``limit``
    entries may be returned.

    Args:
        user: Owner of the items.
        limit: Maximum rows to consider, defaults to DRIVE_RECENT_LIMIT.

    Returns:
        List of (access, item) pairs.
    """
    accesses = list(
        RecentAccess.objects.filter(user=user).order_by('-accessed_at')[
            : limit or get_recent_limit()
        ],
    )
    items = load_items(user, accesses)
    return [
        (access, items[access.item_type, access.item_id])
        for access in accesses
        if (access.item_type, access.item_id) in items
    ]
