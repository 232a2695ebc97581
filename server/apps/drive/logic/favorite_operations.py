"""Business logic for favorites."""

import logging
from typing import Any

from django.db import IntegrityError, transaction

from server.apps.drive.exceptions import ConflictError, NotFoundError
from server.apps.drive.logic.common import (
    get_user_item,
    load_items,
    parse_item_type,
)
from server.apps.drive.models import Favorite, File, Folder

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def add_favorite(user: _User, item_type: str, item_id: int) -> Favorite:
    """Mark a file or folder as favorite.

    Args:
        user: Owner of the item.
        item_type: 'file' or 'folder'.
        item_id: Item primary key.

    Returns:
        Created Favorite instance.

    Raises:
        InvalidInputError: If the item type is unknown.
        NotFoundError: If the item does not exist.
        ConflictError: If the item is already a favorite.
    """
    kind = parse_item_type(item_type)
    get_user_item(user, kind, item_id)

    if Favorite.objects.filter(user=user, item_type=kind, item_id=item_id).exists():
        raise ConflictError('Item is already favorited')

    try:
        with transaction.atomic():
            favorite = Favorite.objects.create(
                user=user,
                item_type=kind,
                item_id=item_id,
            )
    except IntegrityError as error:
        # Lost a race with a concurrent add of the same item
        raise ConflictError('Item is already favorited') from error

    logger.info('Favorite added: %s %d (user %s)', kind, item_id, user.id)
    return favorite


def list_favorites(user: _User) -> list[tuple[Favorite, File | Folder]]:
    """List favorites, newest first, each with its item.

    Favorites whose item no longer exists are skipped.

    Args:
        user: Owner of the favorites.

    Returns:
        List of (favorite, item) pairs.
    """
    favorites = list(Favorite.objects.filter(user=user).order_by('-created_at'))
    items = load_items(user, favorites)
    return [
        (favorite, items[favorite.item_type, favorite.item_id])
        for favorite in favorites
        if (favorite.item_type, favorite.item_id) in items
    ]


def is_favorite(user: _User, item_type: str, item_id: int) -> Favorite | None:
    """Check whether an item is a favorite.

    Args:
        user: Owner of the item.
        item_type: 'file' or 'folder'.
        item_id: Item primary key.

    Returns:
        Favorite instance or None.

    Raises:
        InvalidInputError: If the item type is unknown.
    """
    kind = parse_item_type(item_type)
    return Favorite.objects.filter(
        user=user,
        item_type=kind,
        item_id=item_id,
    ).first()


def remove_favorite(user: _User, favorite_id: int) -> None:
    """Remove a favorite by its own id.

    Args:
        user: Owner of the favorite.
        favorite_id: Favorite primary key.

    Raises:
        NotFoundError: If no such favorite exists.
    """
    deleted, _ = Favorite.objects.filter(user=user, id=favorite_id).delete()
    if not deleted:
        raise NotFoundError('Favorite not found')
    logger.info('Favorite removed: ID=%d (user %s)', favorite_id, user.id)


def remove_favorite_by_item(user: _User, item_type: str, item_id: int) -> None:
    """Remove the favorite pointing at an item.

    Args:
        user: Owner of the favorite.
        item_type: 'file' or 'folder'.
        item_id: Item primary key.

    Raises:
        InvalidInputError: If the item type is unknown.
        NotFoundError: If the item is not a favorite.
    """
    kind = parse_item_type(item_type)
    deleted, _ = Favorite.objects.filter(
        user=user,
        item_type=kind,
        item_id=item_id,
    ).delete()
    if not deleted:
        raise NotFoundError('Favorite not found')
    logger.info('Favorite removed: %s %d (user %s)', kind, item_id, user.id)
