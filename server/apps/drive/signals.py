"""Signal handlers for drive app."""

import logging

from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.drive.models import (
    Favorite,
    File,
    Folder,
    ItemType,
    RecentAccess,
)

logger = logging.getLogger(__name__)


def _forget_item(item_type: str, item_id: int) -> None:
    favorites, _ = Favorite.objects.filter(
        item_type=item_type,
        item_id=item_id,
    ).delete()
    accesses, _ = RecentAccess.objects.filter(
        item_type=item_type,
        item_id=item_id,
    ).delete()
    if favorites or accesses:
        logger.info(
            'Removed references to deleted %s %d: %d favorites, %d recent',
            item_type,
            item_id,
            favorites,
            accesses,
        )


@receiver(post_delete, sender=File)
def forget_deleted_file(
    sender: type[File],
    instance: File,
    **kwargs: object,
) -> None:
    """Drop favorites and recent access rows of a deleted file.

    Favorites and recent access reference items by type and id rather
    than a foreign key, so the database cascade does not reach them.
    Runs for rows deleted by a folder cascade as well.

    Args:
        sender: The File model class.
        instance: The File instance being deleted.
        **kwargs: Additional signal arguments.
    """
    _forget_item(ItemType.FILE, instance.id)


@receiver(post_delete, sender=Folder)
def forget_deleted_folder(
    sender: type[Folder],
    instance: Folder,
    **kwargs: object,
) -> None:
    """Drop favorites and recent access rows of a deleted folder.

    Args:
        sender: The Folder model class.
        instance: The Folder instance being deleted.
        **kwargs: Additional signal arguments.
    """
    _forget_item(ItemType.FOLDER, instance.id)
