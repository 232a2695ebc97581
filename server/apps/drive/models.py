"""Database models for drive app."""

from pathlib import PurePosixPath
from typing import Final, final, override

from django.conf import settings
from django.db import models

from server.apps.drive.infrastructure.paths import PathResolver

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_PATH_MAX_LENGTH: Final = 1024
_STORAGE_NAME_MAX_LENGTH: Final = 512
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 32  # MD5 hex length
_ICON_MAX_LENGTH: Final = 50

# Synthetic id used by clients to address the root of a user's tree
ROOT_FOLDER_ID: Final = 0


class ItemType(models.TextChoices):
    """Kind of item referenced by favorites and recent access rows."""

    FILE = 'file', 'File'
    FOLDER = 'folder', 'Folder'


@final
class Folder(models.Model):
    """Folder in a user's hierarchy.

    Each folder has a physical directory at
    ``<ROOT_DIRECTORY>/root/{user_id}/{path}``. The ``path`` field is the
    slash-joined chain of ancestor names and is recomputed for the whole
    subtree whenever an ancestor is renamed or moved.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folders',
        db_index=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    # Null parent means the folder sits in the user's root
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='subfolders',
        null=True,
        blank=True,
    )

    path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        help_text='Logical path: ancestor names joined with /',
    )

    icon_type = models.CharField(
        max_length=_ICON_MAX_LENGTH,
        default='folder',
    )

    icon_color = models.CharField(
        max_length=_ICON_MAX_LENGTH,
        default='text-blue-500',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering = ['name']

        indexes = [
            models.Index(
                fields=['user', 'parent'],
                name='folders_user_parent_idx',
            ),
        ]

        constraints = [
            # Sibling folders share one physical parent directory
            models.UniqueConstraint(
                fields=['user', 'parent', 'name'],
                name='folders_sibling_name_unique',
            ),
            # NULL parents never collide in a plain unique index
            models.UniqueConstraint(
                fields=['user', 'name'],
                condition=models.Q(parent__isnull=True),
                name='folders_root_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.path}'

    def storage_name(self) -> str:
        """Get the directory name relative to the mirror root.

        Returns:
            Storage name such as ``'7/Docs/2024'``.

        Raises:
            InvalidInputError: If a path component is not a valid name.
        """
        return PathResolver(self.user_id).to_storage_path(self.path)


@final
class File(models.Model):
    """File owned by a user.

    Files are stored flat next to the user's folder tree, named
    ``{user_id}/{user_id}_{original_name}``; their placement in the
    hierarchy is only recorded by ``folder``.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='drive_files',
        db_index=True,
    )

    # Display name, may be changed by rename
    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    original_name = models.CharField(max_length=_NAME_MAX_LENGTH)

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='files',
        null=True,
        blank=True,
    )

    # Live path of the file content in the physical mirror
    file = models.FileField(
        upload_to='',
        max_length=_STORAGE_NAME_MAX_LENGTH,
        help_text='Path in storage: {user_id}/{user_id}_{name}',
    )

    size = models.BigIntegerField(help_text='File size in bytes')

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    current_version = models.PositiveIntegerField(default=1)

    versioning_enabled = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering = ['name']

        indexes = [
            # Optimize folder listing queries
            models.Index(
                fields=['user', 'folder'],
                name='files_user_folder_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.name}'

    def get_extension(self) -> str:
        """Extract extension of the display name.

        Returns:
            Extension without dot (lowercase).
        """
        return PurePosixPath(self.name).suffix.lstrip('.').lower()


@final
class FileVersion(models.Model):
    """Immutable checksummed snapshot of a file's content.

    Exactly one version of a versioned file points at the live path: the
    one whose number equals ``File.current_version``. Older versions point
    at archive copies named ``{stem}_v{version}{suffix}``.
    """

    file = models.ForeignKey(
        File,
        on_delete=models.CASCADE,
        related_name='versions',
    )

    version = models.PositiveIntegerField()

    content = models.FileField(
        upload_to='',
        max_length=_STORAGE_NAME_MAX_LENGTH,
        help_text='Live path or archive path of this version',
    )

    size = models.BigIntegerField()

    checksum = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        help_text='MD5 hex digest for integrity display',
    )

    comment = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='created_versions',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File Version'  # type: ignore[mutable-override]
        verbose_name_plural = 'File Versions'  # type: ignore[mutable-override]
        ordering = ['-version']

        constraints = [
            models.UniqueConstraint(
                fields=['file', 'version'],
                name='file_versions_number_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.file_id}:v{self.version}'


@final
class Favorite(models.Model):
    """Item marked as favorite by its owner."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='favorites',
    )

    item_type = models.CharField(
        max_length=10,
        choices=ItemType.choices,
    )

    item_id = models.PositiveBigIntegerField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Favorite'  # type: ignore[mutable-override]
        verbose_name_plural = 'Favorites'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        constraints = [
            models.UniqueConstraint(
                fields=['user', 'item_type', 'item_id'],
                name='favorites_user_item_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.item_type}:{self.item_id}'


@final
class RecentAccess(models.Model):
    """Last time a user opened a file or folder.

    Repeat access updates ``accessed_at``; uniqueness of
    ``(user, item_type, item_id)`` is kept by the logic layer.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='recent_accesses',
    )

    item_type = models.CharField(
        max_length=10,
        choices=ItemType.choices,
    )

    item_id = models.PositiveBigIntegerField()

    accessed_at = models.DateTimeField(db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Recent Access'  # type: ignore[mutable-override]
        verbose_name_plural = 'Recent Accesses'  # type: ignore[mutable-override]
        ordering = ['-accessed_at']

        indexes = [
            models.Index(
                fields=['user', '-accessed_at'],
                name='recent_user_accessed_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.item_type}:{self.item_id}'
