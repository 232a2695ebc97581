"""Django admin configuration for drive app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.drive.models import (
    Favorite,
    File,
    FileVersion,
    Folder,
    RecentAccess,
)


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin[Folder]):
    """Admin interface for Folder model.

    Paths are read-only: renaming through the admin would skip the
    physical directory move.
    """

    list_display = [
        'path',
        'user',
        'icon_type',
        'created_at',
    ]

    list_filter = [
        'user',
        'created_at',
    ]

    search_fields = [
        'name',
        'path',
    ]

    readonly_fields = [
        'name',
        'parent',
        'path',
        'created_at',
        'updated_at',
    ]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Folder]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user', 'parent')


class FileVersionInline(admin.TabularInline):  # type: ignore[type-arg]
    """Read-only version history shown on the file page."""

    model = FileVersion
    extra = 0
    can_delete = False
    fields = ['version', 'size', 'checksum', 'comment', 'created_at']
    readonly_fields = fields


@admin.register(File)
class FileAdmin(admin.ModelAdmin[File]):
    """Admin interface for File model."""

    list_display = [
        'name',
        'user',
        'folder',
        'size_display',
        'mime_type',
        'versioning_enabled',
        'current_version',
        'created_at',
    ]

    list_filter = [
        'mime_type',
        'versioning_enabled',
        'created_at',
        'user',
    ]

    search_fields = [
        'name',
        'original_name',
        'file',  # Searches file.name field
    ]

    readonly_fields = [
        'file',
        'size',
        'mime_type',
        'current_version',
        'versioning_enabled',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('File Information', {
            'fields': ('name', 'original_name', 'user', 'folder', 'file'),
        }),
        ('Metadata', {
            'fields': ('size', 'mime_type'),
        }),
        ('Versioning', {
            'fields': ('versioning_enabled', 'current_version'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    inlines = [FileVersionInline]

    def size_display(self, obj: File) -> str:
        """Display file size in human-readable format.

        Args:
            obj: File instance.

        Returns:
            Formatted size string.
        """
        return _format_bytes(obj.size)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[File]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user', 'folder')


@admin.register(Favorite)
class FavoriteAdmin(admin.ModelAdmin[Favorite]):
    """Admin interface for Favorite model."""

    list_display = ['user', 'item_type', 'item_id', 'created_at']
    list_filter = ['item_type', 'user']
    readonly_fields = ['created_at']


@admin.register(RecentAccess)
class RecentAccessAdmin(admin.ModelAdmin[RecentAccess]):
    """Admin interface for RecentAccess model."""

    list_display = ['user', 'item_type', 'item_id', 'accessed_at']
    list_filter = ['item_type', 'user']
    readonly_fields = ['accessed_at', 'created_at']
