"""Business logic layer for drive app.

This package contains all business logic for the drive:
- Folder hierarchy (create, rename, move, delete, listing)
- File upload, download, rename, delete
- Version history (enable, new version, restore, disable)
- Bulk delete/move and zip archives
- Favorites, recent access and search

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
