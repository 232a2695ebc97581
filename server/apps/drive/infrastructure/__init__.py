"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Local filesystem storage backend (the physical mirror)
- Logical/physical path resolution
- Metadata extraction (MIME type, checksum)
- In-process item locks

Keep infrastructure concerns separate from business logic.
"""
