"""Django storage configuration for the physical mirror.

User folders and files live on the local filesystem under
``<DRIVE_ROOT_DIRECTORY>/root``, one subdirectory per user id.
"""

from typing import Any, Final

from server.settings.components import BASE_DIR, config

# Root of all drive content; the mirror itself is its ``root`` child
DRIVE_ROOT_DIRECTORY = config(
    'ROOT_DIRECTORY',
    default=str(BASE_DIR.joinpath('storage', 'files')),
)

# Storage configuration dictionary
# Uses the mirror for user files, local storage for static files
STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.drive.infrastructure.storage.MirrorStorage',
        'OPTIONS': {
            'location': f'{DRIVE_ROOT_DIRECTORY}/root',
        },
    },
    'staticfiles': {
        # Keep static files separate from user files
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
