"""Drive engine settings."""

from decouple import Csv

from server.settings.components import config

# Upload policy
DRIVE_MAX_UPLOAD_SIZE = config('MAX_FILE_SIZE', cast=int, default=104857600)
DRIVE_ALLOWED_MIME_TYPES = config('ALLOWED_FILE_TYPES', cast=Csv(), default='*')

# Listing limits
DRIVE_RECENT_LIMIT = config('DRIVE_RECENT_LIMIT', cast=int, default=20)
DRIVE_SEARCH_LIMIT = config('DRIVE_SEARCH_LIMIT', cast=int, default=25)
