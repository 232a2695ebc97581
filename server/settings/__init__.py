"""
Main settings file, assembled with django-split-settings.

Each component lives in ``server/settings/components/``; values come from
the environment or ``config/.env`` through python-decouple.
"""

import django_stubs_ext
from split_settings.tools import include

# Monkeypatching Django, so stubs will work for all generics
django_stubs_ext.monkeypatch()

include(
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/drive.py',
)
