"""Main entry point for `django` settings.

Settings are split into components and per-environment overrides with
`django-split-settings`. The environment is picked by ``DJANGO_ENV``.
"""

from os import environ

import django_stubs_ext
from split_settings.tools import include, optional

# Allows runtime subscripts like ``admin.ModelAdmin[Entry]``:
django_stubs_ext.monkeypatch()

environ.setdefault('DJANGO_ENV', 'development')
_ENV = environ['DJANGO_ENV']

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/drive.py',
    'components/webdav.py',
    # Select the right env:
    'environments/{0}.py'.format(_ENV),
    # Optionally override some settings:
    optional('environments/local.py'),
)

include(*_base_settings)
