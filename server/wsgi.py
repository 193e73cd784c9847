"""WSGI config for the admin and health endpoints.

The WebDAV surface runs as its own WSGI app, see
``server.apps.webdav.wsgi_app``.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'server.settings')

application = get_wsgi_application()
