"""Django app configuration for WebDAV app."""

from django.apps import AppConfig


class WebDAVConfig(AppConfig):
    """WebDAV access to the drive (no models of its own)."""

    name = 'server.apps.webdav'
    label = 'webdav'
    verbose_name = 'WebDAV access'
