"""Django management command to run the WebDAV server."""

import logging
from typing import Any, final, override

from cheroot.wsgi import Server as WSGIServer
from django.conf import settings
from django.core.management.base import BaseCommand

from server.apps.webdav.wsgi_app import create_webdav_app

logger = logging.getLogger(__name__)

_SERVER_NAME = 'CloudDrive-WebDAV'


@final
class Command(BaseCommand):
    """Serve the drive over WebDAV using the cheroot WSGI server."""

    help = 'Run the WebDAV server for native file browser access'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--host',
            type=str,
            default=None,
            help='Host to bind to (default: WEBDAV_HOST)',
        )
        parser.add_argument(
            '--port',
            type=int,
            default=None,
            help='Port to bind to (default: WEBDAV_PORT)',
        )
        parser.add_argument(
            '--verbose',
            type=int,
            default=1,
            choices=range(6),
            help='WsgiDAV verbosity level 0-5 (default: 1)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Start the server and block until interrupted.

        Args:
            args: Positional arguments.
            options: Keyword arguments from command line.
        """
        host = options['host'] or settings.WEBDAV_HOST
        port = options['port'] or settings.WEBDAV_PORT

        server = self.build_server(host, port, options['verbose'])
        self.stdout.write(
            self.style.SUCCESS(f'Starting WebDAV server on {host}:{port}'),
        )

        try:
            logger.info('WebDAV server starting on %s:%d', host, port)
            server.start()
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('\nShutting down...'))
        finally:
            server.stop()
            self.stdout.write(self.style.SUCCESS('WebDAV server stopped'))

    def build_server(self, host: str, port: int, verbose: int) -> WSGIServer:
        """Create the cheroot server around the WebDAV application.

        Args:
            host: Bind address.
            port: Bind port.
            verbose: WsgiDAV verbosity level.

        Returns:
            Configured, not yet started server.
        """
        server = WSGIServer(
            bind_addr=(host, port),
            wsgi_app=create_webdav_app(verbose=verbose),
        )
        server.server_name = _SERVER_NAME
        return server
