"""Development HTTP server for the generated site."""

import functools
import http.server
import logging

logger = logging.getLogger('InkSite.Server')

DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 5001


class QuietHandler(http.server.SimpleHTTPRequestHandler):
    """Static file handler that logs requests at debug level."""

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


def create_server(directory, host=DEFAULT_HOST, port=DEFAULT_PORT):
    handler = functools.partial(QuietHandler, directory=directory)
    return http.server.ThreadingHTTPServer((host, port), handler)


def serve(directory, host=DEFAULT_HOST, port=DEFAULT_PORT):
    """Serve *directory* until interrupted. This call blocks."""
    with create_server(directory, host, port) as httpd:
        logger.info(f"Serving site at http://localhost:{port}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Server stopped.")
