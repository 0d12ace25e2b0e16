import logging
import os
import posixpath

from flask import Response, request
from werkzeug.http import generate_etag

from dol_server.errors import FatalLockError

logger = logging.getLogger(__name__)

# sysexits.h: internal software error
EX_SOFTWARE = 70


def bytes_view(mimetype: str, data: bytes):
    """Build a view that serves ``data`` as a static file with a content ETag."""
    etag = generate_etag(data)

    def view():
        response = Response(data, mimetype=mimetype)
        response.headers['Cache-Control'] = 'no-cache'
        response.set_etag(etag)
        return response.make_conditional(request)

    return view


def clean_path(path: str) -> str:
    """Collapse duplicate slashes and resolve dot segments, keeping a trailing slash."""
    if not path:
        return '/'
    cleaned = '/' + posixpath.normpath(path).lstrip('/')
    if path.endswith('/') and cleaned != '/':
        cleaned += '/'
    return cleaned


class CleanPathMiddleware:
    """WSGI middleware normalizing request paths that land under ``prefix``."""

    def __init__(self, wsgi_app, prefix: str = '/x'):
        self.wsgi_app = wsgi_app
        self.prefix = prefix.rstrip('/')

    def __call__(self, environ, start_response):
        path = environ.get('PATH_INFO', '')
        cleaned = clean_path(path)
        if cleaned == self.prefix or cleaned.startswith(self.prefix + '/'):
            environ['PATH_INFO'] = cleaned
        return self.wsgi_app(environ, start_response)


class FatalErrorGuard:
    """Terminate the process when a request hits a ``FatalLockError``."""

    def __init__(self, wsgi_app, exit_code: int = EX_SOFTWARE):
        self.wsgi_app = wsgi_app
        self.exit_code = exit_code

    def __call__(self, environ, start_response):
        try:
            return self.wsgi_app(environ, start_response)
        except FatalLockError as exc:
            logger.critical(f"[fatal] {exc}; terminating")
            logging.shutdown()
            os._exit(self.exit_code)
