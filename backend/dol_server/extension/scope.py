import logging
from dataclasses import dataclass
from typing import Optional, Union

from flask import g, has_app_context

default_logger = logging.getLogger('dol_server')


class ExtensionLoggerAdapter(logging.LoggerAdapter):
    """Tags every message with the owning extension's id."""

    def process(self, msg, kwargs):
        return f"[x/{self.extra['extension']}] {msg}", kwargs


@dataclass(frozen=True)
class RequestScope:
    """Metadata the manager attaches to each request routed to an extension."""

    extension_id: str
    logger: ExtensionLoggerAdapter

    @classmethod
    def for_extension(cls, extension_id: str) -> 'RequestScope':
        logger = logging.getLogger(f'dol_server.x.{extension_id}')
        return cls(extension_id, ExtensionLoggerAdapter(logger, {'extension': extension_id}))


def current_scope() -> Optional[RequestScope]:
    if not has_app_context():
        return None
    return g.get('extension_scope')


def request_logger() -> Union[logging.Logger, logging.LoggerAdapter]:
    """Return the current extension's logger, or the default logger outside one."""
    scope = current_scope()
    if scope is None:
        return default_logger
    return scope.logger
