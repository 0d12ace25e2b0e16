"""Extension framework: contract, registry, request scope and manager."""

from dol_server.errors import ConfigError, ExtensionError, FatalLockError, SaveError, SaveLockTimeout
from dol_server.extension.contract import Extension, ExtensionInfo, ExtensionRegistry
from dol_server.extension.manager import ExtensionsManager
from dol_server.extension.scope import RequestScope, current_scope, request_logger

__all__ = [
    'ConfigError',
    'Extension',
    'ExtensionError',
    'ExtensionInfo',
    'ExtensionRegistry',
    'ExtensionsManager',
    'FatalLockError',
    'RequestScope',
    'SaveError',
    'SaveLockTimeout',
    'current_scope',
    'request_logger',
]
