"""Built-in extensions.

Registration order is the order the game page loads their scripts in.
"""

from dol_server.extension import ExtensionRegistry
from dol_server.extensions import autosync, extracss, reminder


def default_registry() -> ExtensionRegistry:
    registry = ExtensionRegistry()
    registry.register(autosync.extension_info)
    registry.register(extracss.extension_info)
    registry.register(reminder.extension_info)
    return registry
