import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence

from flask import Blueprint


class Extension:
    """Lifecycle of an optional unit of server behavior.

    Capabilities are plain attributes read once by the manager:

    - ``blueprint``: set it to mount HTTP routes under ``/x/<id>``.
    - ``js_paths``: scripts (relative to the mount point) the game page should
      load as modules. Requires ``blueprint``.
    """

    blueprint: Optional[Blueprint] = None
    js_paths: Sequence[str] = ()

    def start(self, stop_event: threading.Event) -> None:
        """Start the extension. ``stop_event`` is set when it should give up."""

    def stop(self) -> None:
        """Stop the extension."""


@dataclass(frozen=True)
class ExtensionInfo:
    id: str
    new: Callable[[Any], Extension]


class ExtensionRegistry:
    """Ordered collection of known extensions.

    Order matters: it is the order extensions are created, started and have
    their scripts injected into the game page.
    """

    def __init__(self, infos=()):
        self._infos: List[ExtensionInfo] = []
        for info in infos:
            self.register(info)

    def register(self, info: ExtensionInfo) -> ExtensionInfo:
        if any(existing.id == info.id for existing in self._infos):
            raise ValueError(f'extension {info.id!r} is already registered')
        self._infos.append(info)
        return info

    def ids(self) -> List[str]:
        return [info.id for info in self._infos]

    def __iter__(self) -> Iterator[ExtensionInfo]:
        return iter(list(self._infos))

    def __len__(self) -> int:
        return len(self._infos)
