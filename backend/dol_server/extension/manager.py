"""Extensions manager: owns the configured extensions for the process lifetime.

The manager creates only the extensions that have a config entry, starts and
stops them concurrently, mounts their blueprints under ``/x/<id>`` and collects
the scripts the game page has to load.
"""

import logging
import posixpath
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from flask import Blueprint, Flask, g, jsonify

from dol_server.errors import ExtensionError
from dol_server.extension.contract import Extension, ExtensionInfo, ExtensionRegistry
from dol_server.extension.scope import RequestScope
from dol_server.httputil import CleanPathMiddleware

logger = logging.getLogger(__name__)

MOUNT_ROOT = '/x'


@dataclass(frozen=True)
class ManagedExtension:
    id: str
    extension: Extension
    blueprint: Optional[Blueprint]
    js_paths: Tuple[str, ...]

    @property
    def mount_point(self) -> str:
        return posixpath.join(MOUNT_ROOT, self.id)

    @classmethod
    def wrap(cls, extension_id: str, extension: Extension) -> 'ManagedExtension':
        blueprint = getattr(extension, 'blueprint', None)
        js_paths = tuple(getattr(extension, 'js_paths', ()) or ())
        if js_paths and blueprint is None:
            raise ExtensionError(f'extension "{extension_id}" declares scripts but has no blueprint')
        return cls(extension_id, extension, blueprint, js_paths)


class ExtensionsManager:
    def __init__(self, configs: Mapping[str, Any], registry: ExtensionRegistry):
        self._extensions = self._create_all(configs, registry)

    @classmethod
    def from_extensions(cls, configs: Mapping[str, Any], infos: Iterable[ExtensionInfo]) -> 'ExtensionsManager':
        return cls(configs, ExtensionRegistry(infos))

    @staticmethod
    def _create_all(configs: Mapping[str, Any], infos: Iterable[ExtensionInfo]) -> List[ManagedExtension]:
        first_error: Optional[ExtensionError] = None
        created: List[ManagedExtension] = []

        for info in infos:
            if info.id not in configs:
                logger.debug(f"[extension-skip] extension={info.id} no config provided")
                continue

            try:
                extension = info.new(configs[info.id])
            except Exception as exc:
                if first_error is None:
                    first_error = ExtensionError(f'failed to create extension "{info.id}": {exc}')
                    first_error.__cause__ = exc
                continue

            try:
                created.append(ManagedExtension.wrap(info.id, extension))
            except ExtensionError as exc:
                # Constructed but unusable: it still gets its stop call
                try:
                    extension.stop()
                except Exception as stop_exc:
                    logger.warning(f"[extension-unwind] extension={info.id} stop failed: {stop_exc}")
                if first_error is None:
                    first_error = ExtensionError(f'failed to create extension "{info.id}": {exc}')
                    first_error.__cause__ = exc
                continue

            logger.debug(f"[extension-new] extension={info.id}")

        if first_error is not None:
            for ext in created:
                try:
                    ext.extension.stop()
                except Exception as exc:
                    logger.warning(f"[extension-unwind] extension={ext.id} stop failed: {exc}")
            raise first_error

        return created

    @property
    def extension_ids(self) -> List[str]:
        return [ext.id for ext in self._extensions]

    def get(self, extension_id: str) -> Optional[Extension]:
        for ext in self._extensions:
            if ext.id == extension_id:
                return ext.extension
        return None

    def _fan_out(self, verb: str, call) -> List[Tuple[str, BaseException]]:
        if not self._extensions:
            return []

        errors: List[Tuple[str, BaseException]] = []
        with ThreadPoolExecutor(max_workers=len(self._extensions), thread_name_prefix=f'extension-{verb}') as pool:
            futures = {pool.submit(call, ext): ext for ext in self._extensions}
            for future in as_completed(futures):
                exc = future.exception()
                if exc is not None:
                    errors.append((futures[future].id, exc))
        return errors

    @staticmethod
    def _raise_first(verb: str, errors: Sequence[Tuple[str, BaseException]]) -> None:
        if not errors:
            return
        extension_id, cause = errors[0]
        if not isinstance(cause, Exception):
            raise cause
        raise ExtensionError(f'failed to {verb} extension "{extension_id}": {cause}') from cause

    def start(self, stop_event: Optional[threading.Event] = None) -> None:
        """Start every extension concurrently and wait for all of them.

        ``stop_event`` is shared by all extensions. It is set as soon as one
        of them fails so the others can bail out; the first failure is raised.
        """
        if stop_event is None:
            stop_event = threading.Event()

        def start_one(ext: ManagedExtension) -> None:
            try:
                ext.extension.start(stop_event)
            except BaseException:
                stop_event.set()
                raise
            logger.debug(f"[extension-start] extension={ext.id}")

        self._raise_first('start', self._fan_out('start', start_one))

    def stop(self) -> None:
        """Stop every extension concurrently; raises the first failure after all were tried."""
        self._raise_first('stop', self._fan_out('stop', lambda ext: ext.extension.stop()))

    def bind_router(self, app: Flask) -> None:
        for ext in self._extensions:
            if ext.blueprint is None:
                continue

            mount = Blueprint(f'x_{ext.id}', __name__)
            scope = RequestScope.for_extension(ext.id)

            def install_scope(scope=scope):
                g.extension_scope = scope

            mount.before_request(install_scope)
            mount.register_blueprint(ext.blueprint)
            app.register_blueprint(mount, url_prefix=ext.mount_point)

        ids = self.extension_ids
        app.add_url_rule(MOUNT_ROOT, 'extension_ids', lambda: jsonify(ids), methods=['GET'])
        app.wsgi_app = CleanPathMiddleware(app.wsgi_app, MOUNT_ROOT)

    def js_paths(self) -> List[str]:
        paths: List[str] = []
        for ext in self._extensions:
            for rel in ext.js_paths:
                paths.append(posixpath.join(ext.mount_point, rel.lstrip('/')))
        return paths
