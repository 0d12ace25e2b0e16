"""Autosync: keeps one game save in sync across every browser using this server.

Routes, mounted under ``/x/autosync``:

- ``GET /merge`` (also ``GET /save``): the stored save record.
- ``POST /merge``: merge a client record; ``409`` hands back a newer server
  record, ``?override=1`` overwrites unconditionally.
- ``GET /autosync.js``: the client script injected into the game page.
"""

from pathlib import Path
from typing import Any

from flask import Blueprint, jsonify, request

from dol_server.errors import ConfigError, SaveError
from dol_server.extension import Extension, ExtensionInfo, request_logger
from dol_server.extensions.autosync.store import SaveRecord, SaveStore, default_save_dir
from dol_server.httputil import bytes_view

ASSETS_DIR = Path(__file__).parent / 'assets'

DEFAULT_LOCK_TIMEOUT = 5.0
DEFAULT_LOCK_POLL_INTERVAL = 0.25


def _error(status: int, message: str):
    return jsonify({'result': 'error', 'data': {'error': message}}), status


def _positive_number(cfg: dict, key: str, default: float) -> float:
    value = cfg.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f'"{key}" must be a positive number')
    return float(value)


class AutosyncExtension(Extension):
    js_paths = ('autosync.js',)

    def __init__(self, store: SaveStore):
        self.store = store
        self.blueprint = Blueprint('autosync', __name__)
        self.blueprint.add_url_rule(
            '/autosync.js', 'script', bytes_view('application/javascript', (ASSETS_DIR / 'autosync.js').read_bytes())
        )
        self.blueprint.add_url_rule('/merge', 'get_merge', self.get_save, methods=['GET'])
        self.blueprint.add_url_rule('/save', 'get_save', self.get_save, methods=['GET'])
        self.blueprint.add_url_rule('/merge', 'post_merge', self.merge, methods=['POST'])

    def get_save(self):
        try:
            record = self.store.load()
        except SaveError as exc:
            request_logger().error(f"[save-read] failed: {exc}")
            return _error(500, f'reading server save data: {exc}')
        return jsonify(record.to_json())

    def merge(self):
        try:
            client = SaveRecord.from_json(request.get_json(force=True, silent=True))
        except ValueError as exc:
            return _error(400, f'reading client save data: {exc}')

        override = bool(request.args.get('override'))
        log = request_logger()
        try:
            outcome = self.store.merge(client, override=override)
        except SaveError as exc:
            log.error(f"[merge] failed client_date={client.date}: {exc}")
            return _error(500, f'merging save data: {exc}')

        if outcome.outdated:
            log.debug(f"[merge-outdated] server_date={outcome.server.date} client_date={client.date}")
            return jsonify({'result': 'outdated', 'data': outcome.server.to_json()}), 409

        log.debug(f"[merge-ok] client_date={client.date} changed={outcome.changed} override={override}")
        return jsonify({'result': 'ok', 'data': {'changed': outcome.changed}})


def new(cfg: Any) -> AutosyncExtension:
    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ConfigError('autosync config must be an object')

    save_path = cfg.get('save_path')
    if save_path is not None and not isinstance(save_path, str):
        raise ConfigError('"save_path" must be a string')

    try:
        directory = Path(save_path).expanduser() if save_path else default_save_dir()
        directory.mkdir(mode=0o700, parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f'creating save path: {exc}') from exc

    store = SaveStore(
        directory,
        lock_timeout=_positive_number(cfg, 'lock_timeout', DEFAULT_LOCK_TIMEOUT),
        lock_poll_interval=_positive_number(cfg, 'lock_poll_interval', DEFAULT_LOCK_POLL_INTERVAL),
    )
    return AutosyncExtension(store)


extension_info = ExtensionInfo(id='autosync', new=new)
