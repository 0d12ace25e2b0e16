import json
import os
from pathlib import Path

from dol_server.errors import ConfigError

DEFAULT_CORS_ORIGINS = 'http://localhost:19384,http://127.0.0.1:19384'


class Config:
    # Directory holding the game's single HTML file and its assets
    GAME_PATH = os.environ.get('DOL_GAME_PATH') or '.'
    LISTEN_ADDR = os.environ.get('DOL_LISTEN_ADDR') or ':19384'
    # Extension id -> extension config; a missing id leaves that extension off
    EXTENSIONS: dict = {}
    # Origins allowed to call the /x extension routes from another page
    CORS_ORIGINS = [
        origin.strip()
        for origin in (os.environ.get('DOL_CORS_ORIGINS') or DEFAULT_CORS_ORIGINS).split(',')
        if origin.strip()
    ]


def load_config_file(path, base=Config):
    """Read the JSON config file and return a ``Config`` subclass carrying it.

    The file looks like ``{"game_path": "...", "extensions": {"autosync": {}}}``.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding='utf-8'))
    except OSError as exc:
        raise ConfigError(f'reading config file: {exc}') from exc
    except ValueError as exc:
        raise ConfigError(f'unmarshaling config file: {exc}') from exc

    if not isinstance(raw, dict):
        raise ConfigError('config file must contain a JSON object')

    game_path = raw.get('game_path')
    if not isinstance(game_path, str) or not game_path:
        raise ConfigError('"game_path" must be a non-empty string')

    extensions = raw.get('extensions')
    if extensions is None:
        extensions = {}
    if not isinstance(extensions, dict):
        raise ConfigError('"extensions" must be an object')

    return type('FileConfig', (base,), {'GAME_PATH': game_path, 'EXTENSIONS': extensions})
