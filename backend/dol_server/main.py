import logging
from pathlib import Path
from typing import Iterable

from flask import Blueprint, send_from_directory

from dol_server.errors import ConfigError
from dol_server.httputil import bytes_view

logger = logging.getLogger(__name__)


def find_game_html(game_path) -> Path:
    """Return the one HTML file at the top of the game directory."""
    game_dir = Path(game_path)
    if not game_dir.is_dir():
        raise ConfigError(f'game path {str(game_dir)!r} is not a directory')

    html_files = sorted(game_dir.glob('*.html'))
    if len(html_files) != 1:
        raise ConfigError(f'found {len(html_files)} HTML files in game path, expected 1')

    logger.debug(f"[game-html] file={html_files[0]} path={game_dir}")
    return html_files[0]


def patch_game_html(html: bytes, scripts: Iterable[str]) -> bytes:
    """Insert a module script tag per path right before the first ``</head>``."""
    extras = b''
    for script in scripts:
        logger.debug(f"[game-html] injecting script={script}")
        extras += f'<script src="{script}" type="module"></script>'.encode('utf-8')
    return html.replace(b'</head>', extras + b'</head>', 1)


def create_host_blueprint(game_path, html: bytes) -> Blueprint:
    main = Blueprint('main', __name__)
    main.add_url_rule('/', 'index', bytes_view('text/html', html))

    @main.route('/<path:filename>')
    def game_asset(filename):
        return send_from_directory(Path(game_path).resolve(), filename)

    return main
