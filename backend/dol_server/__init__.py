from flask import Flask
from flask_cors import CORS

from dol_server.config import Config
from dol_server.extension import ExtensionsManager
from dol_server.extensions import default_registry
from dol_server.httputil import FatalErrorGuard
from dol_server.main import create_host_blueprint, find_game_html, patch_game_html


def create_app(config_class=Config, manager=None):
    """Build the game server.

    When no ``manager`` is given one is created from ``EXTENSIONS`` and the
    built-in registry. The caller owns its lifecycle (``start``/``stop``) and
    can reach it through ``flask_app.extensions['dol_server']``.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    game_path = flask_app.config['GAME_PATH']
    game_html = find_game_html(game_path).read_bytes()

    if manager is None:
        manager = ExtensionsManager(flask_app.config.get('EXTENSIONS') or {}, default_registry())
    flask_app.extensions['dol_server'] = manager

    # Only the extension routes are meant to be reachable from other origins
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, resources={r'/x': {'origins': allowed_origins}, r'/x/*': {'origins': allowed_origins}})

    manager.bind_router(flask_app)
    flask_app.register_blueprint(create_host_blueprint(game_path, patch_game_html(game_html, manager.js_paths())))

    flask_app.wsgi_app = FatalErrorGuard(flask_app.wsgi_app)

    return flask_app
