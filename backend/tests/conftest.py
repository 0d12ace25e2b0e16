import os
import sys
import pytest

# Ensure the backend root (containing the `dol_server` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from dol_server import create_app
from dol_server.config import Config

GAME_HTML = '<html><head><title>DoL</title></head><body><div id="story"></div></body></html>'


@pytest.fixture()
def game_dir(tmp_path):
    game = tmp_path / 'game'
    game.mkdir()
    (game / 'Degrees of Lewdity.html').write_text(GAME_HTML, encoding='utf-8')
    (game / 'img').mkdir()
    (game / 'img' / 'sprite.txt').write_text('sprite', encoding='utf-8')
    return game


@pytest.fixture()
def save_dir(tmp_path):
    return tmp_path / 'saves'


@pytest.fixture()
def extension_configs(save_dir):
    return {
        'autosync': {'save_path': str(save_dir), 'lock_timeout': 0.5, 'lock_poll_interval': 0.05},
    }


@pytest.fixture()
def flask_app(game_dir, extension_configs):
    class TestConfig(Config):
        TESTING = True
        GAME_PATH = str(game_dir)
        EXTENSIONS = extension_configs

    application = create_app(TestConfig)
    manager = application.extensions['dol_server']
    manager.start()
    yield application
    manager.stop()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def autosync(flask_app):
    return flask_app.extensions['dol_server'].get('autosync')
