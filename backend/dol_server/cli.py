import logging
import signal
import threading
import webbrowser

import click
from werkzeug.serving import make_server

from dol_server import create_app
from dol_server.config import Config, load_config_file
from dol_server.errors import ExtensionError
from dol_server.extension import ExtensionsManager
from dol_server.extensions import default_registry
from dol_server.logging_config import setup_logging

logger = logging.getLogger(__name__)


def parse_listen_addr(listen_addr: str):
    """Split ``host:port``; an empty host (``:port``) means every interface."""
    host, sep, port = listen_addr.rpartition(':')
    if not sep:
        raise ValueError(f'missing port in address {listen_addr!r}')
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f'invalid port in address {listen_addr!r}') from None
    if not 0 <= port_num <= 65535:
        raise ValueError(f'invalid port in address {listen_addr!r}')
    host = host.strip('[]') or '0.0.0.0'
    return host, port_num


def browser_url(host: str, port: int) -> str:
    if host in ('0.0.0.0', '::', ''):
        host = 'localhost'
    elif ':' in host:
        host = f'[{host}]'
    return f'http://{host}:{port}'


def serve(listen_addr: str, config_path: str, open_browser: bool = False) -> None:
    config_class = load_config_file(config_path)
    host, port = parse_listen_addr(listen_addr)

    stop_event = threading.Event()
    manager = ExtensionsManager(config_class.EXTENSIONS, default_registry())
    try:
        flask_app = create_app(config_class, manager=manager)
        manager.start(stop_event)
        server = make_server(host, port, flask_app, threaded=True)
    except BaseException:
        try:
            manager.stop()
        except ExtensionError as exc:
            logger.warning(f"[shutdown] {exc}")
        raise

    def handle_signal(signum, _frame):
        logger.info(f"[shutdown] received signal {signum}")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    server_thread = threading.Thread(target=server.serve_forever, name='http-server', daemon=True)
    server_thread.start()
    logger.info(f"listening on {listen_addr}")

    if open_browser:
        url = browser_url(host, port)
        if not webbrowser.open(url):
            logger.warning(f"failed to open browser at {url}")

    stop_event.wait()

    server.shutdown()
    server_thread.join()
    manager.stop()


@click.command('dol-server')
@click.option('-l', '--listen-addr', default=Config.LISTEN_ADDR, show_default=True, help='Address to listen on.')
@click.option('-c', '--config', 'config_path', default='dol-server.json', show_default=True,
              type=click.Path(dir_okay=False), help='Path to the JSON config file.')
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose logging.')
@click.option('--open-browser', is_flag=True, help='Open the game in a browser once the server is up.')
def cli(listen_addr, config_path, verbose, open_browser):
    """Serve the game with its extensions."""
    setup_logging(verbose)
    try:
        parse_listen_addr(listen_addr)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint='--listen-addr')

    try:
        serve(listen_addr, config_path, open_browser)
    except ExtensionError as exc:
        raise click.ClickException(str(exc))
    except OSError as exc:
        raise click.ClickException(f'serving on {listen_addr}: {exc}')
