import logging
import sys


def setup_logging(verbose: bool = False) -> None:
    """Send everything to stderr; DEBUG when verbose, INFO otherwise."""
    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(console_handler)

    # Per-request access logs are only interesting while debugging
    logging.getLogger('werkzeug').setLevel(logging.DEBUG if verbose else logging.WARNING)
