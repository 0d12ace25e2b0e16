"""Reminder box overlay for the game UI."""

from pathlib import Path

from flask import Blueprint

from dol_server.extension import Extension, ExtensionInfo
from dol_server.httputil import bytes_view

ASSETS_DIR = Path(__file__).parent / 'assets'


class ReminderExtension(Extension):
    js_paths = ('reminder.js',)

    def __init__(self):
        self.blueprint = Blueprint('reminder', __name__)
        self.blueprint.add_url_rule(
            '/reminder.js', 'script', bytes_view('application/javascript', (ASSETS_DIR / 'reminder.js').read_bytes())
        )
        self.blueprint.add_url_rule(
            '/reminder.css', 'stylesheet', bytes_view('text/css', (ASSETS_DIR / 'reminder.css').read_bytes())
        )


def new(_cfg) -> ReminderExtension:
    return ReminderExtension()


extension_info = ExtensionInfo(id='reminder', new=new)
