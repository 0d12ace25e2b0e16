"""Extra stylesheets for the game, injected through a small loader script."""

import json
from pathlib import Path

from flask import Blueprint

from dol_server.extension import Extension, ExtensionInfo
from dol_server.httputil import bytes_view

ASSETS_DIR = Path(__file__).parent / 'assets'

# Stylesheet names resolve against the injector's own URL, wherever it is mounted
INJECTOR = """
for (const name of cssNames) {
  const link = document.createElement("link");
  link.rel = "stylesheet";
  link.href = new URL(name, import.meta.url).href;
  document.head.appendChild(link);
}
"""


def build_injector(css_names) -> bytes:
    return (f'const cssNames = {json.dumps(list(css_names))};\n' + INJECTOR).encode('utf-8')


class ExtraCSSExtension(Extension):
    js_paths = ('inject.js',)

    def __init__(self, css_files):
        self.blueprint = Blueprint('extracss', __name__)
        css_names = []
        for css_file in css_files:
            self.blueprint.add_url_rule(
                f'/{css_file.name}', css_file.stem, bytes_view('text/css', css_file.read_bytes())
            )
            css_names.append(css_file.name)
        self.css_names = css_names
        self.blueprint.add_url_rule('/inject.js', 'inject', bytes_view('text/javascript', build_injector(css_names)))


def new(_cfg) -> ExtraCSSExtension:
    return ExtraCSSExtension(sorted(ASSETS_DIR.glob('*.css')))


extension_info = ExtensionInfo(id='extracss', new=new)
