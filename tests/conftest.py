"""
Pytest fixtures for the requirements backend test suite.

Provides app configurations for testing each behaviour in isolation:
- app/client: Base test config (classic deferred scripts, no CSP)
- module_app/module_client: ES module output
- bottom_client: Scripts written just before </body>
- strict_app/strict_client: CSP enabled in report-only mode
- registry/injector: The core objects without Flask
"""

import os

import pytest

from defer_backend import create_app
from defer_backend.config import BottomScriptsTestConfig, ModuleTestConfig, StrictTestConfig, TestConfig
from defer_backend.requirements import AssetRegistry, HtmlInjector, StaticPathResolver, ThemeResourceLoader

SAMPLE_HTML = """<html>
<head></head>
<body></body>
</html>"""


class LegacyRequirements:
    """
    A registry without a "not set" state for defer, like older backends:
    every script is stored with an explicit defer flag.
    """

    def __init__(self):
        self.css = {}
        self.javascript = {}
        self.custom_css = {}
        self.custom_scripts = {}
        self.head_tags = {}

    def register_js(self, file, options=None):
        options = dict(options or {})
        self.javascript[file] = {
            'async': bool(options.get('async')),
            'defer': bool(options.get('defer')),
            'type': options.get('type'),
        }

    def get_css(self):
        return dict(self.css)

    def get_js(self):
        return dict(self.javascript)

    def get_inline_css(self):
        return dict(self.custom_css)

    def get_inline_js(self):
        return dict(self.custom_scripts)

    def get_head_tags(self):
        return dict(self.head_tags)


@pytest.fixture
def sample_html():
    return SAMPLE_HTML


@pytest.fixture
def app():
    """Create a Flask app with the base test configuration."""
    app = create_app(TestConfig)
    yield app


@pytest.fixture
def client(app):
    """Test client for the base app configuration."""
    return app.test_client()


@pytest.fixture
def module_app():
    """Create a Flask app emitting ES modules."""
    app = create_app(ModuleTestConfig)
    yield app


@pytest.fixture
def module_client(module_app):
    return module_app.test_client()


@pytest.fixture
def bottom_client():
    """Test client for an app writing scripts at the end of <body>."""
    return create_app(BottomScriptsTestConfig).test_client()


@pytest.fixture
def strict_app():
    """Create a Flask app with CSP enabled (report-only, with a report URI)."""
    app = create_app(StrictTestConfig)
    yield app


@pytest.fixture
def strict_client(strict_app):
    return strict_app.test_client()


@pytest.fixture
def secure_get():
    """Issue a GET over https:// so request.is_secure is True."""
    def get(client, path='/', **kwargs):
        return client.get(path, base_url='https://localhost', **kwargs)
    return get


@pytest.fixture
def themes_dir(tmp_path):
    """Two themes on disk: 'custom' overrides 'base' for app.js."""
    for theme, subdir, name in (
        ('base', 'javascript', 'app.js'),
        ('base', 'js', 'widgets.js'),
        ('custom', 'javascript', 'app.js'),
    ):
        folder = tmp_path / theme / subdir
        os.makedirs(folder, exist_ok=True)
        (folder / name).write_text('/* theme script */')
    return tmp_path


@pytest.fixture
def registry():
    """A classic (non-module) registry."""
    return AssetRegistry()


@pytest.fixture
def module_registry():
    return AssetRegistry(module_mode=True)


@pytest.fixture
def themed_registry(themes_dir):
    loader = ThemeResourceLoader(str(themes_dir), ['custom', 'base'])
    return AssetRegistry(theme_loader=loader)


@pytest.fixture
def injector():
    """Injector writing scripts into <head>, with assets served from /static."""
    return HtmlInjector(path_resolver=StaticPathResolver('/static'))


@pytest.fixture
def legacy_backend():
    return LegacyRequirements()
