"""
Flask adapter for the requirements backend.

Request flow:
1. before_request: a fresh AssetRegistry (with its own nonce) goes into g
2. templates/views register assets through the Jinja globals or get_backend()
3. after_request: HTML bodies are finalised by the HtmlInjector
4. after_request (headers.py): security headers and CSP with the same nonce
"""

import logging
import os

from flask import Flask, current_app, g

from defer_backend.errors import WrongBackendType
from defer_backend.logging_config import audit_log
from defer_backend.requirements.injector import HtmlInjector
from defer_backend.requirements.registry import AssetRegistry
from defer_backend.requirements.resources import StaticPathResolver, ThemeResourceLoader

HTML_MIMETYPES = ('text/html', 'application/xhtml+xml')


def new_theme_loader(app: Flask) -> ThemeResourceLoader:
    themes_dir = app.config.get('THEMES_DIR') or os.path.join(app.root_path, 'static', 'themes')
    return ThemeResourceLoader(themes_dir, app.config.get('THEMES', ['default']))


def new_registry(app: Flask) -> AssetRegistry:
    """Build an empty registry configured from `app`."""
    return AssetRegistry(
        module_mode=app.config.get('ENABLE_JS_MODULES', False),
        theme_loader=new_theme_loader(app),
    )


def new_injector(app: Flask) -> HtmlInjector:
    return HtmlInjector(
        module_mode=app.config.get('ENABLE_JS_MODULES', False),
        placement=app.config.get('JS_PLACEMENT', 'head'),
        path_resolver=StaticPathResolver(app.config.get('ASSETS_BASE_URL', '/')),
    )


def get_backend():
    """Return whatever requirements backend is installed for this request."""
    if 'requirements' not in g:
        g.requirements = new_registry(current_app)
    return g.requirements


def set_backend(backend) -> None:
    g.requirements = backend


def get_defer_backend() -> AssetRegistry:
    """
    Return the installed backend, which must be an AssetRegistry.

    Raises:
        WrongBackendType: another backend implementation is installed.
    """
    backend = get_backend()
    if not isinstance(backend, AssetRegistry):
        raise WrongBackendType(
            f'Requirements backend is currently of class {type(backend).__name__}'
        )
    return backend


def replace_backend(old_backend=None) -> AssetRegistry:
    """
    Install an AssetRegistry holding everything `old_backend` registered.

    Args:
        old_backend: Backend to migrate; defaults to the installed one.
            The nonce carries over so headers and tags stay consistent.
    """
    if old_backend is None:
        old_backend = get_backend()
    backend = AssetRegistry.migrate_from(
        old_backend,
        module_mode=current_app.config.get('ENABLE_JS_MODULES', False),
        theme_loader=new_theme_loader(current_app),
        nonce_provider=getattr(old_backend, 'nonce_provider', None),
    )
    set_backend(backend)
    return backend


def is_injectable(response) -> bool:
    """Only buffered HTML responses get requirements injected."""
    if response.direct_passthrough or response.is_streamed:
        return False
    return response.mimetype in HTML_MIMETYPES


def init_requirements(app: Flask) -> None:
    """Register the per-request registry, template helpers and injection hook."""
    injector = new_injector(app)
    app.extensions['defer_backend.injector'] = injector

    @app.before_request
    def create_registry() -> None:
        """Each request gets its own registry and therefore its own nonce."""
        g.requirements = new_registry(app)

    @app.context_processor
    def inject_requirement_helpers() -> dict:
        """Template helpers; each returns '' so it can be used as {{ ... }}."""

        def require_css(file, media=None, **options):
            get_backend().register_css(file, media, options)
            return ''

        def require_javascript(file, **options):
            get_backend().register_js(file, options)
            return ''

        def require_themed_javascript(name, script_type=None):
            get_defer_backend().register_themed_js(name, script_type)
            return ''

        def custom_css(css, identifier=None):
            get_backend().register_inline_css(css, identifier)
            return ''

        def custom_script(script, identifier=None):
            get_backend().register_inline_js(script, identifier)
            return ''

        def insert_head_tags(html, identifier=None):
            get_backend().register_head_tag(html, identifier)
            return ''

        backend = get_backend()
        return {
            'csp_nonce': backend.get_nonce() if isinstance(backend, AssetRegistry) else '',
            'require_css': require_css,
            'require_javascript': require_javascript,
            'require_themed_javascript': require_themed_javascript,
            'custom_css': custom_css,
            'custom_script': custom_script,
            'insert_head_tags': insert_head_tags,
        }

    @app.after_request
    def include_requirements(response):
        """Finalise HTML responses with the registered tags."""
        registry = g.get('requirements')
        if not isinstance(registry, AssetRegistry) or not is_injectable(response):
            return response
        if registry.is_empty():
            return response

        charset = response.mimetype_params.get('charset', 'utf-8')
        try:
            html = response.get_data().decode(charset)
        except (LookupError, UnicodeDecodeError):
            audit_log(
                'injection_skipped',
                'Response body could not be decoded, left unchanged',
                level=logging.WARNING,
                reason=charset,
            )
            return response

        injected = injector.inject(html, registry, registry.get_nonce())
        if injected == html:
            audit_log(
                'injection_skipped',
                'Nothing injected, response left unchanged',
                level=logging.DEBUG,
            )
            return response

        response.set_data(injected.encode(charset, 'xmlcharrefreplace'))
        return response
