"""
Asset registry — the per-render collection of required files and snippets.

Everything registered here is emitted by HtmlInjector. Scripts are deferred
by default (or emitted as ES modules when module mode is on), so they can
live in <head> without blocking the parser.

https://flaviocopes.com/javascript-async-defer/
"""

import itertools
import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional, Union

from defer_backend.errors import InvalidConfiguration, ResourceNotFound
from defer_backend.logging_config import audit_log, sanitize_log_value
from defer_backend.requirements.nonce import NonceProvider

# Values accepted by the cookie-consent attribute. Consent managers rewrite
# type="text/plain" scripts of an accepted category so they run.
COOKIE_CONSENT_CATEGORIES = ('strictly-necessary', 'functionality', 'tracking', 'targeting')

# CSS under these prefixes is emitted last so theme rules win the cascade.
THEME_CSS_PREFIXES = ('themes', '/assets')

CSS = 'css'
JS = 'js'


def list_cookie_types() -> list:
    """Cookie consent categories, in documentation order."""
    return list(COOKIE_CONSENT_CATEGORIES)


def validate_cookie_consent(value: Any) -> str:
    """Return `value` if it is a known consent category, else raise InvalidConfiguration."""
    if value not in COOKIE_CONSENT_CATEGORIES:
        audit_log(
            'consent_rejected',
            'Rejected unknown cookie-consent category',
            level=logging.WARNING,
            reason=sanitize_log_value(value, max_length=64),
        )
        raise InvalidConfiguration(
            'The cookie-consent value is invalid, it must be one of: '
            + ','.join(COOKIE_CONSENT_CATEGORIES)
        )
    return value


def _as_options(options: Any) -> Dict[str, Any]:
    if isinstance(options, Mapping):
        return dict(options)
    return {}


class AssetRegistry:
    """
    Ordered collections of CSS files, JS files, inline CSS, inline JS
    and raw head tags.

    Files are keyed by their path; inline snippets and head tags by an
    optional identifier (a sequence number when none is given). Registering
    the same key again updates the entry in place.
    """

    def __init__(
        self,
        module_mode: bool = False,
        theme_loader=None,
        nonce_provider: Optional[NonceProvider] = None,
    ):
        self.module_mode = module_mode
        self.theme_loader = theme_loader
        self.nonce_provider = nonce_provider or NonceProvider()
        self._reset()

    def _reset(self) -> None:
        self._css: Dict[str, Dict[str, Any]] = {}
        self._javascript: Dict[str, Dict[str, Any]] = {}
        self._provided: Dict[str, list] = {}
        self._custom_css: Dict[Union[str, int], str] = {}
        self._custom_scripts: Dict[Union[str, int], str] = {}
        self._head_tags: Dict[Union[str, int], str] = {}
        self._blocked = set()
        self._sequence = itertools.count()

    # --- Nonce ---

    def get_nonce(self) -> str:
        return self.nonce_provider.get_nonce()

    def set_nonce(self, nonce: str) -> None:
        self.nonce_provider.set_nonce(nonce)

    # --- Registration ---

    def register_css(self, file: str, media: Optional[str] = None, options=None) -> None:
        """
        Register a stylesheet.

        Args:
            file: Path relative to the asset base URL, or an absolute URL.
            media: Optional media query for the link tag.
            options: Extra attributes kept with the entry (integrity, crossorigin).
        """
        entry = dict(self._css.get(file, {}))
        entry.update(_as_options(options))
        entry['media'] = media
        self._css[file] = entry

    def register_js(self, file: str, options=None) -> None:
        """
        Register a script file.

        Options:
            async: Boolean, adds the async attribute.
            defer: Boolean, adds the defer attribute (True by default).
            type: Override the type= value.
            integrity: Subresource Integrity hash.
            crossorigin: Cross-origin policy for the resource.
            cookie-consent: One of COOKIE_CONSENT_CATEGORIES. The script is
                emitted as text/plain until a consent manager activates it.
            nomodule: Boolean, adds nomodule and forces a classic script.
            provides: Script paths bundled in this file; they are not emitted.

        Raises:
            InvalidConfiguration: cookie-consent is not a known category.
        """
        options = _as_options(options)
        # None means unset, as stored by registries that keep every key
        for key in ('cookie-consent', 'nomodule'):
            if options.get(key) is None:
                options.pop(key, None)

        if self.module_mode:
            if not options.get('type'):
                options['type'] = 'module'
            # Modules are deferred already, defer is invalid on them
            if 'defer' in options and options['type'] == 'module':
                del options['defer']
        else:
            options.setdefault('defer', True)

        if 'cookie-consent' in options:
            validate_cookie_consent(options['cookie-consent'])
            options['type'] = 'text/plain'
        if 'nomodule' in options:
            # nomodule scripts are never modules, whatever module mode says
            options['type'] = 'application/javascript'

        provides = options.pop('provides', None)
        existing = self._javascript.get(file, {})
        entry = dict(existing)
        # async/defer stick once any registration asked for them
        for flag in ('async', 'defer'):
            entry[flag] = bool(options.pop(flag, False)) or bool(existing.get(flag))
        if options.get('type') is None:
            options.pop('type', None)
        entry.update(options)
        self._javascript[file] = entry

        if provides:
            self._provided[file] = list(provides)

    def register_themed_js(self, name: str, script_type=None) -> str:
        """
        Register a script found in the active themes.

        Args:
            name: Script name without the .js extension.
            script_type: None, a type= string, or a mapping of register_js options.

        Returns:
            The resolved theme path that was registered.

        Raises:
            InvalidConfiguration: script_type is neither a string nor a mapping.
            ResourceNotFound: no active theme contains the script.
        """
        if script_type is not None and not isinstance(script_type, (str, Mapping)):
            raise InvalidConfiguration('Type must be a string or a mapping of options')

        path = None
        if self.theme_loader is not None:
            path = self.theme_loader.find_themed_javascript(name)
        if not path:
            audit_log(
                'themed_script_missing',
                'Themed script not found in any active theme',
                level=logging.WARNING,
                identifier=name,
            )
            raise ResourceNotFound(
                f"The javascript file doesn't exist. Please check if the file {name}.js exists "
                'in any theme or search for require_themed_javascript calls using this file.'
            )

        options = {}
        if isinstance(script_type, str) and script_type:
            options['type'] = script_type
        elif isinstance(script_type, Mapping):
            options = dict(script_type)
        self.register_js(path, options)
        return path

    def _key(self, identifier):
        return next(self._sequence) if identifier is None else identifier

    def register_inline_css(self, css: str, identifier: Optional[str] = None) -> None:
        self._custom_css[self._key(identifier)] = css

    def register_inline_js(self, script: str, identifier: Optional[str] = None) -> None:
        """
        Register an inline script.

        The identifier doubles as a naming convention: a 'jsmodule' substring
        makes it a module and a trailing '-<category>' gates it on cookie consent.
        """
        self._custom_scripts[self._key(identifier)] = script

    def register_head_tag(self, html: str, identifier: Optional[str] = None) -> None:
        """Add raw markup emitted at the top of the injected head content."""
        self._head_tags[self._key(identifier)] = html

    def replace_files(self, kind: str, files: Mapping) -> None:
        """Swap the CSS or JS file map, e.g. after bundling several files into one."""
        if kind == CSS:
            self._css = {file: dict(attrs) for file, attrs in files.items()}
        elif kind == JS:
            self._javascript = {file: dict(attrs) for file, attrs in files.items()}
        else:
            raise InvalidConfiguration(f'Unknown file kind: {kind!r}')

    # --- Blocking & clearing ---

    def block(self, identifier) -> None:
        """Keep an entry registered but leave it out of the output."""
        self._blocked.add(identifier)

    def unblock(self, identifier) -> None:
        self._blocked.discard(identifier)

    def unblock_all(self) -> None:
        self._blocked.clear()

    def get_blocked(self) -> set:
        return set(self._blocked)

    def clear(self, identifier=None) -> None:
        """Remove one identifier from every collection, or everything."""
        if identifier is None:
            self.clear_all()
            return
        for collection in (
            self._css,
            self._javascript,
            self._provided,
            self._custom_css,
            self._custom_scripts,
            self._head_tags,
        ):
            collection.pop(identifier, None)
        self._blocked.discard(identifier)

    def clear_all(self) -> None:
        """Empty every collection. The nonce is kept."""
        self._reset()

    # --- Retrieval ---

    def _visible(self, collection: Mapping) -> dict:
        return {key: value for key, value in collection.items() if key not in self._blocked}

    def get_provided_scripts(self) -> set:
        provided = set()
        for scripts in self._provided.values():
            provided.update(scripts)
        return provided

    def get_css(self) -> Dict[str, Dict[str, Any]]:
        """CSS files with theme and /assets files moved after all others."""
        regular = {}
        themed = {}
        for file, attributes in self._visible(self._css).items():
            if file.startswith(THEME_CSS_PREFIXES):
                themed[file] = dict(attributes)
            else:
                regular[file] = dict(attributes)
        regular.update(themed)
        return regular

    def get_js(self) -> Dict[str, Dict[str, Any]]:
        provided = self.get_provided_scripts()
        return {
            file: dict(attributes)
            for file, attributes in self._visible(self._javascript).items()
            if file not in provided
        }

    def get_inline_css(self) -> dict:
        return self._visible(self._custom_css)

    def get_inline_js(self) -> dict:
        return self._visible(self._custom_scripts)

    def get_head_tags(self) -> dict:
        return self._visible(self._head_tags)

    def is_empty(self) -> bool:
        return not (
            self._css
            or self._javascript
            or self._custom_css
            or self._custom_scripts
            or self._head_tags
        )

    # --- Migration ---

    @classmethod
    def migrate_from(cls, existing, **kwargs) -> 'AssetRegistry':
        """
        Copy every entry of another registry into a new AssetRegistry.

        `existing` only needs the read interface (get_css, get_js,
        get_inline_css, get_inline_js, get_head_tags). Copied scripts lose
        their `defer` key: registries without a "not set" state store
        defer=False for scripts that never opted out, and the new registry
        re-applies its own default instead.
        """
        registry = cls(**kwargs)
        for file, options in existing.get_css().items():
            registry.register_css(file, options.get('media'), options)
        for file, options in existing.get_js().items():
            options = dict(options)
            options.pop('defer', None)
            registry.register_js(file, options)
        for identifier, css in existing.get_inline_css().items():
            registry.register_inline_css(css, identifier if isinstance(identifier, str) else None)
        for identifier, script in existing.get_inline_js().items():
            registry.register_inline_js(script, identifier if isinstance(identifier, str) else None)
        for identifier, html in existing.get_head_tags().items():
            registry.register_head_tag(html, identifier if isinstance(identifier, str) else None)

        audit_log(
            'backend_migrated',
            'Requirements migrated to a deferred registry',
            level=logging.DEBUG,
            backend=type(existing).__name__,
        )
        return registry
