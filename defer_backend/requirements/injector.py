"""
HTML injector — splices registered requirements into a rendered page.

This is targeted string injection, not HTML parsing: the document must have
a </head> (and, for body placements, a <body>) tag. Anything else is
returned untouched.
"""

import re
from typing import Callable, Optional

from markupsafe import escape

from defer_backend.errors import InvalidConfiguration
from defer_backend.requirements.registry import COOKIE_CONSENT_CATEGORIES
from defer_backend.requirements.resources import StaticPathResolver

PLACEMENT_HEAD = 'head'
PLACEMENT_BODY = 'body'
PLACEMENT_BOTTOM = 'bottom'
PLACEMENTS = (PLACEMENT_HEAD, PLACEMENT_BODY, PLACEMENT_BOTTOM)

DOM_READY_MARKER = 'window.addEventListener'
JS_MODULE_MARKER = 'jsmodule'

VOID_ELEMENTS = frozenset(('base', 'link', 'meta'))

_HEAD_CLOSE_PATTERN = re.compile(r'</head\b', re.IGNORECASE)
_HEAD_INSERT_PATTERN = re.compile(r'</head\b[^>]*>', re.IGNORECASE)
_BODY_OPEN_PATTERN = re.compile(r'<body\b[^>]*>', re.IGNORECASE)
_BODY_CLOSE_PATTERN = re.compile(r'</body\b[^>]*>', re.IGNORECASE)

# Block comments, and line comments not preceded by : \ ' or " (keeps
# https:// and '//' literals). Best effort only, this is not a JS tokenizer.
_JS_COMMENT_PATTERN = re.compile(r"""/\*(?:[^*]|\*+[^*/])*\*+/|(?<![:\\'"])//.*""")


def strip_js_comments(script: str) -> str:
    """Remove comments from an inline script with a single regex pass."""
    return _JS_COMMENT_PATTERN.sub('', script)


def wrap_dom_ready(script: str) -> str:
    return f"window.addEventListener('DOMContentLoaded', function() {{ {script} }});"


def create_tag(tag: str, attributes: dict, content: Optional[str] = None) -> str:
    """
    Build an HTML tag.

    Attribute values are escaped, falsy values are skipped and True renders
    a bare attribute. Void elements are never self-closed; every other
    element always gets a closing tag, so scripts can't end up as <script />.
    Content is inserted as-is.
    """
    parts = [tag]
    for name, value in attributes.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(name)
        else:
            parts.append(f'{name}="{escape(value)}"')
    opening = '<' + ' '.join(parts) + '>'
    if tag in VOID_ELEMENTS:
        return opening
    return f'{opening}{content or ""}</{tag}>'


class HtmlInjector:
    """
    Render a registry into link/style/script tags and insert them.

    Args:
        module_mode: Inline scripts default to type="module".
        placement: PLACEMENT_HEAD, PLACEMENT_BODY or PLACEMENT_BOTTOM.
        path_resolver: Callable mapping a registered file to its URL.
        combiner: Optional callable given the registry before rendering;
            it may merge files through registry.replace_files().
    """

    def __init__(
        self,
        module_mode: bool = False,
        placement: str = PLACEMENT_HEAD,
        path_resolver: Optional[Callable[[str], str]] = None,
        combiner: Optional[Callable] = None,
    ):
        if placement not in PLACEMENTS:
            raise InvalidConfiguration(
                f'Script placement must be one of {", ".join(PLACEMENTS)}, got {placement!r}'
            )
        self.module_mode = module_mode
        self.placement = placement
        self.path_resolver = path_resolver or StaticPathResolver()
        self.combiner = combiner

    def inject(self, html: str, registry, nonce: str) -> str:
        """Return `html` with the registry's requirements inserted."""
        if not _HEAD_CLOSE_PATTERN.search(html) or registry.is_empty():
            return html

        if self.combiner is not None:
            self.combiner(registry)

        js_fragment = self.render_scripts(registry, nonce) + self.render_inline_scripts(registry, nonce)
        head_fragment = self.render_head(registry)

        html = self.insert_into_head(head_fragment, html)
        if self.placement == PLACEMENT_BOTTOM:
            return self.insert_at_bottom(js_fragment, html)
        if self.placement == PLACEMENT_BODY:
            return self.insert_into_body(js_fragment, html)
        return self.insert_into_head(js_fragment, html)

    # --- Fragments ---

    def render_scripts(self, registry, nonce: str) -> str:
        fragment = ''
        for file, attributes in registry.get_js().items():
            html_attributes = {
                'type': attributes.get('type') or 'application/javascript',
                'src': self.path_resolver(file),
                'nonce': nonce,
            }
            if attributes.get('async'):
                html_attributes['async'] = 'async'
            # defer is not allowed on modules, they are deferred anyway
            if attributes.get('defer') and html_attributes['type'] != 'module':
                html_attributes['defer'] = 'defer'
            for name in ('integrity', 'crossorigin', 'cookie-consent'):
                if attributes.get(name):
                    html_attributes[name] = attributes[name]
            if attributes.get('nomodule'):
                html_attributes['nomodule'] = 'nomodule'
            fragment += create_tag('script', html_attributes) + '\n'
        return fragment

    def render_inline_scripts(self, registry, nonce: str) -> str:
        # Inline scripts come after the files they may depend on
        fragment = ''
        for script_id, script in registry.get_inline_js().items():
            attributes = {
                'type': 'module' if self.module_mode else 'application/javascript',
                'nonce': nonce,
            }
            # Options can't be passed with inline scripts, so the id carries them
            if isinstance(script_id, str) and script_id:
                if JS_MODULE_MARKER in script_id:
                    attributes['type'] = 'module'
                category = script_id.split('-')[-1]
                if category in COOKIE_CONSENT_CATEGORIES:
                    attributes['type'] = 'text/plain'
                    attributes['cookie-consent'] = category

            script = strip_js_comments(script)
            if (
                not attributes.get('cookie-consent')
                and DOM_READY_MARKER not in script
                and attributes['type'] != 'module'
            ):
                script = wrap_dom_ready(script)

            fragment += create_tag('script', attributes, f'//<![CDATA[\n{script}\n//]]>') + '\n'
        return fragment

    def render_head(self, registry) -> str:
        fragment = ''
        # Head tags first, the first bytes of <head> can matter (charset, base)
        for head_tag in registry.get_head_tags().values():
            fragment += f'{head_tag}\n'

        for file, params in registry.get_css().items():
            html_attributes = {
                'rel': 'stylesheet',
                'type': 'text/css',
                'href': self.path_resolver(file),
            }
            if params.get('media'):
                html_attributes['media'] = params['media']
            fragment += create_tag('link', html_attributes) + '\n'

        for css in registry.get_inline_css().values():
            fragment += create_tag('style', {'type': 'text/css'}, f'\n{css}\n') + '\n'
        return fragment

    # --- Insertion ---

    @staticmethod
    def insert_into_head(fragment: str, html: str) -> str:
        if not fragment:
            return html
        return _HEAD_INSERT_PATTERN.sub(lambda m: fragment + m.group(0), html, count=1)

    @classmethod
    def insert_into_body(cls, fragment: str, html: str) -> str:
        """Insert right after the opening <body> tag, or into head if there is none."""
        if not fragment:
            return html
        match = _BODY_OPEN_PATTERN.search(html)
        if match is None:
            return cls.insert_into_head(fragment, html)
        return html[:match.end()] + '\n' + fragment + html[match.end():]

    @classmethod
    def insert_at_bottom(cls, fragment: str, html: str) -> str:
        """Insert just before </body>, or into head if there is none."""
        if not fragment:
            return html
        if not _BODY_CLOSE_PATTERN.search(html):
            return cls.insert_into_head(fragment, html)
        return _BODY_CLOSE_PATTERN.sub(lambda m: fragment + m.group(0), html, count=1)
