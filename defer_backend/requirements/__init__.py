"""
Requirements backend — collects assets during rendering and injects them.

Scripts are deferred (or emitted as ES modules), inline scripts wait for
DOMContentLoaded, and every tag carries the request's CSP nonce.
"""

from defer_backend.requirements.injector import (  # noqa: F401
    PLACEMENT_BODY,
    PLACEMENT_BOTTOM,
    PLACEMENT_HEAD,
    HtmlInjector,
    create_tag,
    strip_js_comments,
)
from defer_backend.requirements.nonce import NonceProvider, generate_nonce  # noqa: F401
from defer_backend.requirements.registry import (  # noqa: F401
    COOKIE_CONSENT_CATEGORIES,
    AssetRegistry,
    list_cookie_types,
)
from defer_backend.requirements.resources import StaticPathResolver, ThemeResourceLoader  # noqa: F401
