"""
Application configuration — asset injection and security header settings.

Every default includes a comment explaining what it controls.
The header settings are read once into a frozen SecurityConfig so the
header policy never sees a mutable Flask config.
"""

import os
import secrets
from dataclasses import dataclass
from typing import Any, Mapping, Optional


class BaseConfig:
    """Shared configuration for all environments."""

    # --- Flask Core ---
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)

    # --- Script Output ---
    # Emit scripts as ES modules (type="module") instead of deferred classic scripts.
    ENABLE_JS_MODULES = False
    # Where script tags go: 'head' (with defer), 'body' (start of <body>) or 'bottom' (before </body>).
    JS_PLACEMENT = 'head'
    # Prefix for relative asset paths when building src/href attributes.
    ASSETS_BASE_URL = '/static'

    # --- Themes ---
    # Directory holding one sub-directory per theme; None means the package's static folder.
    THEMES_DIR = None
    # Active themes, searched in order by require_themed_javascript().
    THEMES = ['default']

    # --- Security Headers ---
    # https://web.dev/referrer-best-practices/
    REFERRER_POLICY = 'no-referrer-when-downgrade'
    # HSTS is only sent over HTTPS, and only when both of these are truthy.
    ENABLE_HSTS = True
    HSTS_HEADER = 'max-age=300; includeSubDomains; preload; always;'
    # Only honoured on HTTPS requests.
    ENABLE_CSP = False
    CSP_FRAME_ANCESTORS = "'self'"
    # Never overrides an X-Frame-Options header set by a view.
    FRAME_OPTIONS = 'SAMEORIGIN'
    CSP_REPORT_URI = None
    # Ignored unless CSP_REPORT_URI is set.
    CSP_REPORT_ONLY = True


class ProductionConfig(BaseConfig):
    """Production environment — strict CSP enforced."""

    DEBUG = False
    TESTING = False

    SECRET_KEY = os.environ.get('SECRET_KEY')

    ENABLE_CSP = True
    CSP_REPORT_URI = os.environ.get('CSP_REPORT_URI')
    HSTS_HEADER = 'max-age=31536000; includeSubDomains'

    @classmethod
    def init_app(cls, app):
        """Validate required configuration at startup."""
        if not cls.SECRET_KEY:
            raise RuntimeError(
                'SECRET_KEY environment variable is required in production. '
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )


class DevelopmentConfig(BaseConfig):
    """Development environment — no HSTS so localhost isn't pinned to HTTPS."""

    DEBUG = True
    ENABLE_HSTS = False


class TestConfig(BaseConfig):
    """Test environment — fixed secret key, default header settings."""

    TESTING = True
    SECRET_KEY = 'test-secret-key'


class ModuleTestConfig(TestConfig):
    """Test config with ES module output enabled."""

    ENABLE_JS_MODULES = True


class BottomScriptsTestConfig(TestConfig):
    """Test config writing scripts just before </body>."""

    JS_PLACEMENT = 'bottom'


class StrictTestConfig(TestConfig):
    """Test config with CSP enabled in report-only mode."""

    ENABLE_CSP = True
    CSP_REPORT_URI = '/csp-report'
    CSP_REPORT_ONLY = True


@dataclass(frozen=True)
class SecurityConfig:
    """Static header settings consumed by the security header policy."""

    referrer_policy: Optional[str] = 'no-referrer-when-downgrade'
    enable_hsts: bool = True
    hsts_header: Optional[str] = 'max-age=300; includeSubDomains; preload; always;'
    enable_csp: bool = False
    frame_ancestors: Optional[str] = "'self'"
    frame_options: Optional[str] = 'SAMEORIGIN'
    csp_report_uri: Optional[str] = None
    csp_report_only: bool = True

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> 'SecurityConfig':
        """Build from a Flask config (or any mapping of upper-case keys)."""
        defaults = cls()
        return cls(
            referrer_policy=config.get('REFERRER_POLICY', defaults.referrer_policy),
            enable_hsts=bool(config.get('ENABLE_HSTS', defaults.enable_hsts)),
            hsts_header=config.get('HSTS_HEADER', defaults.hsts_header),
            enable_csp=bool(config.get('ENABLE_CSP', defaults.enable_csp)),
            frame_ancestors=config.get('CSP_FRAME_ANCESTORS', defaults.frame_ancestors),
            frame_options=config.get('FRAME_OPTIONS', defaults.frame_options),
            csp_report_uri=config.get('CSP_REPORT_URI', defaults.csp_report_uri),
            csp_report_only=bool(config.get('CSP_REPORT_ONLY', defaults.csp_report_only)),
        )
