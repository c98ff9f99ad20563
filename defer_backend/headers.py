"""
Security response headers.

Applied via @app.after_request to every response, using the nonce of the
request's asset registry so the CSP matches the injected script tags.

The CSP follows the strict-dynamic pattern: browsers that understand
'strict-dynamic' only trust nonced scripts (and what they load), older
browsers fall back to the permissive tokens after it.

https://csp.withgoogle.com/docs/strict-csp.html
https://content-security-policy.com/strict-dynamic/
"""

import logging

from flask import Flask, g, has_request_context, request

from defer_backend.config import SecurityConfig
from defer_backend.logging_config import audit_log
from defer_backend.requirements.registry import AssetRegistry

CSP_HEADER = 'Content-Security-Policy'
CSP_REPORT_ONLY_HEADER = 'Content-Security-Policy-Report-Only'


def apply_security_headers(response, config: SecurityConfig, is_secure: bool = False):
    """
    Add Referrer-Policy, HSTS and X-Frame-Options to a response.

    HSTS is only sent over HTTPS. X-Frame-Options never replaces a value
    a view already set.
    """
    # https://web.dev/referrer-best-practices/
    if config.referrer_policy:
        response.headers['Referrer-Policy'] = config.referrer_policy

    if config.enable_hsts and config.hsts_header and is_secure:
        response.headers['Strict-Transport-Security'] = config.hsts_header

    if config.frame_options and 'X-Frame-Options' not in response.headers:
        response.headers['X-Frame-Options'] = config.frame_options

    return response


def build_content_security_policy(config: SecurityConfig, nonce: str) -> str:
    """Build the policy string for `nonce`."""
    csp_directives = [
        "default-src 'self' data:",
        f"script-src 'nonce-{nonce}' 'strict-dynamic' 'unsafe-inline' 'unsafe-eval' https: http:",
        "style-src * 'unsafe-inline'",
        "object-src 'self'",
        "img-src * data:",
        "font-src * data:",
    ]
    # https://cheatsheetseries.owasp.org/cheatsheets/Clickjacking_Defense_Cheat_Sheet.html
    if config.frame_ancestors:
        csp_directives.append(f'frame-ancestors {config.frame_ancestors}')
    if config.csp_report_uri:
        csp_directives.append(f'report-uri {config.csp_report_uri}')
    return '; '.join(csp_directives)


def content_security_policy_header_name(config: SecurityConfig) -> str:
    # Report-only is ignored without a report endpoint
    if config.csp_report_uri and config.csp_report_only:
        return CSP_REPORT_ONLY_HEADER
    return CSP_HEADER


def apply_content_security_policy(response, config: SecurityConfig, nonce: str, is_secure: bool = False):
    """Add the CSP header. Only over HTTPS, and only when enabled."""
    if not is_secure or not config.enable_csp:
        return response

    header_name = content_security_policy_header_name(config)
    response.headers[header_name] = build_content_security_policy(config, nonce)
    audit_log(
        'csp_applied',
        'Content security policy attached',
        level=logging.DEBUG,
        header=header_name,
        path=request.path if has_request_context() else None,
    )
    return response


def init_security_headers(app: Flask) -> None:
    """Register the security header hook on the Flask app."""
    config = SecurityConfig.from_mapping(app.config)
    app.extensions['defer_backend.security_config'] = config

    @app.after_request
    def set_security_headers(response):
        """Apply security headers, then the CSP with this request's nonce."""
        is_secure = request.is_secure
        apply_security_headers(response, config, is_secure=is_secure)

        # Other backends have no nonce to put in the policy
        registry = g.get('requirements')
        if isinstance(registry, AssetRegistry):
            apply_content_security_policy(response, config, registry.get_nonce(), is_secure=is_secure)

        return response
