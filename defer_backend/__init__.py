"""
Flask application factory.

Creates the app and wires the requirements backend and security headers
into the request lifecycle. Uses the factory pattern for testability:
each test can create an app with a different config class.

Hook registration order:
1. logging: so later setup steps can emit audit events
2. requirements: per-request registry, template helpers, HTML injection
3. security headers: after_request header policy using the registry's nonce
"""

from flask import Flask, render_template

from defer_backend.config import DevelopmentConfig
from defer_backend.errors import DeferBackendError
from defer_backend.logging_config import audit_log


def create_app(config_class=None):
    """
    Create and configure the Flask application.

    Args:
        config_class: Configuration class to use. Defaults to DevelopmentConfig.
                      Tests pass TestConfig, StrictTestConfig, etc.

    Returns:
        Configured Flask application instance.
    """
    if config_class is None:
        config_class = DevelopmentConfig

    app = Flask(
        __name__,
        static_folder='static',
        static_url_path='/static',
    )
    app.config.from_object(config_class)

    init_app = getattr(config_class, 'init_app', None)
    if init_app is not None:
        init_app(app)

    # --- Logging ---
    from defer_backend.logging_config import setup_logging
    setup_logging(app)

    # --- Requirements Backend ---
    # Raises InvalidConfiguration on an unknown JS_PLACEMENT.
    from defer_backend.requirements.backend import init_requirements
    init_requirements(app)

    # --- Security Headers ---
    from defer_backend.headers import init_security_headers
    init_security_headers(app)

    # --- Register Blueprints ---
    from defer_backend.pages import pages_bp
    app.register_blueprint(pages_bp)

    # --- Error Handlers ---

    from defer_backend.requirements.backend import get_backend

    @app.errorhandler(DeferBackendError)
    def handle_backend_error(e):
        """Misconfigured requirement in a view or template; no internals in the page."""
        audit_log('backend_error', 'Requirement registration failed', reason=type(e).__name__)
        # The error page starts from an empty registry
        get_backend().clear_all()
        return render_template('errors/500.html'), 500

    @app.errorhandler(404)
    def handle_not_found(e):
        """Page not found."""
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def handle_server_error(e):
        """Internal server error — no stack traces or internal details."""
        return render_template('errors/500.html'), 500

    return app
