"""
Demo routes — each page exercises one part of the requirements backend.

/          files, inline CSS/JS and head tags registered from the template
/consent   scripts gated on the 'tracking' cookie category
/module    an inline ES module (identifier contains 'jsmodule')
/themed    a script resolved through the active themes
/fragment  HTML without </head>, returned unchanged
/api/status JSON, never touched by the injector
"""

from flask import jsonify, render_template

from defer_backend.pages import pages_bp
from defer_backend.requirements.backend import get_defer_backend


@pages_bp.route('/')
def index():
    """Landing page; requirements are registered inside the template."""
    return render_template('pages/index.html')


@pages_bp.route('/consent')
def consent():
    """Tracking scripts only run once a consent manager rewrites their type."""
    backend = get_defer_backend()
    backend.register_js('js/analytics.js', {'cookie-consent': 'tracking'})
    backend.register_inline_js("window.dataLayer = window.dataLayer || [];", 'analytics-tracking')
    return render_template('pages/consent.html')


@pages_bp.route('/module')
def module():
    return render_template('pages/module.html')


@pages_bp.route('/themed')
def themed():
    return render_template('pages/themed.html')


@pages_bp.route('/fragment')
def fragment():
    """Partial HTML (e.g. for htmx swaps) has no </head> to anchor on."""
    get_defer_backend().register_js('js/fragment.js')
    return '<div class="notice">Loaded.</div>'


@pages_bp.route('/api/status')
def status():
    get_defer_backend().register_js('js/never-injected.js')
    return jsonify({'status': 'ok'})
