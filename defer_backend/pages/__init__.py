"""
Demo pages blueprint — pages registering requirements from templates and views.
"""

from flask import Blueprint

pages_bp = Blueprint(
    'pages',
    __name__,
    template_folder='../templates',
)

# Import routes to register them with the blueprint.
# This import must be at the bottom to avoid circular imports.
from defer_backend.pages import routes  # noqa: E402, F401
