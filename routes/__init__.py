"""
Flask route blueprints for PrintQueue.

This module contains all route handlers organized by functionality:
- health: Liveness probe
- convert: DOC/DOCX conversion and page count
- email: Direct email sending
- queue: Per-session print queue and order submission

Each blueprint is registered with the Flask app in create_app().
"""

from .health import health_bp
from .convert import convert_bp
from .email import email_bp
from .queue import queue_bp

__all__ = [
    "health_bp",
    "convert_bp",
    "email_bp",
    "queue_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(health_bp)
    app.register_blueprint(convert_bp)
    app.register_blueprint(email_bp)
    app.register_blueprint(queue_bp)
