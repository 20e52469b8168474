"""
Health check route.

Handles:
- /health - Liveness probe
"""

from datetime import datetime, timezone

from flask import Blueprint, jsonify


health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """Report that the server is up."""
    return jsonify({
        "ok": True,
        "time": datetime.now(timezone.utc).isoformat(),
        "status": "Server is running",
    })
