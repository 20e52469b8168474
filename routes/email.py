"""
Email route.

Handles:
- /send-email - Send a plain-text message (with the payment QR attached)
"""

from flask import Blueprint, current_app, jsonify, request

from core.exceptions import NotificationNotConfigured
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

email_bp = Blueprint("email", __name__)


@email_bp.route("/send-email", methods=["POST"])
def send_email():
    """
    Send ``{to, subject, message}`` through the configured mailer.

    Returns ``{"ok": true, "messageId": ...}``; validation problems are 400,
    missing credentials 503 and transport failures 502.
    """
    mailer = current_app.config.get("MAILER")
    if mailer is None:
        raise NotificationNotConfigured()

    data = request.get_json(silent=True) or {}
    message_id = mailer.send(
        data.get("to", ""),
        data.get("subject", ""),
        data.get("message", ""),
    )
    return jsonify({"ok": True, "messageId": message_id})
