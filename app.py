"""
PrintQueue - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration (.env + config classes + overrides)
2. Creates the conversion service (bounded LibreOffice worker pool)
3. Creates storage, order store, mailer and the order pipeline
4. Registers route blueprints
5. Sets up CORS and JSON error handlers

ARCHITECTURE:
    Request threads (Flask)
    ├── /convert-docx  -> ConversionService (semaphore-bounded subprocesses)
    ├── /send-email    -> SmtpMailer
    └── /queue/*       -> SubmissionController (one per session)
                          ├── PageCountResolver (PageCount_* pool)
                          ├── OrderOrchestrator (Order_* pool)
                          └── NotificationComposer

Collaborators are stored in app.config and looked up by routes through
current_app, so tests can swap any of them after create_app().
"""

from __future__ import annotations

import atexit
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.converter import ConversionService
from core.exceptions import PayloadTooLarge, PrintQueueError
from core.mailer import SmtpMailer
from modules.conversion_client import build_conversion_client
from modules.notification import NotificationComposer
from modules.page_counter import PageCountResolver
from modules.pricing import build_print_types
from services.order_service import OrderOrchestrator
from services.order_store import SQLiteOrderStore
from services.storage import build_storage
from services.submission import QueueRegistry, SubmissionController
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In a frozen bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent


def create_app(
    config_object: str = "config.Config",
    overrides: Optional[Dict[str, Any]] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class
        overrides: Extra config values applied last (tests)

    Returns:
        Configured Flask application
    """
    # .env next to the executable wins over the shell environment
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production" and not app.config.get("TESTING")

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging,
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting PrintQueue in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # CONVERSION
    # =========================================================================

    conversion_service = ConversionService(
        binary=app.config["CONVERTER_BINARY"],
        workspace=app.config["CONVERSION_WORKSPACE"],
        timeout_seconds=app.config["CONVERSION_TIMEOUT"],
        max_workers=app.config["CONVERSION_MAX_WORKERS"],
        queue_timeout_seconds=app.config["CONVERSION_QUEUE_TIMEOUT"],
        max_bytes=app.config["CONVERSION_MAX_BYTES"],
    )
    app.config["CONVERSION_SERVICE"] = conversion_service

    conversion_client = build_conversion_client(app.config, conversion_service)
    app.config["CONVERSION_CLIENT"] = conversion_client

    # =========================================================================
    # STORAGE, RECORDS, EMAIL
    # =========================================================================

    storage = build_storage(app.config)
    order_store = SQLiteOrderStore(app.config["ORDER_DB_PATH"])
    mailer = SmtpMailer(
        username=app.config["GMAIL_USER"],
        password=app.config["GMAIL_PASSWORD"],
        host=app.config["SMTP_HOST"],
        port=app.config["SMTP_PORT"],
        timeout_seconds=app.config["SMTP_TIMEOUT"],
        attachment_path=app.config["PAYMENT_QR_PATH"],
    )
    if not mailer.is_configured:
        logger.warning("Email credentials not set; /send-email and confirmations will fail")

    app.config["STORAGE"] = storage
    app.config["ORDER_STORE"] = order_store
    app.config["MAILER"] = mailer

    # =========================================================================
    # ORDER PIPELINE
    # =========================================================================

    print_types = build_print_types(app.config["PRICE_BW"], app.config["PRICE_COLOR"])
    app.config["PRINT_TYPES"] = print_types

    resolver = PageCountResolver(conversion_client, max_workers=app.config["PAGE_COUNT_CONCURRENCY"])
    orchestrator = OrderOrchestrator(
        storage,
        order_store,
        max_workers=app.config["ORDER_CONCURRENCY"],
        compensate_orphans=app.config["COMPENSATE_ORPHANED_UPLOADS"],
    )
    composer = NotificationComposer(mailer, currency_symbol=app.config["CURRENCY_SYMBOL"])

    app.config["PAGE_COUNT_RESOLVER"] = resolver
    app.config["ORDER_ORCHESTRATOR"] = orchestrator
    app.config["NOTIFICATION_COMPOSER"] = composer

    def new_controller() -> SubmissionController:
        # Looked up at call time so replacements in app.config take effect
        return SubmissionController(
            resolver=app.config["PAGE_COUNT_RESOLVER"],
            orchestrator=app.config["ORDER_ORCHESTRATOR"],
            composer=app.config["NOTIFICATION_COMPOSER"],
            print_types=app.config["PRINT_TYPES"],
        )

    app.config["QUEUE_REGISTRY"] = QueueRegistry(new_controller, idle_ttl_seconds=app.config["QUEUE_IDLE_TTL"])

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        conversion_service.shutdown()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # CROSS-ORIGIN
    # =========================================================================

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = app.config["ALLOWED_ORIGIN"]
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return response

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(PrintQueueError)
    def handle_print_queue_error(e: PrintQueueError):
        if e.http_status >= 500:
            logger.error(f"{request.method} {request.path} failed: {e}")
        else:
            logger.warning(f"{request.method} {request.path} rejected: {e.message}")
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        error = PayloadTooLarge(request.content_length or 0, app.config["MAX_CONTENT_LENGTH"])
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"ok": False, "error": "Not found", "code": "NotFound"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({
            "ok": False,
            "error": f"Method {request.method} not allowed",
            "code": "MethodNotAllowed",
        }), 405

    @app.errorhandler(500)
    def handle_server_error(e):
        original = getattr(e, "original_exception", None) or e
        logger.error(f"500 error: {original}", exc_info=original)
        return jsonify({"ok": False, "error": "Internal server error", "code": "InternalError"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return jsonify({"ok": False, "error": e.description, "code": type(e).__name__}), e.code

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=app.config.get("DEBUG", False))
