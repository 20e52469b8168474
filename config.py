"""
Configuration for PrintQueue.

All values are read from the environment after .env is loaded. The
conversion, storage and email collaborators are chosen here; routes and
services only ever see the resulting objects.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# Load .env early so the Config class body sees the values
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    SESSION_COOKIE_NAME = "print_queue_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False
    PORT = int(os.environ.get("PORT", "3000"))
    ALLOWED_ORIGIN = os.environ.get("ALLOWED_ORIGIN", "*")
    MAX_CONTENT_LENGTH = 25 * 1024 * 1024  # 25 MB request bodies

    # ==========================================================================
    # Email transport (Gmail SMTP by default)
    # ==========================================================================
    GMAIL_USER = os.environ.get("GMAIL_USER", "")
    GMAIL_PASSWORD = os.environ.get("GMAIL_PASSWORD", "")
    SMTP_HOST = os.environ.get("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "465"))
    SMTP_TIMEOUT = float(os.environ.get("SMTP_TIMEOUT", "30"))
    PAYMENT_QR_PATH = os.environ.get(
        "PAYMENT_QR_PATH", str(BASE_DIR / "img" / "GCash-MyQR.jpg")
    )

    # ==========================================================================
    # Object storage and order records
    # ==========================================================================
    # STORAGE_BACKEND: "local" writes under UPLOAD_FOLDER/<bucket>,
    # "minio" talks to an S3-compatible endpoint.
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "local")
    STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "ready2print-files")
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", str(BASE_DIR / "storage"))
    MINIO_ENDPOINT = os.environ.get("MINIO_ENDPOINT", "")
    MINIO_ACCESS_KEY = os.environ.get("MINIO_ACCESS_KEY", "")
    MINIO_SECRET_KEY = os.environ.get("MINIO_SECRET_KEY", "")
    MINIO_SECURE = _env_bool("MINIO_SECURE", "1")
    ORDER_DB_PATH = os.environ.get("ORDER_DB_PATH", str(BASE_DIR / "data" / "orders.db"))

    # Delete the uploaded blob when its order record cannot be saved.
    # Off by default: the blob is left for manual reconciliation.
    COMPENSATE_ORPHANED_UPLOADS = _env_bool("COMPENSATE_ORPHANED_UPLOADS", "0")

    # ==========================================================================
    # Document conversion
    # ==========================================================================
    CONVERTER_BINARY = os.environ.get("CONVERTER_BINARY", "soffice")
    CONVERSION_WORKSPACE = os.environ.get(
        "CONVERSION_WORKSPACE", str(Path(tempfile.gettempdir()) / "printq-temp")
    )
    CONVERSION_TIMEOUT = float(os.environ.get("CONVERSION_TIMEOUT", "60"))
    CONVERSION_MAX_WORKERS = int(os.environ.get("CONVERSION_MAX_WORKERS", "2"))
    CONVERSION_QUEUE_TIMEOUT = float(os.environ.get("CONVERSION_QUEUE_TIMEOUT", "120"))
    CONVERSION_MAX_BYTES = int(os.environ.get("CONVERSION_MAX_BYTES", str(25 * 1024 * 1024)))

    # Empty: convert in-process. Otherwise the base URL of a service
    # exposing POST /convert-docx.
    CONVERSION_SERVICE_URL = os.environ.get("CONVERSION_SERVICE_URL", "")
    CONVERSION_CLIENT_TIMEOUT = float(os.environ.get("CONVERSION_CLIENT_TIMEOUT", "90"))

    # ==========================================================================
    # Queue and pricing
    # ==========================================================================
    PAGE_COUNT_CONCURRENCY = int(os.environ.get("PAGE_COUNT_CONCURRENCY", "4"))
    ORDER_CONCURRENCY = int(os.environ.get("ORDER_CONCURRENCY", "1"))
    # Session queues idle longer than this are dropped (0 disables eviction)
    QUEUE_IDLE_TTL = float(os.environ.get("QUEUE_IDLE_TTL", "3600"))
    PRICE_BW = os.environ.get("PRICE_BW", "2.00")
    PRICE_COLOR = os.environ.get("PRICE_COLOR", "5.00")
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₱")


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    GMAIL_USER = ""
    GMAIL_PASSWORD = ""
    CONVERSION_SERVICE_URL = ""
    CONVERSION_TIMEOUT = 10.0
