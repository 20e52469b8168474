"""
Shared fixtures for PrintQueue tests.

The document converter is replaced by a small executable Python script
written to tmp_path. It accepts the same command line as soffice and, by
mode, writes an N-page PDF, fails, hangs, or exits without an artifact.
"""

import io
import sqlite3
import stat
import sys
from pathlib import Path

import pytest
from pypdf import PdfWriter

from core.converter import ZIP_SIGNATURE


FAKE_CONVERTER = '''#!{python}
import sys
import time
from pathlib import Path

MODE = "{mode}"
PAGES = {pages}

args = sys.argv[1:]
outdir = Path(args[args.index("--outdir") + 1])
source = Path(args[-1])
artifact = outdir / (source.stem + ".pdf")

if MODE == "fail":
    sys.stderr.write("source file could not be loaded\\n")
    sys.exit(1)
if MODE == "hang":
    time.sleep(60)
if MODE == "no_artifact":
    sys.exit(0)
if MODE == "garbage":
    artifact.write_bytes(b"this is not a pdf")
    sys.exit(0)

from pypdf import PdfWriter

writer = PdfWriter()
for _ in range(PAGES):
    writer.add_blank_page(width=612, height=792)
with open(artifact, "wb") as fh:
    writer.write(fh)
'''


def build_pdf(pages: int) -> bytes:
    """In-memory PDF with ``pages`` blank Letter pages."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def read_orders(db_path) -> list:
    """Rows of the ``orders`` table as dicts, oldest first."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute("SELECT * FROM orders ORDER BY created_at").fetchall()
        return [dict(row) for row in rows]
    finally:
        conn.close()


# Fixtures

@pytest.fixture
def order_rows():
    """Reader for the orders table: ``order_rows(db_path)``."""
    return read_orders


@pytest.fixture
def make_pdf():
    """Factory for PDF bytes with a given page count."""
    return build_pdf


@pytest.fixture
def docx_bytes():
    """Bytes that pass the DOCX content-signature check."""
    return ZIP_SIGNATURE + b"\x14\x00\x06\x00" + b"word/document.xml" + b"\x00" * 64


@pytest.fixture
def fake_converter(tmp_path):
    """
    Factory writing a fake converter script and returning its path.

    Usage:
        binary = fake_converter("ok", pages=3)
    """
    def _make(mode: str = "ok", pages: int = 3) -> str:
        script = tmp_path / f"fake-soffice-{mode}-{pages}"
        script.write_text(FAKE_CONVERTER.format(python=sys.executable, mode=mode, pages=pages))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _make


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Conversion workspace directory."""
    return tmp_path / "printq-temp"


@pytest.fixture
def app_overrides(tmp_path, fake_converter, workspace):
    """Config overrides isolating an app instance inside tmp_path."""
    return {
        "CONVERTER_BINARY": fake_converter("ok", pages=3),
        "CONVERSION_WORKSPACE": str(workspace),
        "CONVERSION_SERVICE_URL": "",
        "UPLOAD_FOLDER": str(tmp_path / "storage"),
        "STORAGE_BACKEND": "local",
        "ORDER_DB_PATH": str(tmp_path / "data" / "orders.db"),
        "PAYMENT_QR_PATH": str(tmp_path / "missing-qr.jpg"),
        "PAGE_COUNT_CONCURRENCY": 2,
        "PRICE_BW": "2.00",
        "PRICE_COLOR": "5.00",
    }


@pytest.fixture
def app(app_overrides):
    """Flask app built with TestingConfig."""
    from app import create_app

    application = create_app("config.TestingConfig", overrides=app_overrides)
    yield application
    application.config["CONVERSION_SERVICE"].shutdown()


@pytest.fixture
def client(app):
    """Flask test client (keeps the session cookie between requests)."""
    return app.test_client()

