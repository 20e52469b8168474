"""
SQLite-backed order record store.

Only inserts: fulfillment updates happen outside this service.
"""

from __future__ import annotations

import sqlite3
import uuid
from pathlib import Path

from core.exceptions import RecordStoreError
from models.order import OrderRecord
from logging_config import get_logger


logger = get_logger(__name__)


class SQLiteOrderStore:
    """Persists OrderRecords in an ``orders`` table."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """New connection per call (sqlite3 connections are not thread-safe)."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS orders (
                    id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    filepath TEXT NOT NULL,
                    pagecount INTEGER NOT NULL,
                    papersize TEXT NOT NULL,
                    color TEXT NOT NULL,
                    cost TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    customer_email TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def insert(self, record: OrderRecord) -> str:
        """
        Save a record.

        Returns:
            The new order id

        Raises:
            RecordStoreError: The insert failed
        """
        order_id = str(uuid.uuid4())
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """INSERT INTO orders (id, filename, filepath, pagecount, papersize, color,
                                           cost, status, customer_email, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        order_id,
                        record.file_name,
                        record.storage_path,
                        record.page_count,
                        record.paper_size,
                        record.color_mode,
                        str(record.cost),
                        record.status,
                        record.customer_email,
                        record.created_at.isoformat(),
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Error inserting order for {record.file_name}: {e}")
            raise RecordStoreError(str(e)) from e

        logger.info(f"Order inserted: {order_id} ({record.file_name})")
        return order_id
