"""
Object storage for uploaded documents.

Two backends with the same two operations:

    put(key, data, content_type) -> stored path
    delete(key)

LocalObjectStorage writes under a directory per bucket; MinioObjectStorage
talks to any S3-compatible endpoint. Both raise StorageError on failure.
"""

from __future__ import annotations

import io
import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Optional

from werkzeug.utils import secure_filename

from core.exceptions import StorageError


def make_storage_key(filename: str, prefix: str = "uploads") -> str:
    """
    Collision-resistant object key, e.g. 'uploads/1733220930123_3f9a1c2b_report.pdf'.
    """
    safe_name = secure_filename(filename) or "document"
    return f"{prefix}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{safe_name}"


class LocalObjectStorage:
    """Stores objects as files under ``<root>/<bucket>/<key>``."""

    def __init__(self, root: Path | str, bucket: str, logger: Optional[logging.Logger] = None):
        self._bucket_dir = Path(root) / bucket
        self._bucket = bucket
        self._logger = logger or logging.getLogger("print_queue.services.storage")
        self._bucket_dir.mkdir(parents=True, exist_ok=True)

    @property
    def bucket(self) -> str:
        return self._bucket

    def _resolve(self, key: str) -> Path:
        path = (self._bucket_dir / key).resolve()
        if self._bucket_dir.resolve() not in path.parents:
            raise StorageError(key, "key escapes bucket directory")
        return path

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            self._logger.error(f"Upload failed for {key}: {e}")
            raise StorageError(key, str(e)) from e

        self._logger.info(f"File uploaded: {self._bucket}/{key} ({len(data)} bytes)")
        return key

    def delete(self, key: str) -> None:
        try:
            self._resolve(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(key, str(e)) from e


class MinioObjectStorage:
    """S3-compatible storage through the MinIO client."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool = True,
        client=None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize MinIO storage.

        Args:
            endpoint: S3 endpoint (e.g., "s3.example.com:9000")
            access_key: S3 access key
            secret_key: S3 secret key
            bucket: Bucket name (created on first upload if missing)
            secure: Use HTTPS (default: True)
            client: Pre-built Minio client (tests)
        """
        from minio import Minio

        self._bucket = bucket
        self._logger = logger or logging.getLogger("print_queue.services.storage")
        self._client = client or Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
        )
        self._bucket_checked = False
        self._bucket_lock = threading.Lock()
        self._logger.info(f"MinioObjectStorage initialized: endpoint={endpoint}, bucket={bucket}")

    @property
    def bucket(self) -> str:
        return self._bucket

    def _ensure_bucket(self) -> None:
        with self._bucket_lock:
            if self._bucket_checked:
                return
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
                self._logger.info(f"Created bucket {self._bucket}")
            self._bucket_checked = True

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        from minio.error import S3Error

        try:
            self._ensure_bucket()
            self._client.put_object(
                self._bucket,
                key,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except (S3Error, OSError) as e:
            self._logger.error(f"S3 error uploading {key}: {e}")
            raise StorageError(key, str(e)) from e

        self._logger.info(f"File uploaded: {self._bucket}/{key} ({len(data)} bytes)")
        return key

    def delete(self, key: str) -> None:
        from minio.error import S3Error

        try:
            self._client.remove_object(self._bucket, key)
        except (S3Error, OSError) as e:
            raise StorageError(key, str(e)) from e


def build_storage(config):
    """Create the storage backend named by STORAGE_BACKEND."""
    backend = config.get("STORAGE_BACKEND", "local")
    if backend == "minio":
        return MinioObjectStorage(
            endpoint=config["MINIO_ENDPOINT"],
            access_key=config["MINIO_ACCESS_KEY"],
            secret_key=config["MINIO_SECRET_KEY"],
            bucket=config["STORAGE_BUCKET"],
            secure=config.get("MINIO_SECURE", True),
        )
    if backend == "local":
        return LocalObjectStorage(config["UPLOAD_FOLDER"], config["STORAGE_BUCKET"])
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
