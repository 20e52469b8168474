"""
Services layer for PrintQueue.

This module contains the business logic services:
- OrderOrchestrator: uploads each queued file and records its order
- SubmissionController: per-session queue and place-order state machine
- QueueRegistry: session id -> SubmissionController
- Storage backends (local, MinIO) and the SQLite order store

Thread Model:
    Flask request threads
    ├── PageCount_* workers (page-count resolution, bounded)
    └── Order_* workers (per-file order placement, bounded)
"""

from .order_service import OrderOrchestrator, OutcomeCollector
from .order_store import SQLiteOrderStore
from .storage import LocalObjectStorage, MinioObjectStorage, build_storage, make_storage_key
from .submission import QueueRegistry, SubmissionController, SubmissionReport, SubmissionState

__all__ = [
    "OrderOrchestrator",
    "OutcomeCollector",
    "SQLiteOrderStore",
    "LocalObjectStorage",
    "MinioObjectStorage",
    "build_storage",
    "make_storage_key",
    "QueueRegistry",
    "SubmissionController",
    "SubmissionReport",
    "SubmissionState",
]
