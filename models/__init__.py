"""
Data models for PrintQueue.

This module contains dataclasses for:
- Queue: UploadCandidate, QueuedFile, PrintQueue and page-count results
- Orders: OrderRequest, OrderRecord, OrderOutcome, OrderBatchResult

Everything handed to a worker thread (QueuedFile, OrderRequest,
OrderRecord, OrderOutcome) is frozen.
"""

from .queue import (
    MediaKind,
    ResolutionStatus,
    UploadCandidate,
    PageCountResult,
    QueuedFile,
    PrintQueue,
)
from .order import (
    ORDER_STATUS_PENDING,
    OrderRequest,
    OrderRecord,
    OrderOutcome,
    OrderBatchResult,
)

__all__ = [
    # Queue models
    "MediaKind",
    "ResolutionStatus",
    "UploadCandidate",
    "PageCountResult",
    "QueuedFile",
    "PrintQueue",
    # Order models
    "ORDER_STATUS_PENDING",
    "OrderRequest",
    "OrderRecord",
    "OrderOutcome",
    "OrderBatchResult",
]
