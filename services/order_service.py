"""
Order placement for a submitted queue.

For every queued file the orchestrator:
    1. Uploads the bytes to object storage under a unique key
    2. Persists a pending OrderRecord pointing at that key
    3. Records the per-file outcome

One file's failure never stops the others. The three steps do not form a
transaction: if step 2 fails the blob from step 1 stays in storage (unless
compensation is enabled) and the failure is reported in the batch result.

Thread Safety:
    - Files are processed by a bounded ThreadPoolExecutor
    - OutcomeCollector is the only shared structure; it uses threading.Lock
    - OrderRequest and QueuedFile are frozen

Usage:
    orchestrator = OrderOrchestrator(storage, order_store, max_workers=4)
    batch = orchestrator.place_orders(order_request)   # may raise AllOrdersFailed
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from core.exceptions import AllOrdersFailed, PrintQueueError, RecordStoreError, StorageError
from models.order import OrderBatchResult, OrderOutcome, OrderRecord, OrderRequest
from models.queue import QueuedFile
from modules.pricing import cost_for_file
from services.storage import make_storage_key
from logging_config import get_logger


logger = get_logger(__name__)


class OutcomeCollector:
    """
    Thread-safe, append-only collection of per-file outcomes.

    Outcomes are keyed by queue position so the batch result lists them in
    queue order no matter which worker finishes first.
    """

    def __init__(self):
        self._outcomes: Dict[int, OrderOutcome] = {}
        self._lock = threading.Lock()

    def add(self, index: int, outcome: OrderOutcome) -> None:
        with self._lock:
            if index in self._outcomes:
                raise ValueError(f"Outcome for position {index} already recorded")
            self._outcomes[index] = outcome

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def to_batch(self) -> OrderBatchResult:
        with self._lock:
            return OrderBatchResult(outcomes=tuple(self._outcomes[i] for i in sorted(self._outcomes)))


class OrderOrchestrator:
    """
    Creates one order per queued file.

    Attributes:
        storage: Object storage with put(key, data, content_type) / delete(key)
        order_store: Record store with insert(record) -> order id
    """

    def __init__(
        self,
        storage,
        order_store,
        max_workers: int = 1,
        compensate_orphans: bool = False,
    ):
        """
        Initialize the orchestrator.

        Args:
            storage: Object storage collaborator
            order_store: Record store collaborator
            max_workers: Files processed concurrently (1 = sequential)
            compensate_orphans: Delete the uploaded blob when its record
                cannot be saved
        """
        self.storage = storage
        self.order_store = order_store
        self._max_workers = max(1, max_workers)
        self._compensate_orphans = compensate_orphans

    def place_orders(self, request: OrderRequest) -> OrderBatchResult:
        """
        Upload and record every file in the request.

        Args:
            request: Frozen submission snapshot

        Returns:
            OrderBatchResult with one outcome per file (at least one success)

        Raises:
            AllOrdersFailed: No file produced an order
        """
        files = list(request.files)
        logger.info(
            f"Placing {len(files)} order(s) for {request.customer_email} "
            f"({request.paper_size}, {request.color_mode})"
        )

        collector = OutcomeCollector()

        if self._max_workers == 1 or len(files) <= 1:
            for index, queued in enumerate(files):
                collector.add(index, self._place_one(queued, request))
        else:
            workers = min(self._max_workers, len(files))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Order") as pool:
                futures = [
                    pool.submit(self._place_one, queued, request)
                    for index, queued in enumerate(files)
                ]
                for index, future in enumerate(futures):
                    collector.add(index, future.result())

        batch = collector.to_batch()
        logger.info(
            f"Order batch complete: {len(batch.successes)} succeeded, "
            f"{len(batch.failures)} failed, total {batch.total_cost}"
        )

        if not batch.successes:
            raise AllOrdersFailed(batch)

        return batch

    def _place_one(self, queued: QueuedFile, request: OrderRequest) -> OrderOutcome:
        """
        Place the order for one file.

        Never raises: every failure becomes a failure outcome.
        """
        cost = cost_for_file(queued.pages, request.price_per_page)

        # =====================================================================
        # STEP 1: Upload bytes
        # =====================================================================
        key = make_storage_key(queued.name)
        try:
            storage_path = self.storage.put(key, queued.content, queued.candidate.content_type)
        except PrintQueueError as e:
            logger.warning(f"Upload failed: {queued.name}: {e.message}")
            return OrderOutcome.failure(queued, cost, f"Upload failed: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected upload error for {queued.name}: {e}", exc_info=True)
            return OrderOutcome.failure(queued, cost, f"Upload failed: {e}")

        # =====================================================================
        # STEP 2: Persist pending order record
        # =====================================================================
        record = OrderRecord(
            file_name=queued.name,
            storage_path=storage_path,
            page_count=queued.pages,
            paper_size=request.paper_size,
            color_mode=request.color_mode,
            cost=cost,
            customer_email=request.customer_email,
        )
        try:
            order_id = self.order_store.insert(record)
        except Exception as e:
            reason = e.reason if isinstance(e, RecordStoreError) else str(e)
            logger.warning(f"Order record not saved for {queued.name}; blob left at {storage_path}: {reason}")
            orphan = self._compensate(storage_path)
            return OrderOutcome.failure(
                queued,
                cost,
                f"Order could not be saved: {reason}",
                storage_path=orphan,
            )

        # =====================================================================
        # STEP 3: Success
        # =====================================================================
        return OrderOutcome.success(queued, cost, order_id, storage_path)

    def _compensate(self, storage_path: str) -> Optional[str]:
        """
        Delete an orphaned blob if compensation is enabled.

        Returns:
            The path still holding an orphaned blob, or None if it was removed
        """
        if not self._compensate_orphans:
            return storage_path
        try:
            self.storage.delete(storage_path)
        except StorageError as e:
            logger.error(f"Could not delete orphaned upload {storage_path}: {e.message}")
            return storage_path
        logger.info(f"Deleted orphaned upload {storage_path}")
        return None


def describe_failures(batch: OrderBatchResult) -> List[str]:
    """One line per failed file, for logs and API responses."""
    return [f"{o.file_name}: {o.failure_reason}" for o in batch.failures]
