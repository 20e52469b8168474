"""
Per-session print queue and submission state machine.

Each browser session gets one SubmissionController, which owns the session's
PrintQueue and current print options. The controller is the only way to
touch the queue, and it gates submission:

    INACTIVE ──(queue gains pages)──> ACTIVE ──(submit)──> PROCESSING
        ^                               ^                      │
        │                               └──────(failure)───────┤
        └──────────── RESET <──────────────(success)───────────┘

Guards:
    - submit() only from ACTIVE
    - PROCESSING rejects submit() and every queue mutation
    - Any mutation outside PROCESSING recomputes INACTIVE/ACTIVE from the queue

Thread Safety:
    - State transitions and queue mutations are serialized by a lock
    - The lock is released while orders are placed, so a concurrent request
      sees PROCESSING instead of blocking

QueueRegistry maps the session's queue id to its controller.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from core.exceptions import (
    InvalidRecipient,
    SubmissionInProgress,
    SubmissionNotAllowed,
    ValidationError,
)
from core.mailer import is_valid_email
from models.order import OrderBatchResult, OrderRequest
from models.queue import PrintQueue, QueuedFile
from modules.intake import accept_files
from modules.notification import DeliveryReceipt
from modules.pricing import (
    DEFAULT_PAPER_SIZE,
    DEFAULT_PRINT_TYPE,
    PAPER_SIZES,
    PRINT_TYPES,
    CostSummary,
    PrintTypeOption,
    summarize,
)
from logging_config import get_logger


logger = get_logger(__name__)


class SubmissionState(Enum):
    """State of the place-order gate."""

    INACTIVE = "inactive"
    """Queue empty (or zero pages); submit disabled."""

    ACTIVE = "active"
    """Queue has pages; submit enabled."""

    PROCESSING = "processing"
    """Submission in flight; submit and mutations disabled."""

    RESET = "reset"
    """Submission succeeded; queue being cleared."""


@dataclass(frozen=True)
class SubmissionReport:
    """Result of a successful submission."""

    batch: OrderBatchResult
    receipt: DeliveryReceipt

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "message": "Your order has been placed! Check your Gmail for confirmation.",
            "batch": self.batch.to_dict(),
            "confirmation": self.receipt.to_dict(),
        }


class SubmissionController:
    """
    Owns one session's queue, print options and submission state.

    Attributes:
        resolver: PageCountResolver for newly added files
        orchestrator: OrderOrchestrator used on submit
        composer: NotificationComposer used after orders are placed
    """

    def __init__(
        self,
        resolver,
        orchestrator,
        composer,
        print_types: Optional[Dict[str, PrintTypeOption]] = None,
    ):
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.composer = composer
        self._print_types = print_types or PRINT_TYPES
        self._queue = PrintQueue()
        self._print_type = self._print_types[DEFAULT_PRINT_TYPE]
        self._paper_size = DEFAULT_PAPER_SIZE
        self._state = SubmissionState.INACTIVE
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def files(self) -> Tuple[QueuedFile, ...]:
        return self._queue.snapshot()

    @property
    def print_type(self) -> PrintTypeOption:
        return self._print_type

    @property
    def paper_size(self) -> str:
        return self._paper_size

    def summary(self) -> CostSummary:
        return summarize(self._queue.snapshot(), self._print_type.price_per_page)

    def to_dict(self) -> dict:
        return {
            "state": self._state.value,
            "files": [f.to_dict() for f in self._queue.snapshot()],
            "print_type": self._print_type.to_dict(),
            "paper_size": self._paper_size,
            "summary": self.summary().to_dict(),
        }

    # -------------------------------------------------------------------------
    # Queue mutations
    # -------------------------------------------------------------------------

    def add_files(self, files: Iterable[Tuple[str, bytes, Optional[str]]]) -> List[QueuedFile]:
        """
        Filter, resolve and queue incoming files.

        Args:
            files: (filename, content, content_type) tuples

        Returns:
            The files that joined the queue, in arrival order
        """
        with self._lock:
            self._guard_mutation()
            candidates = accept_files(self._queue, files)
            results = self.resolver.resolve_many(candidates)

            added: List[QueuedFile] = []
            for candidate, result in zip(candidates, results):
                queued = QueuedFile.from_resolution(candidate, result)
                if self._queue.add(queued):
                    added.append(queued)

            self._recompute_state()
            logger.info(f"Queued {len(added)} file(s); queue now has {len(self._queue)}")
            return added

    def remove_file(self, name: str, size: int) -> bool:
        with self._lock:
            self._guard_mutation()
            removed = self._queue.remove(name, size)
            self._recompute_state()
            return removed

    def select_print_type(self, key: str) -> PrintTypeOption:
        with self._lock:
            self._guard_mutation()
            if not isinstance(key, str) or key not in self._print_types:
                raise ValidationError(f"Unknown print type: {key}", {"allowed": sorted(self._print_types)})
            self._print_type = self._print_types[key]
            self._recompute_state()
            return self._print_type

    def select_paper_size(self, size: str) -> str:
        with self._lock:
            self._guard_mutation()
            if size not in PAPER_SIZES:
                raise ValidationError(f"Unknown paper size: {size}", {"allowed": list(PAPER_SIZES)})
            self._paper_size = size
            return self._paper_size

    def reset(self) -> None:
        """Clear the queue (the "back to main page" action)."""
        with self._lock:
            self._guard_mutation()
            self._queue.clear()
            self._recompute_state()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit(self, customer_email: str) -> SubmissionReport:
        """
        Place one order per queued file and send one confirmation.

        Returns:
            SubmissionReport (queue has been cleared)

        Raises:
            SubmissionInProgress: Another submission is running
            SubmissionNotAllowed: Queue is not ACTIVE
            ValidationError / InvalidRecipient: Bad customer email
            AllOrdersFailed: Nothing was ordered; queue unchanged
            NotificationFailed: Orders placed but confirmation undelivered;
                queue has been cleared, ``batch`` is attached
        """
        email = (customer_email or "").strip()

        with self._lock:
            if self._state is SubmissionState.PROCESSING:
                raise SubmissionInProgress()
            if self._state is not SubmissionState.ACTIVE:
                raise SubmissionNotAllowed(self._state.value)
            if not email:
                raise ValidationError("Please enter a Gmail address.")
            if not is_valid_email(email):
                raise InvalidRecipient(email)

            request = OrderRequest(
                files=self._queue.snapshot(),
                customer_email=email,
                paper_size=self._paper_size,
                color_mode=self._print_type.label,
                price_per_page=self._print_type.price_per_page,
            )
            self._transition(SubmissionState.PROCESSING)

        try:
            batch = self.orchestrator.place_orders(request)
        except Exception as e:
            logger.error(f"Submission failed: {e}")
            with self._lock:
                self._transition(SubmissionState.ACTIVE)
                self._recompute_state()
            raise

        # Orders exist from here on: always leave PROCESSING through RESET
        try:
            receipt = self.composer.send_confirmation(email, batch)
        except Exception:
            logger.error(
                f"Orders placed but confirmation to {email} was not delivered; "
                f"{len(batch.successes)} order(s) need manual follow-up"
            )
            raise
        finally:
            self._finish()

        return SubmissionReport(batch=batch, receipt=receipt)

    # -------------------------------------------------------------------------
    # Internals (call with lock held unless noted)
    # -------------------------------------------------------------------------

    def _guard_mutation(self) -> None:
        if self._state is SubmissionState.PROCESSING:
            raise SubmissionInProgress()

    def _recompute_state(self) -> None:
        if self._state is SubmissionState.PROCESSING:
            return
        if len(self._queue) > 0 and self._queue.total_pages > 0:
            self._transition(SubmissionState.ACTIVE)
        else:
            self._transition(SubmissionState.INACTIVE)

    def _transition(self, new_state: SubmissionState) -> None:
        if new_state is not self._state:
            logger.debug(f"Submission state {self._state.value} -> {new_state.value}")
        self._state = new_state

    def _finish(self) -> None:
        """Move PROCESSING -> RESET -> INACTIVE, clearing the queue. Takes the lock."""
        with self._lock:
            self._transition(SubmissionState.RESET)
            self._queue.clear()
            self._recompute_state()


class QueueRegistry:
    """
    Thread-safe map from session queue id to SubmissionController.

    Controllers are created lazily with the factory passed at construction.
    Controllers untouched for longer than ``idle_ttl_seconds`` are evicted on
    the next lookup, unless a submission is still in flight.
    """

    def __init__(
        self,
        factory: Callable[[], SubmissionController],
        idle_ttl_seconds: Optional[float] = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory
        self._idle_ttl = idle_ttl_seconds
        self._clock = clock
        self._controllers: Dict[str, SubmissionController] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def get(self, queue_id: str) -> SubmissionController:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)

            controller = self._controllers.get(queue_id)
            if controller is None:
                controller = self._factory()
                self._controllers[queue_id] = controller
                logger.debug(f"Created queue {queue_id[:8]}")
            self._last_seen[queue_id] = now
            return controller

    def discard(self, queue_id: str) -> bool:
        with self._lock:
            self._last_seen.pop(queue_id, None)
            return self._controllers.pop(queue_id, None) is not None

    def evict_idle(self) -> int:
        """Drop idle controllers now. Returns how many were evicted."""
        with self._lock:
            return self._evict_idle(self._clock())

    def _evict_idle(self, now: float) -> int:
        if not self._idle_ttl:
            return 0

        expired = [
            queue_id
            for queue_id, seen in self._last_seen.items()
            if now - seen > self._idle_ttl
            and self._controllers[queue_id].state is not SubmissionState.PROCESSING
        ]
        for queue_id in expired:
            del self._controllers[queue_id]
            del self._last_seen[queue_id]

        if expired:
            logger.info(f"Evicted {len(expired)} idle queue(s); {len(self._controllers)} remain")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)
