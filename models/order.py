"""
Order data models.

These models represent a submission as it flows through order placement:
OrderRequest (frozen at submit) -> OrderRecord (one per uploaded file)
-> OrderOutcome (per-file result) -> OrderBatchResult (aggregate).

Thread Safety:
    - OrderRequest, OrderRecord and OrderOutcome are frozen and safe to pass
      to per-file worker threads
    - OrderBatchResult is built once all workers have finished
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List, Optional, Tuple

from .queue import QueuedFile


ORDER_STATUS_PENDING = "pending"


@dataclass(frozen=True)
class OrderRequest:
    """
    Immutable snapshot of a queue at submission time.

    The orchestrator works only from this object, never from the live queue.
    """

    files: Tuple[QueuedFile, ...]
    """Queued files in queue order."""

    customer_email: str
    """Validated customer identity."""

    paper_size: str
    """Selected paper size (e.g., 'Letter')."""

    color_mode: str
    """Human-readable color mode (e.g., 'Black & White')."""

    price_per_page: Decimal
    """Unit price in effect for the whole batch."""


@dataclass(frozen=True)
class OrderRecord:
    """
    A pending print order for one uploaded file.

    Created only after the file's bytes are in storage. Fulfillment
    happens elsewhere; this service never updates or deletes records.
    """

    file_name: str
    storage_path: str
    page_count: int
    paper_size: str
    color_mode: str
    cost: Decimal
    customer_email: str
    status: str = ORDER_STATUS_PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "storage_path": self.storage_path,
            "page_count": self.page_count,
            "paper_size": self.paper_size,
            "color_mode": self.color_mode,
            "cost": str(self.cost),
            "customer_email": self.customer_email,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class OrderOutcome:
    """Result of placing the order for one file."""

    file_name: str
    pages: int
    cost: Decimal
    order_id: Optional[str] = None
    failure_reason: Optional[str] = None
    storage_path: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.order_id is not None

    @classmethod
    def success(cls, queued: QueuedFile, cost: Decimal, order_id: str, storage_path: str) -> "OrderOutcome":
        return cls(
            file_name=queued.name,
            pages=queued.pages,
            cost=cost,
            order_id=str(order_id),
            storage_path=storage_path,
        )

    @classmethod
    def failure(
        cls,
        queued: QueuedFile,
        cost: Decimal,
        reason: str,
        storage_path: Optional[str] = None,
    ) -> "OrderOutcome":
        return cls(
            file_name=queued.name,
            pages=queued.pages,
            cost=cost,
            failure_reason=reason,
            storage_path=storage_path,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "pages": self.pages,
            "cost": str(self.cost),
            "order_id": self.order_id,
            "failure_reason": self.failure_reason,
        }


@dataclass(frozen=True)
class OrderBatchResult:
    """
    Aggregated outcome of one submission.

    Partial failure is always visible here: every queued file has exactly
    one outcome, in queue order.
    """

    outcomes: Tuple[OrderOutcome, ...] = ()

    @property
    def successes(self) -> List[OrderOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failures(self) -> List[OrderOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def total_cost(self) -> Decimal:
        """Sum of cost over successful entries only."""
        return sum((o.cost for o in self.successes), Decimal("0"))

    @property
    def total_pages(self) -> int:
        return sum(o.pages for o in self.successes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcomes": [o.to_dict() for o in self.outcomes],
            "succeeded": len(self.successes),
            "failed": len(self.failures),
            "total_pages": self.total_pages,
            "total_cost": str(self.total_cost),
        }
