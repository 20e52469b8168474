"""
Unit tests for the submission state machine.

Uses the real resolver, orchestrator (local storage + SQLite) and composer;
only the conversion client and the mailer are mocked.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from core.exceptions import (
    AllOrdersFailed,
    ConversionTimeout,
    InvalidRecipient,
    NotificationFailed,
    StorageError,
    SubmissionInProgress,
    SubmissionNotAllowed,
    ValidationError,
)
from core.mailer import SmtpMailer
from models.order import OrderBatchResult, OrderOutcome
from models.queue import ResolutionStatus
from modules.notification import NotificationComposer
from modules.page_counter import PageCountResolver
from modules.pricing import build_print_types
from services.order_service import OrderOrchestrator
from services.order_store import SQLiteOrderStore
from services.storage import LocalObjectStorage
from services.submission import QueueRegistry, SubmissionController, SubmissionState


# Fixtures

@pytest.fixture
def conversion_client():
    """Conversion client reporting 2 pages for every DOCX."""
    client = MagicMock()
    client.count_pages.return_value = 2
    return client


@pytest.fixture
def mailer():
    mock_mailer = MagicMock()
    mock_mailer.send.return_value = "<confirm-1@printq>"
    return mock_mailer


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(tmp_path / "storage", "ready2print-files")


@pytest.fixture
def order_store(tmp_path):
    return SQLiteOrderStore(tmp_path / "orders.db")


@pytest.fixture
def make_controller(conversion_client, storage, order_store, mailer):
    """Factory; pass ``orchestrator=`` or ``composer=`` to replace the real one."""
    def _make(orchestrator=None, composer=None) -> SubmissionController:
        return SubmissionController(
            resolver=PageCountResolver(conversion_client, max_workers=2),
            orchestrator=orchestrator or OrderOrchestrator(storage, order_store),
            composer=composer or NotificationComposer(mailer, "₱"),
            print_types=build_print_types("2.00", "5.00"),
        )
    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()


@pytest.fixture
def six_pages(make_pdf):
    """A 3-page PDF, a DOCX (2 pages via the client) and an image."""
    return [
        ("A.pdf", make_pdf(3), "application/pdf"),
        ("B.docx", b"PK\x03\x04docx-body", None),
        ("C.png", b"\x89PNG\r\n\x1a\n", "image/png"),
    ]


# Tests for queue mutations

class TestQueueMutations:
    """State follows queue contents outside of a submission."""

    def test_starts_inactive(self, controller):
        assert controller.state is SubmissionState.INACTIVE
        assert controller.summary().total_pages == 0

    def test_adding_files_activates(self, controller, six_pages):
        added = controller.add_files(six_pages)

        assert [f.name for f in added] == ["A.pdf", "B.docx", "C.png"]
        assert [f.pages for f in added] == [3, 2, 1]
        assert controller.state is SubmissionState.ACTIVE

        summary = controller.summary()
        assert summary.total_pages == 6
        assert summary.total_cost == Decimal("12.00")

    def test_duplicates_and_unsupported_ignored(self, controller, six_pages):
        controller.add_files(six_pages)

        added = controller.add_files(six_pages + [("notes.txt", b"hello", None)])

        assert added == []
        assert len(controller.files) == 3

    def test_docx_timeout_defaults_to_one_page(self, controller, conversion_client):
        conversion_client.count_pages.side_effect = ConversionTimeout(60)

        added = controller.add_files([("slow.docx", b"PK\x03\x04", None)])

        assert added[0].pages == 1
        assert added[0].status is ResolutionStatus.DEFAULTED_AFTER_FAILURE
        assert controller.state is SubmissionState.ACTIVE

    def test_removing_last_file_deactivates(self, controller):
        controller.add_files([("a.png", b"png", None)])

        assert controller.remove_file("a.png", 3) is True
        assert controller.state is SubmissionState.INACTIVE

    def test_remove_unknown_file(self, controller):
        assert controller.remove_file("ghost.pdf", 10) is False

    def test_price_change_recomputes_total(self, controller, six_pages):
        controller.add_files(six_pages)

        option = controller.select_print_type("color")

        assert option.label == "Colored"
        assert controller.summary().total_cost == Decimal("30.00")

    def test_unknown_print_type(self, controller):
        with pytest.raises(ValidationError):
            controller.select_print_type("sepia")

    def test_paper_size(self, controller):
        assert controller.select_paper_size("A4") == "A4"
        with pytest.raises(ValidationError):
            controller.select_paper_size("A3")

    def test_reset_empties_queue(self, controller, six_pages):
        controller.add_files(six_pages)

        controller.reset()

        assert controller.files == ()
        assert controller.state is SubmissionState.INACTIVE

    def test_to_dict(self, controller, six_pages):
        controller.add_files(six_pages)

        body = controller.to_dict()

        assert body["state"] == "active"
        assert len(body["files"]) == 3
        assert body["paper_size"] == "Letter"
        assert body["print_type"]["key"] == "bw"
        assert body["summary"]["total_cost"] == "12.00"


# Tests for submission

class TestSubmit:
    """Submission outcomes."""

    def test_full_submission(self, controller, six_pages, mailer, order_store, order_rows):
        """Test 6 pages at 2.00: three orders, one email, queue reset."""
        controller.add_files(six_pages)

        report = controller.submit("jane@gmail.com")

        assert len(report.batch.successes) == 3
        assert report.batch.total_cost == Decimal("12.00")
        assert report.receipt.message_id == "<confirm-1@printq>"
        assert len(order_rows(order_store.db_path)) == 3

        mailer.send.assert_called_once()
        to, subject, body = mailer.send.call_args[0]
        assert to == "jane@gmail.com"
        assert "Total amount to pay: ₱12.00" in body

        assert controller.files == ()
        assert controller.state is SubmissionState.INACTIVE

    def test_request_snapshot(self, make_controller, six_pages):
        """Test the orchestrator receives a frozen copy of the queue and options."""
        orchestrator = MagicMock()
        orchestrator.place_orders.return_value = OrderBatchResult(outcomes=(
            OrderOutcome(file_name="A.pdf", pages=3, cost=Decimal("15.00"), order_id="1"),
        ))
        controller = make_controller(orchestrator)
        controller.add_files(six_pages)
        controller.select_print_type("color")
        controller.select_paper_size("Legal")

        controller.submit("  jane@gmail.com  ")

        request = orchestrator.place_orders.call_args[0][0]
        assert [f.name for f in request.files] == ["A.pdf", "B.docx", "C.png"]
        assert request.customer_email == "jane@gmail.com"
        assert request.paper_size == "Legal"
        assert request.color_mode == "Colored"
        assert request.price_per_page == Decimal("5.00")

    def test_submit_when_inactive(self, controller, mailer):
        with pytest.raises(SubmissionNotAllowed) as exc_info:
            controller.submit("jane@gmail.com")

        assert exc_info.value.state == "inactive"
        mailer.send.assert_not_called()

    def test_invalid_email(self, controller, six_pages):
        controller.add_files(six_pages)

        with pytest.raises(InvalidRecipient):
            controller.submit("jane-at-gmail")

        assert controller.state is SubmissionState.ACTIVE

    def test_missing_email(self, controller, six_pages):
        controller.add_files(six_pages)

        with pytest.raises(ValidationError):
            controller.submit("")

        assert controller.state is SubmissionState.ACTIVE

    def test_all_orders_fail(self, make_controller, six_pages, order_store, mailer, order_rows):
        """Test total failure: queue kept, back to active, no email."""
        failing_storage = MagicMock()
        failing_storage.put.side_effect = StorageError("k", "bucket unreachable")
        controller = make_controller(OrderOrchestrator(failing_storage, order_store))
        controller.add_files(six_pages)

        with pytest.raises(AllOrdersFailed):
            controller.submit("jane@gmail.com")

        assert controller.state is SubmissionState.ACTIVE
        assert len(controller.files) == 3
        assert len(order_rows(order_store.db_path)) == 0
        mailer.send.assert_not_called()

    def test_notification_failure_after_orders(self, controller, mailer, order_store, order_rows):
        """Test orders stay placed and the queue resets when the email fails."""
        mailer.send.side_effect = NotificationFailed("smtp down")
        controller.add_files([("a.png", b"png", None)])

        with pytest.raises(NotificationFailed) as exc_info:
            controller.submit("jane@gmail.com")

        assert len(exc_info.value.batch.successes) == 1
        assert len(order_rows(order_store.db_path)) == 1
        assert controller.files == ()
        assert controller.state is SubmissionState.INACTIVE

    def test_unexpected_mailer_error_still_resets(self, controller, mailer, order_rows, order_store):
        """Test a raw mailer error ends the submission in RESET, never PROCESSING."""
        mailer.send.side_effect = RuntimeError("mailer crashed")
        controller.add_files([("a.png", b"png", None)])

        with pytest.raises(NotificationFailed) as exc_info:
            controller.submit("jane@gmail.com")

        assert len(exc_info.value.batch.successes) == 1
        assert len(order_rows(order_store.db_path)) == 1
        assert controller.state is SubmissionState.INACTIVE

        controller.reset()
        controller.add_files([("b.png", b"png", None)])
        assert controller.state is SubmissionState.ACTIVE

    def test_unreadable_payment_qr_still_resets(self, make_controller, tmp_path):
        """Test an attachment that cannot be read fails the email, not the session."""
        qr_dir = tmp_path / "GCash-MyQR.jpg"
        qr_dir.mkdir()
        controller = make_controller(
            composer=NotificationComposer(SmtpMailer("shop@gmail.com", "pw", attachment_path=qr_dir), "₱")
        )
        controller.add_files([("a.png", b"png", None)])

        with patch("core.mailer.smtplib.SMTP_SSL") as smtp_class:
            with pytest.raises(NotificationFailed):
                controller.submit("jane@gmail.com")

        smtp_class.assert_not_called()
        assert controller.state is SubmissionState.INACTIVE

    def test_composer_crash_still_resets(self, make_controller):
        composer = MagicMock()
        composer.send_confirmation.side_effect = RuntimeError("boom")
        controller = make_controller(composer=composer)
        controller.add_files([("a.png", b"png", None)])

        with pytest.raises(RuntimeError):
            controller.submit("jane@gmail.com")

        assert controller.state is SubmissionState.INACTIVE
        assert controller.files == ()

    def test_unexpected_error_returns_to_active(self, make_controller, six_pages):
        orchestrator = MagicMock()
        orchestrator.place_orders.side_effect = RuntimeError("boom")
        controller = make_controller(orchestrator)
        controller.add_files(six_pages)

        with pytest.raises(RuntimeError):
            controller.submit("jane@gmail.com")

        assert controller.state is SubmissionState.ACTIVE
        assert len(controller.files) == 3


class TestProcessingGuard:
    """Nothing may touch the queue while a submission is in flight."""

    def test_mutations_rejected_while_processing(self, make_controller, six_pages):
        entered = threading.Event()
        release = threading.Event()

        def place_orders(request):
            entered.set()
            release.wait(5)
            return OrderBatchResult(outcomes=(
                OrderOutcome(file_name="A.pdf", pages=3, cost=Decimal("6.00"), order_id="1"),
            ))

        orchestrator = MagicMock()
        orchestrator.place_orders.side_effect = place_orders
        controller = make_controller(orchestrator)
        controller.add_files(six_pages)

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(controller.submit, "jane@gmail.com")
            assert entered.wait(5)

            try:
                assert controller.state is SubmissionState.PROCESSING
                with pytest.raises(SubmissionInProgress):
                    controller.submit("jane@gmail.com")
                with pytest.raises(SubmissionInProgress):
                    controller.add_files([("new.png", b"new", None)])
                with pytest.raises(SubmissionInProgress):
                    controller.remove_file("C.png", 8)
                with pytest.raises(SubmissionInProgress):
                    controller.select_print_type("color")
                with pytest.raises(SubmissionInProgress):
                    controller.reset()
            finally:
                release.set()

            report = future.result(timeout=5)

        assert len(report.batch.successes) == 1
        assert controller.state is SubmissionState.INACTIVE
        orchestrator.place_orders.assert_called_once()


class TestQueueRegistry:

    def test_same_id_same_controller(self, make_controller):
        registry = QueueRegistry(make_controller)

        assert registry.get("abc") is registry.get("abc")
        assert registry.get("abc") is not registry.get("def")
        assert len(registry) == 2

    def test_discard(self, make_controller):
        registry = QueueRegistry(make_controller)
        registry.get("abc")

        assert registry.discard("abc") is True
        assert registry.discard("abc") is False
        assert len(registry) == 0

    def test_idle_queues_evicted(self, make_controller):
        """Test a queue untouched past the TTL is dropped on the next lookup."""
        now = [0.0]
        registry = QueueRegistry(make_controller, idle_ttl_seconds=60, clock=lambda: now[0])
        stale = registry.get("stale")
        registry.get("fresh")

        now[0] = 50.0
        registry.get("fresh")
        now[0] = 100.0
        registry.get("fresh")

        assert len(registry) == 1
        assert registry.get("stale") is not stale

    def test_processing_queue_not_evicted(self, make_controller):
        now = [0.0]
        registry = QueueRegistry(make_controller, idle_ttl_seconds=60, clock=lambda: now[0])
        busy = registry.get("busy")
        busy._state = SubmissionState.PROCESSING

        now[0] = 500.0

        assert registry.evict_idle() == 0
        assert registry.get("busy") is busy

    def test_evict_idle(self, make_controller):
        now = [0.0]
        registry = QueueRegistry(make_controller, idle_ttl_seconds=60, clock=lambda: now[0])
        registry.get("a")
        registry.get("b")

        now[0] = 61.0

        assert registry.evict_idle() == 2
        assert len(registry) == 0

    def test_eviction_disabled(self, make_controller):
        now = [0.0]
        registry = QueueRegistry(make_controller, idle_ttl_seconds=0, clock=lambda: now[0])
        registry.get("a")

        now[0] = 1e9

        assert registry.evict_idle() == 0
        assert len(registry) == 1
