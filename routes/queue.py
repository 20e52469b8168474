"""
Print queue routes.

Handles:
- GET  /queue          - Current queue, options and cost summary
- POST /queue/files    - Add files (multipart ``files``)
- POST /queue/remove   - Remove one file by name and size
- POST /queue/options  - Change print type and/or paper size
- POST /queue/submit   - Place orders and send the confirmation
- POST /queue/reset    - Empty the queue

Each browser session owns one SubmissionController, looked up in the
QueueRegistry by the ``queue_id`` stored in the Flask session.
"""

import uuid

from flask import Blueprint, current_app, jsonify, request, session

from core.exceptions import NoFileProvided, UnavailableDependency, ValidationError
from modules.pricing import PAPER_SIZES, format_amount, price_options
from services.order_service import describe_failures
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

queue_bp = Blueprint("queue", __name__)


def _current_controller():
    """Controller for this session, creating the session's queue id on first use."""
    registry = current_app.config.get("QUEUE_REGISTRY")
    if registry is None:
        raise UnavailableDependency("Queue service unavailable")

    queue_id = session.get("queue_id")
    if not queue_id:
        queue_id = uuid.uuid4().hex
        session["queue_id"] = queue_id
        session.modified = True

    return registry.get(queue_id)


def _queue_body(controller) -> dict:
    body = controller.to_dict()
    summary = controller.summary()
    body["total_display"] = format_amount(summary.total_cost, current_app.config["CURRENCY_SYMBOL"])
    return body


@queue_bp.route("/queue", methods=["GET"])
def show_queue():
    controller = _current_controller()
    return jsonify({
        "ok": True,
        "queue": _queue_body(controller),
        "print_types": price_options(current_app.config["PRINT_TYPES"]),
        "paper_sizes": list(PAPER_SIZES),
    })


@queue_bp.route("/queue/files", methods=["POST"])
def add_files():
    """
    Add uploaded files to the queue.

    Unsupported types and duplicates (same name and size) are dropped
    silently; the response lists only the files that were queued.
    """
    uploads = [f for f in request.files.getlist("files") if f and f.filename]
    if not uploads:
        raise NoFileProvided("No files uploaded")

    controller = _current_controller()
    added = controller.add_files(
        (upload.filename, upload.read(), upload.mimetype) for upload in uploads
    )
    logger.info(f"{len(added)} of {len(uploads)} upload(s) queued")

    return jsonify({
        "ok": True,
        "added": [queued.to_dict() for queued in added],
        "queue": _queue_body(controller),
    })


@queue_bp.route("/queue/remove", methods=["POST"])
def remove_file():
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    try:
        size = int(data.get("size"))
    except (TypeError, ValueError):
        raise ValidationError("Both 'name' and a numeric 'size' are required")
    if not name:
        raise ValidationError("Both 'name' and a numeric 'size' are required")

    controller = _current_controller()
    removed = controller.remove_file(name, size)
    return jsonify({"ok": True, "removed": removed, "queue": _queue_body(controller)})


@queue_bp.route("/queue/options", methods=["POST"])
def set_options():
    data = request.get_json(silent=True) or {}
    print_type = data.get("print_type")
    paper_size = data.get("paper_size")
    for field, value in (("print_type", print_type), ("paper_size", paper_size)):
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"'{field}' must be a string")

    controller = _current_controller()
    if print_type:
        controller.select_print_type(print_type)
    if paper_size:
        controller.select_paper_size(paper_size)

    return jsonify({"ok": True, "queue": _queue_body(controller)})


@queue_bp.route("/queue/submit", methods=["POST"])
def submit():
    """
    Place one order per queued file and send one confirmation.

    AllOrdersFailed and NotificationFailed reach the error handler with the
    batch attached, so the caller still sees per-file outcomes.
    """
    data = request.get_json(silent=True) or {}
    controller = _current_controller()

    report = controller.submit(data.get("email", ""))

    failures = describe_failures(report.batch)
    if failures:
        logger.warning(f"Submission finished with {len(failures)} failed file(s): {failures}")

    body = report.to_dict()
    body["queue"] = _queue_body(controller)
    return jsonify(body)


@queue_bp.route("/queue/reset", methods=["POST"])
def reset():
    controller = _current_controller()
    controller.reset()
    return jsonify({"ok": True, "queue": _queue_body(controller)})
