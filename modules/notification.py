"""
Order confirmation composer.

Builds one message covering every successful order in a batch and asks the
mailer to deliver it. Failed files are left out of the message and the
total; the caller already has them in the batch result.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.exceptions import NotificationFailed, PrintQueueError
from models.order import OrderBatchResult
from modules.pricing import format_amount
from logging_config import get_logger


logger = get_logger(__name__)

CONFIRMATION_HEADER = "Your files have been received and are ready to print:\n"
CONFIRMATION_FOOTER = "\nScan the attached QR to pay.\nThis message is system generated."


@dataclass(frozen=True)
class ConfirmationMessage:
    subject: str
    body: str


@dataclass(frozen=True)
class DeliveryReceipt:
    recipient: str
    message_id: str

    def to_dict(self) -> dict:
        return {"recipient": self.recipient, "message_id": self.message_id}


def compose_confirmation(batch: OrderBatchResult, currency_symbol: str = "₱") -> ConfirmationMessage:
    """
    Build the confirmation for the successful entries of a batch.

    Example body:
        Your files have been received and are ready to print:

        • A.pdf - 3 page(s) - ₱6.00 (Order ID: 17)

        Total amount to pay: ₱6.00
        ...
    """
    successes = batch.successes
    lines = [CONFIRMATION_HEADER]
    for outcome in successes:
        lines.append(
            f"• {outcome.file_name} - {outcome.pages} page(s) - "
            f"{format_amount(outcome.cost, currency_symbol)} (Order ID: {outcome.order_id})"
        )
    lines.append(f"\nTotal amount to pay: {format_amount(batch.total_cost, currency_symbol)}")
    lines.append(CONFIRMATION_FOOTER)

    return ConfirmationMessage(
        subject=f"PrintQ Order Confirmation - {len(successes)} file(s)",
        body="\n".join(lines),
    )


class NotificationComposer:
    """Composes the batch confirmation and sends it through a mailer."""

    def __init__(self, mailer, currency_symbol: str = "₱"):
        self._mailer = mailer
        self._currency_symbol = currency_symbol

    def send_confirmation(self, recipient: str, batch: OrderBatchResult) -> DeliveryReceipt:
        """
        Deliver one confirmation for the batch.

        Raises:
            NotificationFailed: Any delivery problem, including a missing
                email configuration or an unexpected mailer error. Orders
                in the batch are unaffected.
        """
        message = compose_confirmation(batch, self._currency_symbol)

        try:
            message_id = self._mailer.send(recipient, message.subject, message.body)
        except NotificationFailed as e:
            e.batch = batch
            raise
        except PrintQueueError as e:
            logger.error(f"Confirmation to {recipient} not sent: {e.message}")
            raise NotificationFailed(e.message, recipient=recipient, batch=batch) from e
        except Exception as e:
            logger.exception(f"Unexpected error sending confirmation to {recipient}")
            raise NotificationFailed(str(e), recipient=recipient, batch=batch) from e

        logger.info(f"Confirmation sent to {recipient} for {len(batch.successes)} order(s)")
        return DeliveryReceipt(recipient=recipient, message_id=message_id)
