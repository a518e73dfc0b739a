"""
Receivers that turn domain signals into feed rows.

They run from `transaction.on_commit` via `send_robust`; an exception here is
logged by `core.signals.dispatch` and never reaches the caller.
"""
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.dispatch import receiver

from core.signals import low_stock_crossed, payment_received, payment_reminder
from notifications.models import Notification


logger = logging.getLogger(__name__)


def _jsonable(payload: dict) -> dict:
    encoder = DjangoJSONEncoder()
    return {
        key: value if isinstance(value, (str, int, bool, type(None))) else encoder.default(value)
        for key, value in payload.items()
    }


def _record(type_: str, title: str, body: str, payload: dict) -> Notification:
    notification = Notification.objects.create(
        type=type_,
        title=title,
        body=body,
        payload=_jsonable(payload),
    )
    logger.info("Notification %s: %s", type_, title)
    return notification


@receiver(low_stock_crossed, dispatch_uid="notifications.low_stock")
def notify_low_stock(sender, product_id, product_name, stock, min_stock, **kwargs):
    return _record(
        Notification.Type.LOW_STOCK,
        f"Low stock: {product_name}",
        f"Only {stock} left (minimum {min_stock}).",
        {"product_id": product_id, "stock": stock, "min_stock": min_stock},
    )


@receiver(payment_received, dispatch_uid="notifications.payment_received")
def notify_payment_received(sender, bill_id, bill_number, amount, mode, pending_amount, entry_id=None, **kwargs):
    return _record(
        Notification.Type.PAYMENT_RECEIVED,
        f"Payment received: {bill_number}",
        f"{amount} via {mode}. Pending: {pending_amount}.",
        {
            "bill_id": bill_id,
            "bill_number": bill_number,
            "entry_id": entry_id,
            "amount": amount,
            "mode": mode,
            "pending_amount": pending_amount,
        },
    )


@receiver(payment_reminder, dispatch_uid="notifications.payment_reminder")
def notify_payment_reminder(sender, entry_id, bill_number, party_name, phone, pending_amount, due_date, channel, **kwargs):
    return _record(
        Notification.Type.PAYMENT_REMINDER,
        f"Reminder sent to {party_name}",
        f"{bill_number}: {pending_amount} pending via {channel}.",
        {
            "entry_id": entry_id,
            "bill_number": bill_number,
            "phone": phone,
            "pending_amount": pending_amount,
            "due_date": due_date,
            "channel": channel,
        },
    )
