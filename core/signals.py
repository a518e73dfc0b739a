"""
Domain events consumed by the notification collaborator.

Events are dispatched only after the surrounding transaction commits and with
`send_robust`, so a failing receiver is logged and never fails the operation
that produced the event.
"""
from __future__ import annotations

import logging

from django.db import transaction
from django.dispatch import Signal


logger = logging.getLogger(__name__)

# payload: product_id, product_name, stock, min_stock
low_stock_crossed = Signal()

# payload: bill_id, bill_number, entry_id, amount, mode, paid_amount, pending_amount
payment_received = Signal()

# payload: entry_id, bill_number, party_name, phone, pending_amount, due_date, channel
payment_reminder = Signal()


def dispatch(signal: Signal, sender, **payload) -> list:
    responses = signal.send_robust(sender=sender, **payload)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                "Notification receiver %r failed: %s",
                receiver,
                response,
                exc_info=(type(response), response, response.__traceback__),
            )
    return responses


def emit_on_commit(signal: Signal, sender, **payload) -> None:
    transaction.on_commit(lambda: dispatch(signal, sender, **payload))
