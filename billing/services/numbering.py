from __future__ import annotations

import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F

from billing.models import Bill, DocumentCounter
from core.exceptions import ValidationError


logger = logging.getLogger(__name__)

PREFIXES = {
    Bill.Kind.SALE: "BILL",
    Bill.Kind.PURCHASE: "PUR",
}


def prefix_for(kind: str) -> str:
    try:
        return PREFIXES[kind]
    except KeyError:
        raise ValidationError(f"Unknown document kind: '{kind}'.")


def _ensure_counter(prefix: str, year: int) -> None:
    if DocumentCounter.objects.filter(kind=prefix, year=year).exists():
        return
    try:
        with transaction.atomic():
            DocumentCounter.objects.create(kind=prefix, year=year, last_value=0)
    except IntegrityError:
        # Another caller created the row first.
        pass


@transaction.atomic
def next_sequence(kind: str, year: int) -> int:
    """
    Atomic fetch-and-increment of the (kind, year) counter.

    The UPDATE holds the counter row lock until the surrounding transaction
    ends, so concurrent callers serialize and never see the same value. A
    rolled-back bill rolls its increment back with it.
    """
    prefix = prefix_for(kind)
    year = int(year)
    _ensure_counter(prefix, year)
    DocumentCounter.objects.filter(kind=prefix, year=year).update(last_value=F("last_value") + 1)
    return DocumentCounter.objects.values_list("last_value", flat=True).get(kind=prefix, year=year)


def format_number(prefix: str, year: int, sequence: int) -> str:
    padding = getattr(settings, "DOCUMENT_NUMBER_PADDING", 6)
    return f"{prefix}{year}{sequence:0{padding}d}"


def next_document_number(kind: str, year: int) -> str:
    sequence = next_sequence(kind, year)
    number = format_number(prefix_for(kind), int(year), sequence)
    logger.debug("Assigned document number %s", number)
    return number
