"""
Aging report over open udhari entries.

Entries are grouped by days past due. A boundary day belongs to the lower
bucket (30 days overdue is 0-30, 31 is 30-60). Entries with no due date or
a due date in the future are "current".
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from billing.models import Bill
from billing.services.calculator import ZERO, money
from udhari.models import CreditLedgerEntry
from udhari.services.ledger import local_today


CURRENT = "current"
BUCKETS = (CURRENT, "0-30", "30-60", "60-90", "90+")


def days_overdue(due_date, today) -> int | None:
    if due_date is None:
        return None
    return (today - due_date).days


def bucket_for(days: int | None) -> str:
    if days is None or days < 0:
        return CURRENT
    if days <= 30:
        return "0-30"
    if days <= 60:
        return "30-60"
    if days <= 90:
        return "60-90"
    return "90+"


def build_aging_report(entries: Iterable, *, now=None) -> dict:
    """
    Bucket entries by how far past due they are.

    Each entry needs `pending_amount`, `due_date` and `status`. Paid or
    settled entries are skipped. Every bucket is present, zero-filled.
    """
    today = local_today(now)
    report = {bucket: {"count": 0, "total_amount": ZERO} for bucket in BUCKETS}
    for entry in entries:
        pending = money(entry.pending_amount)
        if entry.status == CreditLedgerEntry.Status.PAID or pending <= 0:
            continue
        row = report[bucket_for(days_overdue(entry.due_date, today))]
        row["count"] += 1
        row["total_amount"] = money(row["total_amount"] + pending)
    return report


def report_total(report: dict) -> Decimal:
    return money(sum((row["total_amount"] for row in report.values()), ZERO))


def aging_report(*, now=None, kind: str = Bill.Kind.SALE) -> dict:
    entries = (
        CreditLedgerEntry.objects.filter(kind=kind, status__in=CreditLedgerEntry.OPEN_STATUSES)
        .only("pending_amount", "due_date", "status")
    )
    return build_aging_report(entries, now=now)
