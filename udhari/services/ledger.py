from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q, Sum
from django.utils import timezone

from billing.models import Bill, BillPayment
from billing.serializers import PaymentInputSerializer
from billing.services.calculator import derive_payment_state, money
from core.exceptions import DomainError, NotFound, OverpaymentRejected, ValidationError
from core.signals import emit_on_commit, payment_received, payment_reminder
from udhari.models import CreditLedgerEntry, LedgerPayment
from udhari.serializers import EntryUpdateSerializer


logger = logging.getLogger(__name__)

Status = CreditLedgerEntry.Status

REMINDER_CHANNELS = ("whatsapp", "sms", "both")
ENTRY_EDITABLE_FIELDS = ("notes", "due_date")
DERIVED_FIELDS = ["paid_amount", "pending_amount", "status", "updated_at"]


def local_today(now=None) -> date:
    if now is None:
        return timezone.localdate()
    if isinstance(now, datetime):
        return timezone.localdate(now) if timezone.is_aware(now) else now.date()
    return now


def compute_status(*, pending_amount, paid_amount, due_date, now=None) -> str:
    """
    Status of an udhari entry.

    paid once nothing is pending, partial once anything was paid, overdue
    when nothing was paid and the due date is behind us, pending otherwise.
    """
    if money(pending_amount) <= 0:
        return Status.PAID
    if money(paid_amount) > 0:
        return Status.PARTIAL
    if due_date and due_date < local_today(now):
        return Status.OVERDUE
    return Status.PENDING


def recompute_entry(entry: CreditLedgerEntry, now=None) -> bool:
    """Re-derive paid/pending/status from the payments list. Returns True when anything changed."""
    amounts = list(entry.payments.values_list("amount", flat=True)) if entry.pk else []
    state = derive_payment_state(entry.total_amount, amounts)
    status = compute_status(
        pending_amount=state.pending_amount,
        paid_amount=state.paid_amount,
        due_date=entry.due_date,
        now=now,
    )
    before = (entry.paid_amount, entry.pending_amount, entry.status)
    entry.paid_amount = state.paid_amount
    entry.pending_amount = state.pending_amount
    entry.status = status
    return before != (entry.paid_amount, entry.pending_amount, entry.status)


def get_entry(entry_id) -> CreditLedgerEntry:
    entry = CreditLedgerEntry.objects.filter(pk=entry_id).first()
    if entry is None:
        raise NotFound("Udhari record not found", details={"entry_id": entry_id})
    return entry


def open_entry(bill: Bill, *, due_date=None, notes: str = "", now=None) -> CreditLedgerEntry:
    """
    Open the udhari entry for a finalized bill with a balance.

    Payments already on the bill are mirrored into the entry so both
    records agree from the start.
    """
    if bill.is_draft:
        raise ValidationError("Drafts cannot carry udhari.")
    if not bill.party_phone:
        raise ValidationError("A phone number is required to record udhari.")
    if CreditLedgerEntry.objects.filter(bill=bill).exists():
        raise ValidationError(f"Bill {bill.number} already has an udhari entry.")

    now = now or timezone.now()
    if due_date is None:
        due_date = local_today(now) + timedelta(days=settings.UDHARI_DEFAULT_CREDIT_DAYS)

    with transaction.atomic():
        entry = CreditLedgerEntry(
            bill=bill,
            kind=bill.kind,
            party_name=bill.party_name,
            phone=bill.party_phone,
            bill_number=bill.number,
            total_amount=bill.total_amount,
            pending_amount=bill.total_amount,
            due_date=due_date,
            notes=notes,
            created_at=now,
        )
        entry.save()
        for payment in bill.payments.all():
            LedgerPayment.objects.create(
                entry=entry,
                bill_payment=payment,
                amount=payment.amount,
                mode=payment.mode,
                reference=payment.reference,
                remarks=payment.remarks,
                paid_at=payment.paid_at,
            )
        recompute_entry(entry, now)
        entry.save(update_fields=DERIVED_FIELDS)

    logger.info("Udhari opened for %s: %s pending=%s due=%s", entry.party_name, entry.bill_number, entry.pending_amount, due_date)
    return entry


def add_payment(entry_id, payload: dict, *, now=None) -> CreditLedgerEntry:
    """
    Collect an installment against an udhari entry.

    The bill row is locked before the entry row, the same order the bill
    builder uses, and the payment is appended to both. Overpayment is
    rejected before anything is written.
    """
    serializer = PaymentInputSerializer(data=payload)
    if not serializer.is_valid():
        raise ValidationError.from_serializer(serializer)
    data = serializer.validated_data
    amount = money(data["amount"])
    now = now or timezone.now()

    with transaction.atomic():
        bill_id = CreditLedgerEntry.objects.filter(pk=entry_id).values_list("bill_id", flat=True).first()
        if bill_id is None:
            raise NotFound("Udhari record not found", details={"entry_id": entry_id})
        bill = Bill.objects.select_for_update().get(pk=bill_id)
        entry = CreditLedgerEntry.objects.select_for_update().get(pk=entry_id)

        recompute_entry(entry, now)
        if amount > entry.pending_amount:
            raise OverpaymentRejected(
                "Payment amount exceeds pending amount",
                details={"amount": str(amount), "pending_amount": str(entry.pending_amount)},
            )

        bill_payment = BillPayment.objects.create(
            bill=bill,
            amount=amount,
            mode=data["mode"],
            reference=data["reference"],
            remarks=data["remarks"],
            paid_at=now,
        )
        LedgerPayment.objects.create(
            entry=entry,
            bill_payment=bill_payment,
            amount=amount,
            mode=data["mode"],
            reference=data["reference"],
            remarks=data["remarks"],
            paid_at=now,
        )
        recompute_entry(entry, now)
        entry.save(update_fields=DERIVED_FIELDS)
        bill.refresh_payment_state()
        bill.save(update_fields=["paid_amount", "pending_amount", "payment_status", "updated_at"])

        emit_on_commit(
            payment_received,
            sender=CreditLedgerEntry,
            bill_id=bill.pk,
            bill_number=bill.number,
            entry_id=entry.pk,
            amount=amount,
            mode=data["mode"],
            paid_amount=entry.paid_amount,
            pending_amount=entry.pending_amount,
        )

    logger.info("Payment collected for udhari %s: %s (pending %s)", entry.bill_number, amount, entry.pending_amount)
    return entry


def update_entry(payload: dict) -> CreditLedgerEntry:
    """Edit notes or due date; money only moves through payments."""
    payload = dict(payload or {})
    entry_id = payload.pop("id", None)
    if entry_id is None:
        raise ValidationError("id is required.")
    disallowed = sorted(set(payload) - set(ENTRY_EDITABLE_FIELDS))
    if disallowed:
        raise ValidationError("Only notes and due_date can be edited.", details={"fields": disallowed})
    serializer = EntryUpdateSerializer(data=payload)
    if not serializer.is_valid():
        raise ValidationError.from_serializer(serializer)
    changes = serializer.validated_data

    with transaction.atomic():
        entry = CreditLedgerEntry.objects.select_for_update().filter(pk=entry_id).first()
        if entry is None:
            raise NotFound("Udhari record not found", details={"entry_id": entry_id})
        for field, value in changes.items():
            setattr(entry, field, value)
        recompute_entry(entry)
        entry.save()
    return entry


def reconcile_entries(*, now=None) -> int:
    """
    Sweep every open entry and re-derive its status.

    Entries whose due date passed since the last sweep become overdue.
    Returns the number of entries that changed.
    """
    now = now or timezone.now()
    changed = 0
    entry_ids = list(
        CreditLedgerEntry.objects.exclude(status=Status.PAID).values_list("pk", flat=True)
    )
    for entry_id in entry_ids:
        with transaction.atomic():
            entry = CreditLedgerEntry.objects.select_for_update().get(pk=entry_id)
            if recompute_entry(entry, now):
                entry.save(update_fields=DERIVED_FIELDS)
                changed += 1
    logger.info("Udhari reconcile: %s of %s open entries updated", changed, len(entry_ids))
    return changed


def send_reminder(entry_id, *, channel: str = "whatsapp", now=None) -> CreditLedgerEntry:
    if channel not in REMINDER_CHANNELS:
        raise ValidationError(
            f"Unknown reminder channel: '{channel}'.",
            details={"channels": list(REMINDER_CHANNELS)},
        )
    now = now or timezone.now()
    entry = get_entry(entry_id)
    if entry.status == Status.PAID:
        raise ValidationError("This udhari is already paid")

    with transaction.atomic():
        CreditLedgerEntry.objects.filter(pk=entry.pk).update(
            reminder_count=F("reminder_count") + 1,
            last_reminder_at=now,
        )
        emit_on_commit(
            payment_reminder,
            sender=CreditLedgerEntry,
            entry_id=entry.pk,
            bill_number=entry.bill_number,
            party_name=entry.party_name,
            phone=entry.phone,
            pending_amount=entry.pending_amount,
            due_date=entry.due_date,
            channel=channel,
        )
    entry.refresh_from_db()
    logger.info("Reminder #%s queued for %s via %s", entry.reminder_count, entry.phone, channel)
    return entry


def send_bulk_reminders(*, status: str = Status.OVERDUE, kind: str = Bill.Kind.SALE, channel: str = "whatsapp", now=None) -> dict:
    """Remind every entry in `status`. A failure on one entry is logged and skipped."""
    if status == Status.PAID:
        raise ValidationError("Paid entries are not reminded.")
    entries = list(
        CreditLedgerEntry.objects.filter(status=status, kind=kind).values_list("pk", flat=True)
    )
    sent = 0
    for entry_id in entries:
        try:
            send_reminder(entry_id, channel=channel, now=now)
        except DomainError as exc:
            logger.error("Reminder for udhari %s failed: %s", entry_id, exc)
            continue
        sent += 1
    logger.info("Bulk reminders: %s/%s sent", sent, len(entries))
    return {"total": len(entries), "sent": sent}


def overdue_entries(*, now=None, kind: str = Bill.Kind.SALE):
    """Open entries past their due date, oldest first, with the total outstanding."""
    today = local_today(now)
    entries = list(
        CreditLedgerEntry.objects.filter(
            kind=kind,
            status__in=CreditLedgerEntry.OPEN_STATUSES,
            due_date__lt=today,
            pending_amount__gt=0,
        ).order_by("due_date", "id")
    )
    total = money(sum((entry.pending_amount for entry in entries), money(0)))
    return entries, total


def list_entries(*, kind: str | None = None, status: str | None = None, search: str | None = None):
    """
    Filtered udhari entries, newest first, with totals over the whole match.

    `search` matches party name, phone or bill number, case-insensitively.
    Returns (queryset, {"total_amount", "total_pending", "total_paid"}).
    """
    if kind and kind not in Bill.Kind.values:
        raise ValidationError(f"Unknown udhari kind: '{kind}'.")
    if status and status not in Status.values:
        raise ValidationError(f"Unknown udhari status: '{status}'.")

    qs = CreditLedgerEntry.objects.all()
    if kind:
        qs = qs.filter(kind=kind)
    if status:
        qs = qs.filter(status=status)
    search = (search or "").strip()
    if search:
        qs = qs.filter(
            Q(party_name__icontains=search) | Q(phone__icontains=search) | Q(bill_number__icontains=search)
        )

    sums = qs.aggregate(
        total_amount=Sum("total_amount"),
        total_pending=Sum("pending_amount"),
        total_paid=Sum("paid_amount"),
    )
    totals = {key: money(value or 0) for key, value in sums.items()}
    return qs.order_by("-created_at", "-id"), totals
