from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from billing.models import Bill, BillPayment, PaymentMode
from core.exceptions import ValidationError


class CreditLedgerEntry(models.Model):
    """
    Outstanding balance owed on one finalized bill (udhari).

    Sale entries are amounts a customer owes the shop; purchase entries are
    amounts the shop owes a supplier. paid_amount / pending_amount / status
    are derived from the payments list by `udhari.services.ledger.recompute_entry`.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PARTIAL = "partial", "Partial"
        PAID = "paid", "Paid"
        OVERDUE = "overdue", "Overdue"

    OPEN_STATUSES = (Status.PENDING, Status.PARTIAL, Status.OVERDUE)

    bill = models.OneToOneField(Bill, on_delete=models.PROTECT, related_name="credit_entry")
    kind = models.CharField(max_length=16, choices=Bill.Kind.choices, default=Bill.Kind.SALE, db_index=True)
    party_name = models.CharField(max_length=200)
    phone = models.CharField(max_length=20, db_index=True)
    bill_number = models.CharField(max_length=32)

    total_amount = models.DecimalField(max_digits=14, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    pending_amount = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    due_date = models.DateField(null=True, blank=True)

    reminder_count = models.PositiveIntegerField(default=0)
    last_reminder_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "udhari entry"
        verbose_name_plural = "udhari entries"
        indexes = [
            models.Index(fields=["kind", "status", "due_date"], name="udhari_kind_status_due_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.party_name} - {self.bill_number} ({self.status})"

    def delete(self, *args, **kwargs):
        raise ValidationError("Udhari entries cannot be deleted.")


class LedgerPayment(models.Model):
    """One installment against an udhari entry, mirrored by a BillPayment."""

    entry = models.ForeignKey(CreditLedgerEntry, on_delete=models.CASCADE, related_name="payments")
    bill_payment = models.OneToOneField(
        BillPayment,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_payment",
    )
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    mode = models.CharField(max_length=16, choices=PaymentMode.choices, default=PaymentMode.CASH)
    reference = models.CharField(max_length=100, blank=True, default="")
    remarks = models.CharField(max_length=255, blank=True, default="")
    paid_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["paid_at", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="ledgerpayment_amount_gt_0"),
        ]

    def __str__(self) -> str:
        return f"{self.amount} ({self.mode}) on entry {self.entry_id}"

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Payments are append-only.")
        return super().save(*args, **kwargs)
