from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from billing.services.calculator import (
    STATUS_PAID,
    STATUS_PARTIAL,
    STATUS_PENDING,
    BillAmounts,
    bill_profit,
    derive_payment_state,
    profit_margin,
)
from core.exceptions import ValidationError


class PaymentMode(models.TextChoices):
    CASH = "cash", "Cash"
    UPI = "upi", "UPI"
    CARD = "card", "Card"
    CHEQUE = "cheque", "Cheque"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    CREDIT = "credit", "Credit"


class Bill(models.Model):
    """
    A sale or purchase bill.

    paid_amount / pending_amount / payment_status are stored so they can be
    filtered on, but they are only ever written by `refresh_payment_state()`,
    which derives them from total_amount and the payments list.
    """

    class Kind(models.TextChoices):
        SALE = "sale", "Sale"
        PURCHASE = "purchase", "Purchase"

    class PaymentStatus(models.TextChoices):
        PAID = STATUS_PAID, "Paid"
        PARTIAL = STATUS_PARTIAL, "Partial"
        PENDING = STATUS_PENDING, "Pending"

    kind = models.CharField(max_length=16, choices=Kind.choices, db_index=True)
    number = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        help_text="Assigned at finalization, e.g. BILL2025000001.",
    )

    party_name = models.CharField(max_length=200, blank=True, default="")
    party_phone = models.CharField(max_length=20, blank=True, default="", db_index=True)

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    round_off = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    pending_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    payment_status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )
    payment_mode = models.CharField(max_length=16, choices=PaymentMode.choices, default=PaymentMode.CASH)

    is_draft = models.BooleanField(default=False, db_index=True)
    due_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bills_created",
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    finalized_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["kind", "payment_status"], name="bill_kind_status_idx"),
            models.Index(fields=["kind", "is_draft", "created_at"], name="bill_kind_draft_created_idx"),
        ]

    def __str__(self) -> str:
        return self.number or f"Draft {self.kind} #{self.pk}"

    def apply_amounts(self, amounts: BillAmounts) -> None:
        self.subtotal = amounts.subtotal
        self.discount = amounts.discount
        self.tax_amount = amounts.tax_amount
        self.round_off = amounts.round_off
        self.total_amount = amounts.total

    def refresh_payment_state(self) -> None:
        amounts = list(self.payments.values_list("amount", flat=True)) if self.pk else []
        state = derive_payment_state(self.total_amount, amounts)
        self.paid_amount = state.paid_amount
        self.pending_amount = state.pending_amount
        self.payment_status = state.status

    @property
    def is_finalized(self) -> bool:
        return not self.is_draft and bool(self.number)

    def grace_window_open(self, now=None) -> bool:
        now = now or timezone.now()
        hours = getattr(settings, "BILL_EDIT_GRACE_HOURS", 24)
        return now - (self.finalized_at or self.created_at) <= timedelta(hours=hours)

    @property
    def total_profit(self) -> Decimal:
        if self.kind != self.Kind.SALE:
            return Decimal("0.00")
        return bill_profit(self.lines.all())

    @property
    def profit_margin(self) -> Decimal:
        return profit_margin(self.total_profit, self.total_amount)


class BillLine(models.Model):
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="lines")
    position = models.PositiveIntegerField(default=0)
    product = models.ForeignKey("inventory.Product", on_delete=models.PROTECT, related_name="bill_lines")
    product_name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, blank=True, default="")

    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    tax_inclusive = models.BooleanField(default=False)

    line_subtotal = models.DecimalField(max_digits=14, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2)
    line_total = models.DecimalField(max_digits=14, decimal_places=2)

    mrp = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    purchase_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Cost snapshot at sale time, for profit.",
    )

    class Meta:
        ordering = ["bill_id", "position", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="billline_quantity_gt_0"),
        ]

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity}"

    def save(self, *args, **kwargs):
        if self.pk and not self.bill.is_draft:
            raise ValidationError("Lines of a finalized bill are immutable.")
        return super().save(*args, **kwargs)


class BillPayment(models.Model):
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    mode = models.CharField(max_length=16, choices=PaymentMode.choices, default=PaymentMode.CASH)
    reference = models.CharField(max_length=100, blank=True, default="")
    remarks = models.CharField(max_length=255, blank=True, default="")
    paid_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["paid_at", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="billpayment_amount_gt_0"),
        ]

    def __str__(self) -> str:
        return f"{self.amount} ({self.mode}) on {self.bill_id}"

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Payments are append-only.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # pragma: no cover
        raise TypeError("Payments cannot be deleted.")


class DocumentCounter(models.Model):
    """Per-kind, per-year sequence behind human-readable document numbers."""

    kind = models.CharField(max_length=8)
    year = models.PositiveIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["kind", "year"], name="uniq_document_counter_kind_year"),
        ]

    def __str__(self) -> str:
        return f"{self.kind}{self.year}: {self.last_value}"
