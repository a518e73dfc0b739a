from django.db import models


class Notification(models.Model):
    """A persisted entry in the shop's notification feed."""

    class Type(models.TextChoices):
        LOW_STOCK = "low_stock", "Low stock"
        PAYMENT_RECEIVED = "payment_received", "Payment received"
        PAYMENT_REMINDER = "payment_reminder", "Payment reminder"

    type = models.CharField(max_length=32, choices=Type.choices, db_index=True)
    title = models.CharField(max_length=200)
    body = models.TextField(blank=True, default="")
    payload = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"[{self.type}] {self.title}"
