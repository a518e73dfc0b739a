from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


def _default_tax_rate() -> Decimal:
    return Decimal(str(getattr(settings, "DEFAULT_TAX_RATE", 18)))


class Product(models.Model):
    class StockStatus(models.TextChoices):
        OUT_OF_STOCK = "out_of_stock", "Out of stock"
        LOW_STOCK = "low_stock", "Low stock"
        OVERSTOCK = "overstock", "Overstock"
        IN_STOCK = "in_stock", "In stock"

    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, unique=True)
    barcode = models.CharField(max_length=64, blank=True, default="", db_index=True)

    purchase_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    mrp = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    stock = models.PositiveIntegerField(default=0)
    min_stock = models.PositiveIntegerField(default=5)
    max_stock = models.PositiveIntegerField(default=1000)

    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=_default_tax_rate,
        help_text="GST slab in percent.",
    )
    tax_inclusive = models.BooleanField(default=False, help_text="Selling price already contains tax.")

    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(stock__gte=0), name="product_stock_gte_0"),
        ]
        indexes = [
            models.Index(fields=["is_active", "stock"], name="product_active_stock_idx"),
        ]
        ordering = ["name", "id"]

    def __str__(self) -> str:
        return f"{self.sku} – {self.name}" if self.sku else self.name

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock == 0

    @property
    def stock_status(self) -> str:
        if self.is_out_of_stock:
            return self.StockStatus.OUT_OF_STOCK
        if self.is_low_stock:
            return self.StockStatus.LOW_STOCK
        if self.stock >= self.max_stock:
            return self.StockStatus.OVERSTOCK
        return self.StockStatus.IN_STOCK

    @property
    def profit_margin(self) -> Decimal:
        if not self.purchase_price:
            return Decimal("0.00")
        margin = (self.selling_price - self.purchase_price) / self.purchase_price * 100
        return margin.quantize(Decimal("0.01"))


class PriceHistory(models.Model):
    """Append-only log of price changes caused by purchases."""

    class Field(models.TextChoices):
        PURCHASE_PRICE = "purchase_price", "Purchase price"
        SELLING_PRICE = "selling_price", "Selling price"

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="price_history")
    field = models.CharField(max_length=32, choices=Field.choices, default=Field.PURCHASE_PRICE)
    old_value = models.DecimalField(max_digits=12, decimal_places=2)
    new_value = models.DecimalField(max_digits=12, decimal_places=2)
    source_reference = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.product_id} {self.field}: {self.old_value} -> {self.new_value}"
