from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion

import inventory.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("sku", models.CharField(max_length=64, unique=True)),
                ("barcode", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("purchase_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("selling_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("mrp", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("stock", models.PositiveIntegerField(default=0)),
                ("min_stock", models.PositiveIntegerField(default=5)),
                ("max_stock", models.PositiveIntegerField(default=1000)),
                ("tax_rate", models.DecimalField(decimal_places=2, default=inventory.models._default_tax_rate, help_text="GST slab in percent.", max_digits=5)),
                ("tax_inclusive", models.BooleanField(default=False, help_text="Selling price already contains tax.")),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name", "id"],
                "indexes": [models.Index(fields=["is_active", "stock"], name="product_active_stock_idx")],
                "constraints": [models.CheckConstraint(condition=models.Q(stock__gte=0), name="product_stock_gte_0")],
            },
        ),
        migrations.CreateModel(
            name="PriceHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("field", models.CharField(choices=[("purchase_price", "Purchase price"), ("selling_price", "Selling price")], default="purchase_price", max_length=32)),
                ("old_value", models.DecimalField(decimal_places=2, max_digits=12)),
                ("new_value", models.DecimalField(decimal_places=2, max_digits=12)),
                ("source_reference", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="price_history", to="inventory.product")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
