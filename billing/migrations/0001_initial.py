from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


PAYMENT_MODES = [
    ("cash", "Cash"),
    ("upi", "UPI"),
    ("card", "Card"),
    ("cheque", "Cheque"),
    ("bank_transfer", "Bank Transfer"),
    ("credit", "Credit"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Bill",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("sale", "Sale"), ("purchase", "Purchase")], db_index=True, max_length=16)),
                ("number", models.CharField(blank=True, help_text="Assigned at finalization, e.g. BILL2025000001.", max_length=32, null=True, unique=True)),
                ("party_name", models.CharField(blank=True, default="", max_length=200)),
                ("party_phone", models.CharField(blank=True, db_index=True, default="", max_length=20)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("discount_percent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("round_off", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=6)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("pending_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("payment_status", models.CharField(choices=[("paid", "Paid"), ("partial", "Partial"), ("pending", "Pending")], db_index=True, default="pending", max_length=16)),
                ("payment_mode", models.CharField(choices=PAYMENT_MODES, default="cash", max_length=16)),
                ("is_draft", models.BooleanField(db_index=True, default=False)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("finalized_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="bills_created", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["kind", "payment_status"], name="bill_kind_status_idx"),
                    models.Index(fields=["kind", "is_draft", "created_at"], name="bill_kind_draft_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("product_name", models.CharField(max_length=200)),
                ("sku", models.CharField(blank=True, default="", max_length=64)),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("line_discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("tax_rate", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("tax_inclusive", models.BooleanField(default=False)),
                ("line_subtotal", models.DecimalField(decimal_places=2, max_digits=14)),
                ("tax_amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("line_total", models.DecimalField(decimal_places=2, max_digits=14)),
                ("mrp", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("purchase_price", models.DecimalField(blank=True, decimal_places=2, help_text="Cost snapshot at sale time, for profit.", max_digits=12, null=True)),
                ("bill", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="billing.bill")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bill_lines", to="inventory.product")),
            ],
            options={
                "ordering": ["bill_id", "position", "id"],
                "constraints": [models.CheckConstraint(condition=models.Q(quantity__gt=0), name="billline_quantity_gt_0")],
            },
        ),
        migrations.CreateModel(
            name="BillPayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("mode", models.CharField(choices=PAYMENT_MODES, default="cash", max_length=16)),
                ("reference", models.CharField(blank=True, default="", max_length=100)),
                ("remarks", models.CharField(blank=True, default="", max_length=255)),
                ("paid_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("bill", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to="billing.bill")),
            ],
            options={
                "ordering": ["paid_at", "id"],
                "constraints": [models.CheckConstraint(condition=models.Q(amount__gt=0), name="billpayment_amount_gt_0")],
            },
        ),
        migrations.CreateModel(
            name="DocumentCounter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(max_length=8)),
                ("year", models.PositiveIntegerField()),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("kind", "year"), name="uniq_document_counter_kind_year")],
            },
        ),
    ]
