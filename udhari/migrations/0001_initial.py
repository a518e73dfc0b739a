from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("billing", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditLedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("sale", "Sale"), ("purchase", "Purchase")], db_index=True, default="sale", max_length=16)),
                ("party_name", models.CharField(max_length=200)),
                ("phone", models.CharField(db_index=True, max_length=20)),
                ("bill_number", models.CharField(max_length=32)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("pending_amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("partial", "Partial"), ("paid", "Paid"), ("overdue", "Overdue")], db_index=True, default="pending", max_length=16)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("reminder_count", models.PositiveIntegerField(default=0)),
                ("last_reminder_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("bill", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="credit_entry", to="billing.bill")),
            ],
            options={
                "verbose_name": "udhari entry",
                "verbose_name_plural": "udhari entries",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["kind", "status", "due_date"], name="udhari_kind_status_due_idx")],
            },
        ),
        migrations.CreateModel(
            name="LedgerPayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("mode", models.CharField(choices=[("cash", "Cash"), ("upi", "UPI"), ("card", "Card"), ("cheque", "Cheque"), ("bank_transfer", "Bank Transfer"), ("credit", "Credit")], default="cash", max_length=16)),
                ("reference", models.CharField(blank=True, default="", max_length=100)),
                ("remarks", models.CharField(blank=True, default="", max_length=255)),
                ("paid_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("bill_payment", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_payment", to="billing.billpayment")),
                ("entry", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to="udhari.creditledgerentry")),
            ],
            options={
                "ordering": ["paid_at", "id"],
                "constraints": [models.CheckConstraint(condition=models.Q(amount__gt=0), name="ledgerpayment_amount_gt_0")],
            },
        ),
    ]
