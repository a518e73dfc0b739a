from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from billing.models import Bill, BillPayment
from billing.services.bills import create_bill
from core.exceptions import NotFound, OverpaymentRejected, ValidationError
from core.registry import registry
from inventory.models import Product
from notifications.models import Notification
from udhari.models import CreditLedgerEntry, LedgerPayment
from udhari.services.ledger import (
    add_payment,
    compute_status,
    get_entry,
    list_entries,
    open_entry,
    overdue_entries,
    reconcile_entries,
    send_bulk_reminders,
    send_reminder,
)


NOW = datetime(2025, 6, 10, 10, 0, tzinfo=dt_timezone.utc)
TODAY = date(2025, 6, 10)


class ComputeStatusTests(SimpleTestCase):
    def test_unpaid_past_due_is_overdue(self):
        status = compute_status(
            pending_amount=Decimal("562"),
            paid_amount=Decimal("0"),
            due_date=TODAY - timedelta(days=20),
            now=TODAY,
        )
        self.assertEqual(status, CreditLedgerEntry.Status.OVERDUE)

    def test_precedence(self):
        past = TODAY - timedelta(days=1)
        self.assertEqual(
            compute_status(pending_amount=0, paid_amount=100, due_date=past, now=TODAY),
            CreditLedgerEntry.Status.PAID,
        )
        self.assertEqual(
            compute_status(pending_amount=50, paid_amount=50, due_date=past, now=TODAY),
            CreditLedgerEntry.Status.PARTIAL,
        )
        self.assertEqual(
            compute_status(pending_amount=100, paid_amount=0, due_date=TODAY, now=TODAY),
            CreditLedgerEntry.Status.PENDING,
        )
        self.assertEqual(
            compute_status(pending_amount=100, paid_amount=0, due_date=None, now=TODAY),
            CreditLedgerEntry.Status.PENDING,
        )


class CreditLedgerTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name="Basmati Rice 5kg",
            sku="RICE-5",
            purchase_price=Decimal("400.00"),
            selling_price=Decimal("500.00"),
            stock=50,
            min_stock=0,
            tax_rate=Decimal("5"),
        )

    def _credit_sale(self, *, phone="9876543210", quantity=1, now=NOW, **extra):
        payload = {
            "kind": "sale",
            "party_name": "Sita Devi",
            "party_phone": phone,
            "lines": [{"product_id": self.product.pk, "quantity": quantity}],
        }
        payload.update(extra)
        bill = create_bill(payload, now=now)
        return bill, CreditLedgerEntry.objects.filter(bill=bill).first()

    def test_open_entry_defaults(self):
        bill, entry = self._credit_sale()
        # 500 + 25
        self.assertEqual(entry.total_amount, Decimal("525.00"))
        self.assertEqual(entry.pending_amount, Decimal("525.00"))
        self.assertEqual(entry.status, CreditLedgerEntry.Status.PENDING)
        self.assertEqual(entry.bill_number, bill.number)
        self.assertEqual(entry.phone, "9876543210")
        self.assertEqual(entry.due_date, timezone.localdate(NOW) + timedelta(days=30))

    def test_open_entry_uses_bill_due_date(self):
        _, entry = self._credit_sale(due_date="2025-07-01")
        self.assertEqual(entry.due_date, date(2025, 7, 1))

    def test_open_entry_guards(self):
        bill, entry = self._credit_sale()
        with self.assertRaises(ValidationError):
            open_entry(bill, now=NOW)

        no_phone, _ = self._credit_sale(phone="")
        with self.assertRaises(ValidationError):
            open_entry(no_phone, now=NOW)

    def test_partial_then_full_payment(self):
        bill, entry = self._credit_sale()

        entry = add_payment(entry.pk, {"amount": "200", "mode": "upi", "reference": "UPI-1"}, now=NOW)
        self.assertEqual(entry.paid_amount, Decimal("200.00"))
        self.assertEqual(entry.pending_amount, Decimal("325.00"))
        self.assertEqual(entry.status, CreditLedgerEntry.Status.PARTIAL)
        bill.refresh_from_db()
        self.assertEqual(bill.paid_amount, Decimal("200.00"))
        self.assertEqual(bill.payment_status, Bill.PaymentStatus.PARTIAL)

        entry = add_payment(entry.pk, {"amount": "325"}, now=NOW)
        self.assertEqual(entry.status, CreditLedgerEntry.Status.PAID)
        self.assertEqual(entry.pending_amount, Decimal("0.00"))
        bill.refresh_from_db()
        self.assertEqual(bill.payment_status, Bill.PaymentStatus.PAID)

        ledger_total = sum(p.amount for p in LedgerPayment.objects.filter(entry=entry))
        bill_total = sum(p.amount for p in BillPayment.objects.filter(bill=bill))
        self.assertEqual(ledger_total, entry.paid_amount)
        self.assertEqual(bill_total, bill.paid_amount)
        self.assertEqual(entry.paid_amount + entry.pending_amount, entry.total_amount)

    def test_overpayment_leaves_state_unchanged(self):
        bill, entry = self._credit_sale()
        add_payment(entry.pk, {"amount": "25"}, now=NOW)

        with self.assertRaises(OverpaymentRejected):
            add_payment(entry.pk, {"amount": "501"}, now=NOW)

        entry.refresh_from_db()
        bill.refresh_from_db()
        self.assertEqual(entry.paid_amount, Decimal("25.00"))
        self.assertEqual(entry.pending_amount, Decimal("500.00"))
        self.assertEqual(entry.payments.count(), 1)
        self.assertEqual(bill.payments.count(), 1)
        self.assertEqual(bill.pending_amount, Decimal("500.00"))

    def test_payment_validation(self):
        _, entry = self._credit_sale()
        with self.assertRaises(ValidationError):
            add_payment(entry.pk, {"amount": "0"}, now=NOW)
        with self.assertRaises(ValidationError):
            add_payment(entry.pk, {"amount": "-5"}, now=NOW)
        with self.assertRaises(ValidationError):
            add_payment(entry.pk, {"amount": "10", "mode": "barter"}, now=NOW)
        with self.assertRaises(NotFound):
            add_payment(999999, {"amount": "10"}, now=NOW)

    def test_payment_emits_notification(self):
        _, entry = self._credit_sale()
        with self.captureOnCommitCallbacks(execute=True):
            add_payment(entry.pk, {"amount": "100"}, now=NOW)
        notification = Notification.objects.get(type=Notification.Type.PAYMENT_RECEIVED)
        self.assertEqual(notification.payload["entry_id"], entry.pk)
        self.assertEqual(notification.payload["amount"], "100.00")

    def test_reconcile_marks_overdue(self):
        _, entry = self._credit_sale()
        self.assertEqual(reconcile_entries(now=NOW), 0)

        later = NOW + timedelta(days=45)
        self.assertEqual(reconcile_entries(now=later), 1)
        entry.refresh_from_db()
        self.assertEqual(entry.status, CreditLedgerEntry.Status.OVERDUE)

        self.assertEqual(reconcile_entries(now=later), 0)

    def test_reconcile_repairs_drifted_aggregates(self):
        _, entry = self._credit_sale()
        add_payment(entry.pk, {"amount": "100"}, now=NOW)
        CreditLedgerEntry.objects.filter(pk=entry.pk).update(paid_amount=0, pending_amount=525, status="pending")

        self.assertEqual(reconcile_entries(now=NOW), 1)
        entry.refresh_from_db()
        self.assertEqual(entry.paid_amount, Decimal("100.00"))
        self.assertEqual(entry.status, CreditLedgerEntry.Status.PARTIAL)

    def test_send_reminder(self):
        _, entry = self._credit_sale()
        with self.captureOnCommitCallbacks(execute=True):
            entry = send_reminder(entry.pk, channel="sms", now=NOW)
        self.assertEqual(entry.reminder_count, 1)
        self.assertEqual(entry.last_reminder_at, NOW)

        notification = Notification.objects.get(type=Notification.Type.PAYMENT_REMINDER)
        self.assertEqual(notification.payload["channel"], "sms")
        self.assertEqual(notification.payload["phone"], "9876543210")

        entry = send_reminder(entry.pk, now=NOW)
        self.assertEqual(entry.reminder_count, 2)

    def test_send_reminder_guards(self):
        _, entry = self._credit_sale()
        with self.assertRaises(ValidationError):
            send_reminder(entry.pk, channel="pigeon", now=NOW)

        add_payment(entry.pk, {"amount": "525"}, now=NOW)
        with self.assertRaises(ValidationError):
            send_reminder(entry.pk, now=NOW)
        with self.assertRaises(NotFound):
            send_reminder(999999, now=NOW)

    def test_send_bulk_reminders(self):
        past = NOW - timedelta(days=60)
        _, first = self._credit_sale(now=past)
        _, second = self._credit_sale(now=past, party_name="Mohan")
        _, fresh = self._credit_sale()
        reconcile_entries(now=NOW)

        result = send_bulk_reminders(now=NOW)
        self.assertEqual(result, {"total": 2, "sent": 2})
        self.assertEqual(get_entry(first.pk).reminder_count, 1)
        self.assertEqual(get_entry(second.pk).reminder_count, 1)
        self.assertEqual(get_entry(fresh.pk).reminder_count, 0)

        with self.assertRaises(ValidationError):
            send_bulk_reminders(status=CreditLedgerEntry.Status.PAID, now=NOW)

    def test_overdue_entries(self):
        _, old = self._credit_sale(now=NOW - timedelta(days=90))
        _, older = self._credit_sale(now=NOW - timedelta(days=120))
        self._credit_sale()
        add_payment(old.pk, {"amount": "25"}, now=NOW)

        entries, total = overdue_entries(now=NOW)
        self.assertEqual([e.pk for e in entries], [older.pk, old.pk])
        self.assertEqual(total, Decimal("1025.00"))

    def test_entries_are_never_deleted(self):
        _, entry = self._credit_sale()
        with self.assertRaises(ValidationError):
            entry.delete()
        with self.assertRaises(ValidationError):
            registry.apply("udhari", "delete", {"id": entry.pk})
        with self.assertRaises(ValidationError):
            registry.apply("udhari", "create", {})
        self.assertTrue(CreditLedgerEntry.objects.filter(pk=entry.pk).exists())

    def test_registry_update_notes_and_due_date(self):
        _, entry = self._credit_sale()
        entry = registry.apply("udhari", "update", {"id": entry.pk, "notes": "pays on Sunday", "due_date": "2025-01-01"})
        self.assertEqual(entry.notes, "pays on Sunday")
        self.assertEqual(entry.due_date, date(2025, 1, 1))
        self.assertEqual(entry.status, CreditLedgerEntry.Status.OVERDUE)

        with self.assertRaises(ValidationError):
            registry.apply("udhari", "update", {"id": entry.pk, "pending_amount": "0"})

    def test_update_entry_rejects_non_dates(self):
        _, entry = self._credit_sale()
        for bad in (12345, "next week", "2025-13-01"):
            with self.subTest(due_date=bad), self.assertRaises(ValidationError) as ctx:
                registry.apply("udhari", "update", {"id": entry.pk, "due_date": bad})
            self.assertIn("due_date", ctx.exception.details)

        entry.refresh_from_db()
        self.assertEqual(entry.due_date, timezone.localdate(NOW) + timedelta(days=30))

    def test_update_entry_can_clear_due_date(self):
        _, entry = self._credit_sale()
        entry = registry.apply("udhari", "update", {"id": entry.pk, "due_date": None, "notes": ""})
        self.assertIsNone(entry.due_date)
        self.assertEqual(entry.status, CreditLedgerEntry.Status.PENDING)

    def test_list_entries_filters_and_totals(self):
        _, sita = self._credit_sale()
        _, mohan = self._credit_sale(party_name="Mohan Lal", phone="9123456780", quantity=2)
        add_payment(mohan.pk, {"amount": "50"}, now=NOW)
        purchase = create_bill(
            {
                "kind": "purchase",
                "party_name": "Gupta Traders",
                "party_phone": "9000000001",
                "lines": [{"product_id": self.product.pk, "quantity": 1, "price": "400"}],
            },
            now=NOW,
        )

        entries, totals = list_entries()
        self.assertEqual(len(entries), 3)
        # 525 + 1050 + 420
        self.assertEqual(totals["total_amount"], Decimal("1995.00"))
        self.assertEqual(totals["total_paid"], Decimal("50.00"))
        self.assertEqual(totals["total_pending"], Decimal("1945.00"))

        entries, totals = list_entries(kind="sale")
        self.assertEqual({e.pk for e in entries}, {sita.pk, mohan.pk})
        self.assertEqual(totals["total_amount"], Decimal("1575.00"))

        entries, _ = list_entries(status=CreditLedgerEntry.Status.PARTIAL)
        self.assertEqual([e.pk for e in entries], [mohan.pk])

        entries, _ = list_entries(search="mohan")
        self.assertEqual([e.pk for e in entries], [mohan.pk])
        entries, _ = list_entries(search="91234")
        self.assertEqual([e.pk for e in entries], [mohan.pk])
        entries, _ = list_entries(search=purchase.number)
        self.assertEqual([e.bill_id for e in entries], [purchase.pk])

        entries, totals = list_entries(search="nobody")
        self.assertEqual(len(entries), 0)
        self.assertEqual(totals, {"total_amount": Decimal("0.00"), "total_pending": Decimal("0.00"), "total_paid": Decimal("0.00")})

        with self.assertRaises(ValidationError):
            list_entries(status="written_off")
