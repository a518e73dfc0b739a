"""
Queue payment reminders for open udhari entries.

Usage:
    python manage.py send_udhari_reminders
    python manage.py send_udhari_reminders --status partial --channel sms
"""
from django.core.management.base import BaseCommand, CommandError

from billing.models import Bill
from core.exceptions import ValidationError
from udhari.models import CreditLedgerEntry
from udhari.services.ledger import REMINDER_CHANNELS, reconcile_entries, send_bulk_reminders


class Command(BaseCommand):
    help = "Send payment reminders for udhari entries in a given status"

    def add_arguments(self, parser):
        parser.add_argument(
            "--status",
            default=CreditLedgerEntry.Status.OVERDUE,
            choices=[s for s in CreditLedgerEntry.Status.values if s != CreditLedgerEntry.Status.PAID],
        )
        parser.add_argument("--kind", default=Bill.Kind.SALE, choices=Bill.Kind.values)
        parser.add_argument("--channel", default="whatsapp", choices=REMINDER_CHANNELS)
        parser.add_argument(
            "--skip-reconcile",
            action="store_true",
            help="Do not refresh statuses before selecting entries.",
        )

    def handle(self, *args, **options):
        if not options["skip_reconcile"]:
            reconcile_entries()
        try:
            result = send_bulk_reminders(
                status=options["status"],
                kind=options["kind"],
                channel=options["channel"],
            )
        except ValidationError as exc:
            raise CommandError(exc.message)

        if result["sent"]:
            self.stdout.write(self.style.SUCCESS(f"Reminders sent to {result['sent']}/{result['total']} customers"))
        else:
            self.stdout.write(f"No reminders sent ({result['total']} matching entries)")
