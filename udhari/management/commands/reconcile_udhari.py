"""
Management command to refresh udhari statuses.

Run this once a day so entries whose due date passed become overdue:
    0 1 * * * cd /path/to/project && .venv/bin/python manage.py reconcile_udhari
"""
from django.core.management.base import BaseCommand

from udhari.services.ledger import reconcile_entries


class Command(BaseCommand):
    help = "Re-derive paid/pending/status for every open udhari entry"

    def handle(self, *args, **options):
        count = reconcile_entries()
        if count:
            self.stdout.write(self.style.SUCCESS(f"Updated {count} udhari entry/entries"))
        else:
            self.stdout.write("All udhari entries are up to date")
