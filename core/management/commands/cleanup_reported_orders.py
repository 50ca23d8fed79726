"""
Management command to close stale delivery reports.

Intended to run every few minutes (see run_scheduler).
"""

from django.core.management.base import BaseCommand

from core.jobs import cleanup_reported_orders


class Command(BaseCommand):
    help = 'Auto-close unresolved order reports older than 24 hours'

    def handle(self, *args, **options):
        count = cleanup_reported_orders()
        self.stdout.write(self.style.SUCCESS(f"Done! Updated {count} reported orders."))
