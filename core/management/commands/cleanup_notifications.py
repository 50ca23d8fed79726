"""
Management command to delete old notifications.

Removes notifications older than 3 days and read notifications older than 7 days.
"""

from django.core.management.base import BaseCommand

from core.jobs import cleanup_notifications


class Command(BaseCommand):
    help = 'Delete old notifications'

    def handle(self, *args, **options):
        deleted = cleanup_notifications()
        self.stdout.write(self.style.SUCCESS(f"Done! Deleted {deleted} notifications."))
