from django.core.management.base import BaseCommand

from core.jobs import expire_announcements


class Command(BaseCommand):
    help = 'Mark active announcements past their expiry date as expired'

    def handle(self, *args, **options):
        count = expire_announcements()
        self.stdout.write(self.style.SUCCESS(f"Done! Expired {count} announcements."))
