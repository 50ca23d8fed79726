"""
Background jobs for BundleHub.

Each job is a plain function returning a count (or summary dict) so it can
be called from a management command, the in-process scheduler or a test.
"""

import logging
from datetime import timedelta

from django.db.models import Q
from django.utils import timezone

from . import announcement_service
from . import commission_service

logger = logging.getLogger('core.jobs')

NOTIFICATION_MAX_AGE = timedelta(days=3)
READ_NOTIFICATION_MAX_AGE = timedelta(days=7)
UNRESOLVED_REPORT_MAX_AGE = timedelta(hours=24)
RESOLVED_REPORT_GRACE = timedelta(minutes=10)

AUTO_RESOLVE_NOTE = 'Report auto-closed after 24 hours without resolution.'


def cleanup_notifications(now=None):
    """
    Delete notifications older than three days, and read ones older than
    seven days. Returns the number deleted.
    """
    from .models import Notification

    now = now or timezone.now()
    deleted, _ = Notification.objects.filter(
        Q(created_at__lt=now - NOTIFICATION_MAX_AGE)
        | Q(is_read=True, created_at__lt=now - READ_NOTIFICATION_MAX_AGE)
    ).delete()

    logger.info(f"Deleted {deleted} old notifications")
    return deleted


def cleanup_reported_orders(now=None):
    """
    Close stale delivery reports.

    - not_received / checking reports older than 24h are marked received
      and unreported, with a note
    - resolved reports are unreported 10 minutes after resolution

    Returns the number of orders touched.
    """
    from .models import Order

    now = now or timezone.now()
    stale = Order.objects.filter(
        reported=True,
        reception_status__in=[Order.ReceptionStatus.NOT_RECEIVED, Order.ReceptionStatus.CHECKING],
        reported_at__lt=now - UNRESOLVED_REPORT_MAX_AGE,
    )

    closed = 0
    for order in stale:
        order.reported = False
        order.reception_status = Order.ReceptionStatus.RECEIVED
        order.resolved_at = now
        order.notes = f"{order.notes}\n{AUTO_RESOLVE_NOTE}".strip()
        order.save(update_fields=['reported', 'reception_status', 'resolved_at', 'notes', 'updated_at'])
        closed += 1

    released = Order.objects.filter(
        reported=True,
        reception_status=Order.ReceptionStatus.RESOLVED,
        resolved_at__lt=now - RESOLVED_REPORT_GRACE,
    ).update(reported=False, updated_at=now)

    if closed or released:
        logger.info(f"Reported orders: {closed} auto-closed, {released} released after resolution")
    return closed + released


def expire_announcements():
    return announcement_service.expire_announcements()


def generate_commissions(day=None):
    """Daily commission records for yesterday (or `day`)."""
    return commission_service.generate_daily_commissions(day)


def finalize_commissions(year=None, month=None):
    """Monthly finalization for last month (or the given month)."""
    return commission_service.finalize_month_commissions(year, month)
