"""
Announcement Service for BundleHub.

Admins draft announcements, broadcast them (status active + WebSocket
push), and users see the live ones that target their role.
"""

import logging

from django.db.models import Count
from django.utils import timezone

from . import realtime
from .exceptions import NotFoundError, ValidationError

logger = logging.getLogger('core.notifications')


def get_announcement(announcement_id):
    from .models import Announcement

    announcement = Announcement.objects.filter(pk=announcement_id).first()
    if announcement is None:
        raise NotFoundError('Announcement not found')
    return announcement


def create_announcement(data, admin):
    from .models import Announcement

    announcement = Announcement.objects.create(created_by=admin, **data)
    logger.info(f"Announcement {announcement.pk} '{announcement.title}' created by {admin.email}")
    return announcement


def update_announcement(announcement_id, data):
    announcement = get_announcement(announcement_id)
    for field, value in data.items():
        setattr(announcement, field, value)
    announcement.save()
    return announcement


def delete_announcement(announcement_id):
    announcement = get_announcement(announcement_id)
    announcement.delete()
    logger.info(f"Announcement {announcement_id} deleted")


def active_for_user(user):
    """Live announcements targeted at the user's role, newest first."""
    from .models import Announcement

    return [a for a in Announcement.live().order_by('-created_at') if a.targets(user.user_type)]


def mark_viewed(announcement_id, user):
    announcement = get_announcement(announcement_id)
    announcement.viewed_by.add(user)
    return announcement


def acknowledge(announcement_id, user):
    announcement = get_announcement(announcement_id)
    announcement.viewed_by.add(user)
    announcement.acknowledged_by.add(user)
    logger.debug(f"Announcement {announcement.pk} acknowledged by {user.email}")
    return announcement


def broadcast(announcement_id, admin):
    """Activate an announcement and push it to connected clients."""
    from .models import Announcement

    announcement = get_announcement(announcement_id)
    if announcement.status == Announcement.Status.ARCHIVED:
        raise ValidationError('Archived announcements cannot be broadcast')
    if announcement.is_expired:
        raise ValidationError('Announcement has already expired')

    announcement.status = Announcement.Status.ACTIVE
    announcement.broadcast_at = timezone.now()
    announcement.save(update_fields=['status', 'broadcast_at', 'updated_at'])

    realtime.broadcast('announcement', announcement.to_dict())
    logger.info(f"Announcement {announcement.pk} '{announcement.title}' broadcast by {admin.email}")
    return announcement


def get_stats(announcement_id):
    """View and acknowledgement counts against the targeted audience size."""
    from .models import User

    announcement = get_announcement(announcement_id)
    audience = User.objects.filter(is_active=True)
    if announcement.target_audience:
        audience = audience.filter(user_type__in=announcement.target_audience)

    audience_size = audience.count()
    views = announcement.viewed_by.count()
    acknowledgements = announcement.acknowledged_by.count()
    return {
        'announcement_id': announcement.pk,
        'audience_size': audience_size,
        'views': views,
        'acknowledgements': acknowledgements,
        'view_rate': round(views / audience_size * 100, 1) if audience_size else 0,
        'acknowledgement_rate': round(acknowledgements / audience_size * 100, 1) if audience_size else 0,
    }


def summary():
    from .models import Announcement

    counts = dict(Announcement.objects.values_list('status').annotate(count=Count('id')))
    return {status: counts.get(status, 0) for status in Announcement.Status.values}


def expire_announcements():
    """Active announcements past their expiry become expired. Returns the count."""
    from .models import Announcement

    count = Announcement.objects.filter(
        status=Announcement.Status.ACTIVE,
        expires_at__isnull=False,
        expires_at__lte=timezone.now(),
    ).update(status=Announcement.Status.EXPIRED, updated_at=timezone.now())

    if count:
        logger.info(f"Expired {count} announcements")
    return count
