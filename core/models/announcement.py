"""
Announcement model for BundleHub.

Platform-wide messages from admins, optionally targeted at some roles
and optionally expiring.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Announcement(models.Model):
    """Broadcast message shown to users until it expires or is archived."""

    class AnnouncementType(models.TextChoices):
        INFO = 'info', 'Info'
        WARNING = 'warning', 'Warning'
        SUCCESS = 'success', 'Success'
        ERROR = 'error', 'Error'
        MAINTENANCE = 'maintenance', 'Maintenance'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'
        URGENT = 'urgent', 'Urgent'

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        ACTIVE = 'active', 'Active'
        EXPIRED = 'expired', 'Expired'
        ARCHIVED = 'archived', 'Archived'

    title = models.CharField('title', max_length=200)
    message = models.TextField('message')
    announcement_type = models.CharField(
        'type',
        max_length=12,
        choices=AnnouncementType.choices,
        default=AnnouncementType.INFO
    )
    priority = models.CharField(
        'priority',
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM
    )
    target_audience = models.JSONField(
        'target audience',
        default=list,
        blank=True,
        help_text='List of user types; empty means everyone'
    )
    status = models.CharField(
        'status',
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True
    )
    expires_at = models.DateTimeField(
        'expires at',
        null=True,
        blank=True
    )
    action_url = models.CharField(
        'action URL',
        max_length=500,
        blank=True
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='announcements'
    )
    viewed_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name='viewed_announcements'
    )
    acknowledged_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name='acknowledged_announcements'
    )
    broadcast_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'announcement'
        verbose_name_plural = 'announcements'
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at <= timezone.now()

    def targets(self, user_type):
        return not self.target_audience or user_type in self.target_audience

    @classmethod
    def live(cls):
        """Active and not past expiry."""
        now = timezone.now()
        return cls.objects.filter(status=cls.Status.ACTIVE).filter(
            Q(expires_at__isnull=True) | Q(expires_at__gt=now)
        )

    def to_dict(self, user=None):
        data = {
            'id': self.pk,
            'title': self.title,
            'message': self.message,
            'type': self.announcement_type,
            'priority': self.priority,
            'target_audience': self.target_audience,
            'status': self.status,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'action_url': self.action_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if user is not None:
            data['viewed'] = self.viewed_by.filter(pk=user.pk).exists()
            data['acknowledged'] = self.acknowledged_by.filter(pk=user.pk).exists()
        return data
