"""
Notification models for BundleHub.

Notification, PushSubscription, and NotificationPreference models.
"""

from django.db import models
from django.utils import timezone


# =============================================================================
# NOTIFICATION MODEL
# =============================================================================

class Notification(models.Model):
    """
    In-app message for one user (order updates, wallet changes, commissions).
    """

    class NotificationType(models.TextChoices):
        SUCCESS = 'success', 'Success'
        ERROR = 'error', 'Error'
        WARNING = 'warning', 'Warning'
        INFO = 'info', 'Info'

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='notifications',
        help_text='The user this notification is for'
    )
    title = models.CharField(
        'title',
        max_length=200,
        help_text='Short notification title'
    )
    message = models.TextField(
        'message',
        help_text='Detailed notification content'
    )
    notification_type = models.CharField(
        'type',
        max_length=10,
        choices=NotificationType.choices,
        default=NotificationType.INFO
    )
    is_read = models.BooleanField(
        'read',
        default=False,
        help_text='Has the user seen this notification?'
    )
    metadata = models.JSONField(
        'metadata',
        default=dict,
        blank=True,
        help_text='Related ids, e.g. {"order_id": 12, "type": "order_update"}'
    )
    push_sent = models.BooleanField(
        'push sent',
        default=False,
        help_text='Was a push notification sent?'
    )

    # Timestamps
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True,
        db_index=True
    )
    read_at = models.DateTimeField(
        'read at',
        null=True,
        blank=True,
        help_text='When the notification was marked as read'
    )

    class Meta:
        verbose_name = 'notification'
        verbose_name_plural = 'notifications'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read', '-created_at']),
        ]

    def __str__(self):
        status = '✓' if self.is_read else '●'
        return f"{status} {self.title} → {self.user.display_name}"

    def mark_as_read(self):
        """Mark notification as read and set read timestamp."""
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])

    def mark_as_unread(self):
        if self.is_read:
            self.is_read = False
            self.read_at = None
            self.save(update_fields=['is_read', 'read_at'])

    def to_dict(self):
        return {
            'id': self.pk,
            'title': self.title,
            'message': self.message,
            'type': self.notification_type,
            'read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'metadata': self.metadata,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# PUSH SUBSCRIPTION MODEL
# =============================================================================

class PushSubscription(models.Model):
    """
    Store push notification subscriptions for users.
    Supports VAPID web push.
    """

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='push_subscriptions',
        help_text='User who owns this subscription'
    )
    endpoint = models.TextField(
        'endpoint URL',
        help_text='Push service endpoint URL'
    )
    p256dh_key = models.TextField(
        'p256dh key',
        blank=True,
        help_text='Client public key for encryption'
    )
    auth_key = models.TextField(
        'auth key',
        blank=True,
        help_text='Authentication secret'
    )
    user_agent = models.CharField(
        'user agent',
        max_length=500,
        blank=True,
        help_text='Browser/device user agent'
    )
    is_active = models.BooleanField(
        'active',
        default=True,
        help_text='Is this subscription still valid?'
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    last_used_at = models.DateTimeField(
        'last used at',
        null=True,
        blank=True,
        help_text='Last time a push was sent to this subscription'
    )

    class Meta:
        verbose_name = 'push subscription'
        verbose_name_plural = 'push subscriptions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_active']),
        ]

    def __str__(self):
        status = '✓' if self.is_active else '✗'
        return f"{status} Push sub for {self.user.display_name}"

    def subscription_info(self):
        """Shape pywebpush expects."""
        return {
            'endpoint': self.endpoint,
            'keys': {'p256dh': self.p256dh_key, 'auth': self.auth_key},
        }

    def touch(self):
        self.last_used_at = timezone.now()
        self.save(update_fields=['last_used_at'])


# =============================================================================
# NOTIFICATION PREFERENCES MODEL
# =============================================================================

class NotificationPreference(models.Model):
    """
    User preferences for push delivery.
    In-app notifications are always stored; these switches only gate push.
    """

    user = models.OneToOneField(
        'User',
        on_delete=models.CASCADE,
        related_name='notification_preferences',
        help_text='User these preferences belong to'
    )

    push_enabled = models.BooleanField(
        'push notifications enabled',
        default=True,
        help_text='Receive browser push notifications'
    )
    order_updates = models.BooleanField(
        'order updates',
        default=True
    )
    wallet_updates = models.BooleanField(
        'wallet updates',
        default=True
    )
    commission_updates = models.BooleanField(
        'commission updates',
        default=True
    )
    announcements = models.BooleanField(
        'announcements',
        default=True
    )

    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    CATEGORY_FIELDS = ('order_updates', 'wallet_updates', 'commission_updates', 'announcements')

    class Meta:
        verbose_name = 'notification preference'
        verbose_name_plural = 'notification preferences'

    def __str__(self):
        return f"Notification prefs for {self.user.display_name}"

    @classmethod
    def get_or_create_for_user(cls, user):
        """Get or create notification preferences for a user."""
        prefs, created = cls.objects.get_or_create(user=user)
        return prefs

    def allows(self, category):
        """Is push allowed for this category (None = uncategorised)?"""
        if not self.push_enabled:
            return False
        if category in self.CATEGORY_FIELDS:
            return getattr(self, category)
        return True

    def to_dict(self):
        return {
            'push_enabled': self.push_enabled,
            'order_updates': self.order_updates,
            'wallet_updates': self.wallet_updates,
            'commission_updates': self.commission_updates,
            'announcements': self.announcements,
        }
