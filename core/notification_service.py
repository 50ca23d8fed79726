"""
Notification Service for BundleHub.

Handles sending notifications through three channels:
1. In-app notifications (always)
2. Real-time WebSocket event (always, if the user is connected)
3. Push notifications (via VAPID web push)

Push respects the user's preferences for each category.
"""

import logging
import json

from django.conf import settings
from django.utils import timezone
from pywebpush import webpush, WebPushException

from . import realtime

logger = logging.getLogger('core.notifications')


# =============================================================================
# MAIN NOTIFICATION DISPATCHER
# =============================================================================

def send_notification(
    user,
    title,
    message,
    notification_type='info',
    metadata=None,
    category=None,
    push=True,
    url=None
):
    """
    Create in-app notification and dispatch to the other channels.

    Args:
        user: User to notify
        title: Notification title
        message: Notification body
        notification_type: One of success, error, warning, info
        metadata: Related ids for the client (order_id, transaction_id...)
        category: Preference switch gating push (order_updates, wallet_updates,
            commission_updates, announcements) or None
        push: Set False to skip web push entirely
        url: Page to open when the push is clicked

    Returns:
        Notification: The created notification object
    """
    from .models import Notification, NotificationPreference

    notification = Notification.objects.create(
        user=user,
        title=title,
        message=message,
        notification_type=notification_type,
        metadata=metadata or {},
    )

    logger.info(f"Created notification '{title}' for user {user.email} [type={notification_type}]")

    realtime.publish_to_user(user.pk, 'notification', notification.to_dict())

    if push:
        prefs = NotificationPreference.get_or_create_for_user(user)
        if prefs.allows(category):
            push_sent = send_push_notification(user, title, message, url)
            if push_sent:
                notification.push_sent = True
                notification.save(update_fields=['push_sent'])
        else:
            logger.debug(f"Push for category {category} disabled for user {user.email}")

    return notification


def notify_admins(title, message, notification_type='info', metadata=None, super_admins_only=False):
    """
    Notify every active admin. Returns the number of notifications created.
    """
    from .models import User

    admins = User.objects.admins()
    if super_admins_only:
        admins = admins.filter(user_type=User.UserType.SUPER_ADMIN)

    count = 0
    for admin in admins:
        try:
            send_notification(admin, title, message, notification_type, metadata)
            count += 1
        except Exception as e:
            logger.error(f"Failed to notify admin {admin.email}: {e}")
    return count


# =============================================================================
# PUSH NOTIFICATIONS (VAPID Web Push)
# =============================================================================

PUSH_ICON = '/static/images/icon-192x192.png'
PUSH_BADGE = '/static/images/badge-72x72.png'

# Push services answer 404/410 once a browser has dropped the subscription
GONE_STATUSES = (404, 410)


def _push_payload(title, body, url, icon):
    return json.dumps({
        'title': title,
        'body': body,
        'icon': icon or PUSH_ICON,
        'badge': PUSH_BADGE,
        'tag': 'bundlehub',
        'data': {'url': url or '/notifications/'},
    })


def send_push_notification(user, title, body, url=None, icon=None):
    """
    Web push to every active subscription of `user`.

    Subscriptions the push service reports as gone are deactivated.
    Returns True if at least one delivery succeeded; always False while
    VAPID_PRIVATE_KEY is unset.
    """
    from .models import PushSubscription

    if not settings.VAPID_PRIVATE_KEY:
        logger.debug("VAPID keys not configured, skipping push notification")
        return False

    subscriptions = list(PushSubscription.objects.filter(user=user, is_active=True))
    if not subscriptions:
        return False

    payload = _push_payload(title, body, url, icon)
    claims = {'sub': f'mailto:{settings.VAPID_ADMIN_EMAIL}'}

    delivered = 0
    for subscription in subscriptions:
        try:
            webpush(
                subscription_info=subscription.subscription_info(),
                data=payload,
                vapid_private_key=settings.VAPID_PRIVATE_KEY,
                vapid_claims=claims,
            )
        except WebPushException as e:
            status = getattr(e.response, 'status_code', None)
            logger.warning(f"Push to subscription {subscription.pk} failed ({status}): {e}")
            if status in GONE_STATUSES:
                subscription.is_active = False
                subscription.save(update_fields=['is_active'])
            continue
        subscription.touch()
        delivered += 1

    logger.info(f"Push for {user.email}: {delivered}/{len(subscriptions)} delivered")
    return delivered > 0


def register_push_subscription(user, endpoint, p256dh='', auth='', user_agent=''):
    """Create or refresh a subscription. Returns (subscription, created)."""
    from .models import PushSubscription

    subscription, created = PushSubscription.objects.update_or_create(
        user=user,
        endpoint=endpoint,
        defaults={
            'p256dh_key': p256dh,
            'auth_key': auth,
            'user_agent': user_agent[:500],
            'is_active': True,
        }
    )
    logger.info(f"Push subscription {'created' if created else 'updated'} for user {user.email}")
    return subscription, created


def unregister_push_subscription(user, endpoint=None):
    """Deactivate one subscription, or all of the user's if no endpoint is given."""
    from .models import PushSubscription

    subscriptions = PushSubscription.objects.filter(user=user, is_active=True)
    if endpoint:
        subscriptions = subscriptions.filter(endpoint=endpoint)
    return subscriptions.update(is_active=False)


# =============================================================================
# SPECIALIZED NOTIFICATION CREATORS
# =============================================================================

def notify_order_status(order, new_status):
    """Tell the order's creator that its status changed."""
    user = order.created_by or order.tenant
    type_map = {
        'completed': 'success',
        'failed': 'error',
        'cancelled': 'warning',
        'partially_completed': 'warning',
    }
    return send_notification(
        user=user,
        title=f"Order {order.order_number} {new_status.replace('_', ' ')}",
        message=f"Your order {order.order_number} is now {new_status.replace('_', ' ')}.",
        notification_type=type_map.get(new_status, 'info'),
        metadata={'order_id': order.pk, 'order_number': order.order_number, 'type': 'order_update'},
        category='order_updates',
        url='/orders/',
    )


def notify_wallet_change(user, amount, direction, description):
    """direction is 'credit' or 'debit'."""
    verb = 'credited with' if direction == 'credit' else 'debited'
    return send_notification(
        user=user,
        title='Wallet credited' if direction == 'credit' else 'Wallet debited',
        message=f"Your wallet was {verb} {settings.CURRENCY} {amount:,.2f}. {description}".strip(),
        notification_type='success' if direction == 'credit' else 'info',
        metadata={'type': 'wallet_update', 'amount': str(amount), 'direction': direction},
        category='wallet_updates',
        url='/wallet/',
    )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def get_unread_count(user):
    """Get count of unread notifications for a user."""
    from .models import Notification
    return Notification.objects.filter(user=user, is_read=False).count()


def mark_all_as_read(user):
    """Mark all unread notifications as read for a user."""
    from .models import Notification
    count = Notification.objects.filter(user=user, is_read=False).update(
        is_read=True,
        read_at=timezone.now()
    )
    logger.info(f"Marked {count} notifications as read for user {user.email}")
    return count


def clear_read(user):
    """Delete notifications the user has already read."""
    from .models import Notification
    count, _ = Notification.objects.filter(user=user, is_read=True).delete()
    logger.info(f"Cleared {count} read notifications for user {user.email}")
    return count


def clear_all(user):
    from .models import Notification
    count, _ = Notification.objects.filter(user=user).delete()
    logger.info(f"Cleared all {count} notifications for user {user.email}")
    return count
