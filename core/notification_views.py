"""
Notification Views for BundleHub.

Handles:
- Notification list with filters, unread count
- Mark as read/unread, mark all, clear, delete
- Push subscription registration and preferences
"""

import logging

from django.conf import settings

from . import notification_service
from .admin_forms import NotificationPreferenceForm, PushSubscriptionForm, PushUnsubscribeForm
from .api import ApiView, TokenRequiredMixin, ok, validate, validated_form, paginate
from .exceptions import NotFoundError
from .models import Notification, NotificationPreference

logger = logging.getLogger('core.notifications')


def _get_notification(user, pk):
    notification = Notification.objects.filter(pk=pk, user=user).first()
    if notification is None:
        raise NotFoundError('Notification not found')
    return notification


# =============================================================================
# NOTIFICATION CENTER
# =============================================================================

class NotificationListView(TokenRequiredMixin, ApiView):
    """
    ?type=success|error|warning|info, ?read=read|unread
    """

    def get(self, request):
        qs = Notification.objects.filter(user=request.user)

        filter_type = request.GET.get('type')
        if filter_type:
            qs = qs.filter(notification_type=filter_type)

        read_filter = request.GET.get('read')
        if read_filter == 'unread':
            qs = qs.filter(is_read=False)
        elif read_filter == 'read':
            qs = qs.filter(is_read=True)

        data = paginate(request, qs.order_by('-created_at'), Notification.to_dict)
        data['unread_count'] = notification_service.get_unread_count(request.user)
        return ok(data)

    def delete(self, request):
        """Clear all, or only read ones with ?read=read."""
        if request.GET.get('read') == 'read':
            count = notification_service.clear_read(request.user)
        else:
            count = notification_service.clear_all(request.user)
        return ok({'deleted': count})


class UnreadCountView(TokenRequiredMixin, ApiView):
    """
    Used by the bell badge to update count.
    """

    def get(self, request):
        return ok({'count': notification_service.get_unread_count(request.user)})


class MarkAsReadView(TokenRequiredMixin, ApiView):

    def post(self, request, pk):
        notification = _get_notification(request.user, pk)
        notification.mark_as_read()
        logger.debug(f"Marked notification {pk} as read for user {request.user.email}")
        return ok(notification.to_dict())


class MarkAsUnreadView(TokenRequiredMixin, ApiView):

    def post(self, request, pk):
        notification = _get_notification(request.user, pk)
        notification.mark_as_unread()
        return ok(notification.to_dict())


class MarkAllReadView(TokenRequiredMixin, ApiView):

    def post(self, request):
        count = notification_service.mark_all_as_read(request.user)
        return ok({'updated': count}, f'Marked {count} as read')


class NotificationDetailView(TokenRequiredMixin, ApiView):

    def delete(self, request, pk):
        _get_notification(request.user, pk).delete()
        return ok(message='Notification deleted')


# =============================================================================
# PUSH SUBSCRIPTION
# =============================================================================

class VapidKeyView(ApiView):
    """Public key the browser needs to subscribe."""

    def get(self, request):
        return ok({'public_key': settings.VAPID_PUBLIC_KEY, 'enabled': bool(settings.VAPID_PRIVATE_KEY)})


class RegisterPushView(TokenRequiredMixin, ApiView):
    """
    Called when user enables push notifications.
    """

    def post(self, request):
        data = validate(PushSubscriptionForm, self.data)
        notification_service.register_push_subscription(
            request.user,
            data['endpoint'],
            p256dh=data['keys'].get('p256dh', ''),
            auth=data['keys'].get('auth', ''),
            user_agent=request.META.get('HTTP_USER_AGENT', '')[:500],
        )
        return ok(message='Push subscription registered')


class UnregisterPushView(TokenRequiredMixin, ApiView):
    """
    Without an endpoint every subscription of the user is disabled.
    """

    def post(self, request):
        data = validate(PushUnsubscribeForm, self.data)
        notification_service.unregister_push_subscription(request.user, data['endpoint'] or None)
        return ok(message='Push subscription removed')


class NotificationPreferencesView(TokenRequiredMixin, ApiView):

    def get(self, request):
        return ok(NotificationPreference.get_or_create_for_user(request.user).to_dict())

    def put(self, request):
        form = validated_form(NotificationPreferenceForm, self.data)
        prefs = NotificationPreference.get_or_create_for_user(request.user)
        for field, value in form.changed_values().items():
            setattr(prefs, field, value)
        prefs.save()

        logger.info(f"Notification preferences updated for user {request.user.email}")
        return ok(prefs.to_dict(), 'Preferences saved')

    patch = put
