"""
Real-time fan-out for BundleHub.

Services call these helpers after a state change; connected browsers get
the event through core.consumers.UpdatesConsumer. Every user has a group
"user_<id>" and admins also join "admins".

Message types:
- notification, wallet_update, announcement, site_status_update
- order_created, order_status_updated
- commission_created, commission_updated, commission_paid, commission_finalized

Publishing never raises: a dead channel layer must not fail a wallet debit.
"""

import json
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

logger = logging.getLogger('core.realtime')

ADMINS_GROUP = 'admins'
BROADCAST_GROUP = 'everyone'


def user_group(user_id):
    return f'user_{user_id}'


def _jsonable(payload):
    """Round-trip through DjangoJSONEncoder so Decimals and datetimes survive msgpack/in-memory layers."""
    return json.loads(json.dumps(payload, cls=DjangoJSONEncoder))


def _send(group, message_type, payload):
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.debug(f"No channel layer configured, dropping {message_type} for {group}")
        return False

    event = {
        'type': 'push.event',
        'message': {
            'type': message_type,
            'data': _jsonable(payload),
            'timestamp': timezone.now().isoformat(),
        },
    }
    try:
        async_to_sync(channel_layer.group_send)(group, event)
    except Exception as e:
        logger.error(f"Failed to publish {message_type} to {group}: {e}")
        return False

    logger.debug(f"Published {message_type} to {group}")
    return True


def publish_to_user(user_id, message_type, payload):
    return _send(user_group(user_id), message_type, payload)


def publish_to_admins(message_type, payload):
    return _send(ADMINS_GROUP, message_type, payload)


def broadcast(message_type, payload):
    """Send to every connected client."""
    return _send(BROADCAST_GROUP, message_type, payload)
