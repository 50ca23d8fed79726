"""
WebSocket consumer for BundleHub live updates.

Clients connect to /ws/?token=<access token>. The socket is read-only from
the client's point of view apart from a ping/pong keepalive.
"""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from . import realtime
from .exceptions import AuthenticationError

logger = logging.getLogger('core.realtime')


@database_sync_to_async
def get_user_for_token(token):
    from .tokens import authenticate_token
    return authenticate_token(token)


class UpdatesConsumer(AsyncJsonWebsocketConsumer):
    """
    Joins the user's personal group, the broadcast group and, for admins,
    the admins group.
    """

    async def connect(self):
        query = parse_qs(self.scope.get('query_string', b'').decode())
        token = (query.get('token') or [''])[0]

        try:
            user = await get_user_for_token(token)
        except AuthenticationError as e:
            logger.info(f"Rejected WebSocket connection: {e.message}")
            await self.close(code=4001)
            return

        self.user_id = user.pk
        self.groups_joined = [realtime.user_group(user.pk), realtime.BROADCAST_GROUP]
        if user.is_admin:
            self.groups_joined.append(realtime.ADMINS_GROUP)

        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)

        await self.accept()
        await self.send_json({'type': 'connected', 'data': {'user_id': user.pk}})
        logger.info(f"WebSocket connected for user {user.pk}")

    async def disconnect(self, code):
        for group in getattr(self, 'groups_joined', []):
            await self.channel_layer.group_discard(group, self.channel_name)
        if hasattr(self, 'user_id'):
            logger.info(f"WebSocket disconnected for user {self.user_id} (code {code})")

    async def receive_json(self, content, **kwargs):
        if content.get('type') == 'ping':
            await self.send_json({'type': 'pong'})

    async def push_event(self, event):
        """Handler for events sent by core.realtime."""
        await self.send_json(event['message'])
