"""
WebSocket URL routing for BundleHub.
"""

from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path('ws/', consumers.UpdatesConsumer.as_asgi()),
]
