"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers import UserEventConsumer

websocket_urlpatterns = [
    # Personal event stream for booking requests, offers and ride updates
    # URL: ws://localhost:8000/ws/events/
    re_path(
        r"ws/events/$",
        UserEventConsumer.as_asgi(),
        name="user-events-ws"
    ),
]
