"""
Realtime app for pushing booking and offer events over WebSockets.

Key Components:
    - notifications.py: ChannelsNotifier and the ``user_<id>`` group sender
    - consumers/: WebSocket consumer that relays events to the signed-in user
    - middleware.py: JWT/session authentication for WebSocket connections
"""
