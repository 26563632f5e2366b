"""Consumer that relays booking and offer events to the signed-in user."""

from typing import Any, Dict

from .base import BaseConsumer


class UserEventConsumer(BaseConsumer):
    """
    Pushes events sent to ``user_<id>`` down the socket.

    Clients may send ``{"type": "ping"}`` to keep the connection alive.
    """

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "ping":
            await self.send_json({"type": "pong"})
            return
        await super().handle_message(msg_type, data)

    async def user_event(self, event):
        """Handler for ``user.event`` group messages."""
        await self.send_json({
            "type": event.get("event"),
            "payload": event.get("payload", {}),
        })
