"""
Notification helpers for sending realtime events to users.

Workflows talk to a notifier object with one method,
``notify(user_id, event_type, payload)``. ChannelsNotifier defers the send
until the surrounding transaction commits and hands it to a Celery task; the
task pushes the event to the user's personal channel group ``user_<id>``.

A notification failure is logged and never undoes a committed decision.
"""

import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)

USER_EVENT_MESSAGE_TYPE = "user.event"


def user_group_name(user_id: int) -> str:
    return f"user_{user_id}"


def send_user_event(user_id: int, event_type: str, payload: Optional[Dict[str, Any]] = None) -> bool:
    """
    Push one event to ``user_<user_id>`` on the channel layer.

    Returns:
        True if handed to the channel layer, False if no layer is configured
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer configured; dropping %s for user %s", event_type, user_id)
        return False

    message = {
        "type": USER_EVENT_MESSAGE_TYPE,
        "event": event_type,
        "payload": payload or {},
    }
    logger.debug("WS -> user_%s: %s", user_id, message)
    async_to_sync(channel_layer.group_send)(user_group_name(user_id), message)
    return True


class ChannelsNotifier:
    """Notifier that delivers after commit through a retrying Celery task."""

    def notify(self, user_id: int, event_type: str, payload: Optional[Dict[str, Any]] = None):
        try:
            transaction.on_commit(lambda: self._enqueue(user_id, event_type, payload or {}))
        except Exception:
            logger.exception("Failed to schedule %s notification for user %s", event_type, user_id)

    def _enqueue(self, user_id: int, event_type: str, payload: Dict[str, Any]):
        from rides.tasks import deliver_user_event_task

        try:
            deliver_user_event_task.delay(user_id, event_type, payload)
        except Exception:
            logger.exception("Failed to queue %s notification for user %s", event_type, user_id)
