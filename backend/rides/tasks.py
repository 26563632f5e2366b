"""Celery tasks for ride-related background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=60,
    retry_kwargs={"max_retries": 5},
)
def deliver_user_event_task(user_id: int, event_type: str, payload: dict):
    """
    Deliver a ride/demand event to the user's channel group.

    Scheduled after commit by ChannelsNotifier. Retries with backoff, so the
    client side must tolerate the occasional duplicate event.
    """
    from realtime.notifications import send_user_event

    delivered = send_user_event(user_id, event_type, payload)
    logger.info(f"Delivered {event_type} to user {user_id}: {delivered}")
    return delivered
