from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from rides.models import Ride
from rides.tasks import deliver_user_event_task

HEALTH_GROUP = "health_check"


def _check_database():
    Ride.objects.exists()


def _check_channel_layer():
    # A group add/discard round trip reaches Redis when the Redis layer is configured
    channel_layer = get_channel_layer()
    if channel_layer is None:
        raise RuntimeError("no channel layer")
    channel_name = async_to_sync(channel_layer.new_channel)()
    async_to_sync(channel_layer.group_add)(HEALTH_GROUP, channel_name)
    async_to_sync(channel_layer.group_discard)(HEALTH_GROUP, channel_name)


def _check_celery():
    if deliver_user_event_task.name not in deliver_user_event_task.app.tasks:
        raise RuntimeError("notification task not registered")


CHECKS = (
    ("database", _check_database),
    ("channels", _check_channel_layer),
    ("celery", _check_celery),
)


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Database, channel layer and notification task status"""
    services = {}
    for name, check in CHECKS:
        try:
            check()
            services[name] = "healthy"
        except Exception as e:
            services[name] = f"unhealthy: {e}"

    healthy = all(state == "healthy" for state in services.values())
    return Response(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
