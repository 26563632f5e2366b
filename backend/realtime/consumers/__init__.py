"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .events import UserEventConsumer

__all__ = [
    "BaseConsumer",
    "UserEventConsumer",
]
