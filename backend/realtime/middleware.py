"""WebSocket authentication middleware for JWT and session-based auth."""

import logging
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()
logger = logging.getLogger(__name__)


class JWTOrSessionAuthMiddleware(BaseMiddleware):
    """
    Authenticate WebSocket connections using either:
    1. JWT in querystring (?token=...)
    2. The session user already resolved by AuthMiddlewareStack
    """

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get("query_string", b"").decode())

        token_list = params.get("token")
        if token_list:
            scope["user"] = await self._user_from_token(token_list[0])
        elif "user" not in scope:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)

    async def _user_from_token(self, token):
        try:
            user_id = AccessToken(token)["user_id"]
            return await sync_to_async(User.objects.get)(id=user_id)
        except (TokenError, KeyError, User.DoesNotExist) as e:
            logger.debug("JWT auth failed: %s", e)
            return AnonymousUser()
