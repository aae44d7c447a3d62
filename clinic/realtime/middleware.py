"""
WebSocket authentication from a ``?token=<access jwt>`` query parameter.

Browsers cannot set an ``Authorization`` header on a WebSocket handshake,
so the access token travels in the query string.  ``scope["user"]`` is
the resolved user or ``AnonymousUser``.
"""
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

from clinic.authentication import verify_token

logger = logging.getLogger(__name__)


@database_sync_to_async
def _user_for_token(raw: str):
    try:
        return verify_token(raw)
    except (InvalidToken, TokenError, AuthenticationFailed):
        logger.info('websocket connection with an invalid token')
        return AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        query = parse_qs((scope.get('query_string') or b'').decode())
        token = (query.get('token') or [None])[0]
        scope = dict(scope)
        scope['user'] = await _user_for_token(token) if token else AnonymousUser()
        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    return JWTAuthMiddleware(inner)
