# accounts/middleware.py

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from core.errors import Unauthenticated
from .tokens import authenticate_token, token_from_header

logger = logging.getLogger(__name__)


class BearerTokenMiddleware:
    """
    Authenticates API clients that send "Authorization: Bearer <token>".
    Browser requests without the header keep using the session cookie.
    Token requests carry no cookie, so CSRF checks are skipped for them.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        token = token_from_header(request.META.get('HTTP_AUTHORIZATION'))
        if token:
            try:
                request.user = authenticate_token(token)
                request._dont_enforce_csrf_checks = True
            except Unauthenticated as exc:
                logger.info("Rejected bearer token: %s", exc.message)
                request.user = AnonymousUser()
        return self.get_response(request)


@database_sync_to_async
def get_user_for_token(token):
    return authenticate_token(token)


"""
Channels middleware that resolves the socket's identity once, when
the connection opens. The token comes from "?token=..." (browsers
can't set headers on a WebSocket) or from an Authorization header.
Connections without a token keep whatever the session middleware
put in scope["user"].
RT: The consumer closes any connection whose user is anonymous.
"""
class TokenAuthMiddleware(BaseMiddleware):

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = self.get_token(scope)
        if token:
            try:
                scope['user'] = await get_user_for_token(token)
            except Unauthenticated as exc:
                logger.info("Rejected socket token: %s", exc.message)
                scope['user'] = AnonymousUser()
                scope['auth_error'] = exc.message
        return await super().__call__(scope, receive, send)

    @staticmethod
    def get_token(scope):
        query = parse_qs(scope.get('query_string', b'').decode())
        if query.get('token'):
            return query['token'][0]
        for name, value in scope.get('headers', []):
            if name == b'authorization':
                return token_from_header(value.decode())
        return None
