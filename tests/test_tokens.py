"""
Tests for bearer tokens and the socket token middleware.
"""

import pytest
from django.contrib.auth.models import AnonymousUser

from accounts.middleware import TokenAuthMiddleware
from accounts.tokens import authenticate_token, issue_token, token_from_header
from core.errors import Unauthenticated

pytestmark = pytest.mark.django_db


class TestTokens:
    """Issuing and checking signed tokens."""

    def test_round_trip(self, student):
        assert authenticate_token(issue_token(student)) == student

    def test_tampered_token(self, student):
        with pytest.raises(Unauthenticated):
            authenticate_token(issue_token(student) + 'x')

    def test_expired_token(self, student, settings):
        token = issue_token(student)
        settings.AUTH_TOKEN_MAX_AGE = -1
        with pytest.raises(Unauthenticated, match='expired'):
            authenticate_token(token)

    def test_inactive_user(self, student):
        token = issue_token(student)
        student.is_active = False
        student.save()
        with pytest.raises(Unauthenticated):
            authenticate_token(token)

    def test_empty_token(self):
        with pytest.raises(Unauthenticated):
            authenticate_token('')

    @pytest.mark.parametrize('header, expected', [
        ('Bearer abc', 'abc'),
        ('bearer abc', 'abc'),
        ('Basic abc', None),
        ('Bearer', None),
        (None, None),
    ])
    def test_token_from_header(self, header, expected):
        assert token_from_header(header) == expected


class TestTokenAuthMiddleware:
    """Resolving scope['user'] for sockets."""

    def capture(self):
        seen = {}

        async def app(scope, receive, send):
            seen['scope'] = scope
        return seen, app

    def test_token_from_query_string(self):
        scope = {'query_string': b'token=abc&x=1', 'headers': []}
        assert TokenAuthMiddleware.get_token(scope) == 'abc'

    def test_token_from_header(self):
        scope = {'query_string': b'', 'headers': [(b'authorization', b'Bearer xyz')]}
        assert TokenAuthMiddleware.get_token(scope) == 'xyz'

    @pytest.mark.asyncio
    @pytest.mark.django_db(transaction=True)
    async def test_valid_token_sets_user(self, student):
        seen, app = self.capture()
        token = issue_token(student)

        await TokenAuthMiddleware(app)({'type': 'websocket', 'query_string': f'token={token}'.encode()}, None, None)

        assert seen['scope']['user'] == student

    @pytest.mark.asyncio
    @pytest.mark.django_db(transaction=True)
    async def test_bad_token_is_anonymous(self):
        seen, app = self.capture()

        await TokenAuthMiddleware(app)({'type': 'websocket', 'query_string': b'token=bad'}, None, None)

        assert isinstance(seen['scope']['user'], AnonymousUser)
        assert seen['scope']['auth_error'] == 'Invalid token'

    @pytest.mark.asyncio
    async def test_no_token_keeps_session_user(self):
        seen, app = self.capture()
        sentinel = object()

        await TokenAuthMiddleware(app)({'type': 'websocket', 'query_string': b'', 'user': sentinel}, None, None)

        assert seen['scope']['user'] is sentinel
