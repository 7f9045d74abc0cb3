# accounts/tokens.py

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import signing

from core.errors import Unauthenticated

TOKEN_SALT = 'accounts.bearer-token'

"""
Bearer tokens for API and socket clients. A token is just the
user's primary key signed with the project SECRET_KEY and a
timestamp, so it can be checked without a token table. Issuing
happens at the token endpoint (accounts/views.py); the realtime layer only
ever calls authenticate_token, once per connection.
"""
def issue_token(user):
    signer = signing.TimestampSigner(salt=TOKEN_SALT)
    return signer.sign(str(user.pk))


def authenticate_token(token):
    if not token:
        raise Unauthenticated('Token not provided')

    signer = signing.TimestampSigner(salt=TOKEN_SALT)
    try:
        user_pk = signer.unsign(token, max_age=settings.AUTH_TOKEN_MAX_AGE)
    except signing.SignatureExpired:
        raise Unauthenticated('Token expired')
    except signing.BadSignature:
        raise Unauthenticated('Invalid token')

    User = get_user_model()
    try:
        user = User.objects.get(pk=user_pk)
    except (User.DoesNotExist, ValueError):
        raise Unauthenticated('User not found')
    if not user.is_active:
        raise Unauthenticated('User is inactive')
    return user


def token_from_header(value):
    # "Bearer <token>" -> "<token>"; anything else -> None
    if not value:
        return None
    parts = value.split()
    if len(parts) == 2 and parts[0].lower() == 'bearer':
        return parts[1]
    return None
