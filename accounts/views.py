# accounts/views.py

# Import json because the token endpoint reads a JSON body.
import json
# Import authenticate from django.contrib.auth because the token endpoint checks email and password.
from django.contrib.auth import authenticate
# Import JsonResponse from django.http because API views answer with JSON.
from django.http import JsonResponse
# Import csrf_exempt and require_POST because API clients post here without a session cookie.
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.errors import InvalidRequest, Unauthenticated, error_response
from .tokens import issue_token

"""
Exchanges an email and password for a bearer token. The token is
what API clients send in "Authorization: Bearer ..." and what the
realtime socket expects in "?token=...".
"""
@csrf_exempt
@require_POST
def token_view(request):
    try:
        data = json.loads(request.body or b'{}')
    except ValueError:
        return error_response(InvalidRequest('Request body must be valid JSON'))
    if not isinstance(data, dict) or not data.get('email') or not data.get('password'):
        return error_response(InvalidRequest('Email and password are required'))

    user = authenticate(request, email=data['email'], password=data['password'])
    if user is None:
        return error_response(Unauthenticated('Invalid email or password'))
    return JsonResponse({
        'status': 'success',
        'data': {
            'token': issue_token(user),
            'user': {'id': user.pk, 'name': user.display_name, 'email': user.email, 'role': user.role},
        },
    })
