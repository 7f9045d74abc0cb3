# core/errors.py

from django.http import JsonResponse
from django.utils import timezone

"""
These are the errors the realtime layer and the office-hour API
raise on purpose. Each one carries a stable 'code' so clients can
render a different message for "you can't do that" (Unauthorized)
and "you can't do that right now" (InvalidState).
RT: Socket handlers turn these into an 'error' event for the sender
only; HTTP views turn them into a JSON error body.
"""
class RealtimeError(Exception):
    code = 'INTERNAL_ERROR'
    status_code = 500
    default_message = 'Something went wrong'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_event_payload(self):
        return {'code': self.code, 'message': self.message}


class Unauthenticated(RealtimeError):
    code = 'UNAUTHENTICATED'
    status_code = 401
    default_message = 'Authentication required'


class InvalidRequest(RealtimeError):
    code = 'INVALID_REQUEST'
    status_code = 400
    default_message = 'Malformed request'


class NotFound(RealtimeError):
    code = 'NOT_FOUND'
    status_code = 404
    default_message = 'Not found'


class Unauthorized(RealtimeError):
    code = 'UNAUTHORIZED'
    status_code = 403
    default_message = 'Not authorized to perform this action'


class InvalidState(RealtimeError):
    code = 'INVALID_STATE'
    status_code = 409
    default_message = 'Operation not allowed in the current state'


class StorageUnavailable(RealtimeError):
    code = 'STORAGE_UNAVAILABLE'
    status_code = 503
    default_message = 'Storage is temporarily unavailable'


# Only ever logged: notifications follow an already committed change.
class NotificationFailed(RealtimeError):
    code = 'NOTIFICATION_FAILED'
    default_message = 'Notification could not be delivered'


def error_response(exc):
    # Same body shape for every API error: status / message / code / timestamp
    status_code = getattr(exc, 'status_code', 500)
    body = {
        'status': 'fail' if 400 <= status_code < 500 else 'error',
        'message': getattr(exc, 'message', None) or 'Something went wrong',
        'code': getattr(exc, 'code', 'INTERNAL_ERROR'),
        'timestamp': timezone.now().isoformat(),
    }
    return JsonResponse(body, status=status_code)
