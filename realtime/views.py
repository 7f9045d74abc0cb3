# realtime/views.py

from django.http import JsonResponse
from django.views.decorators.http import require_GET

from core.errors import Unauthenticated, error_response
from core.utils import get_online_user_ids


# Current online user ids, as last published by the realtime coordinator
@require_GET
def online_users_view(request):
    if not request.user.is_authenticated:
        return error_response(Unauthenticated())
    return JsonResponse({'status': 'success', 'data': {'userIds': get_online_user_ids()}})
