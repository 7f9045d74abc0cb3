# config/asgi.py

import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.auth import AuthMiddlewareStack
from accounts.middleware import TokenAuthMiddleware
from realtime.coordinator import RealtimeCoordinator
from realtime.routing import build_websocket_urlpatterns

# The one owner of live presence and room state for this process
coordinator = RealtimeCoordinator()

"""
This file is the main entry-point for the server. It splits
incoming connections: normal HTTP requests go to Django, and
WebSocket connections go to the realtime consumer. Sockets are
authenticated by the session cookie first, then by a bearer token
if one is supplied.
RT: Every consumer built here shares the coordinator above.
"""
application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AuthMiddlewareStack(
        TokenAuthMiddleware(
            URLRouter(build_websocket_urlpatterns(coordinator))
        )
    ),
})
