# realtime/routing.py

# Import path from django.urls because it's used to define WebSocket URL patterns.
from django.urls import path
# Import consumers from . because the URL patterns point at the RealtimeConsumer.
from . import consumers

"""
Builds the WebSocket URL patterns around one coordinator instance,
which every consumer created from these patterns shares.
RT: asgi.py calls this once at startup.
"""
def build_websocket_urlpatterns(coordinator):
    return [
        # Chat, presence and video call signaling all share this socket.
        path('ws/realtime/', consumers.RealtimeConsumer.as_asgi(coordinator=coordinator)),
    ]
