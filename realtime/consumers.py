# realtime/consumers.py

# Import json because WebSocket messages are sent as text in JSON format.
import json
# Import AsyncWebsocketConsumer from channels.generic.websocket because this is the base class for our real-time consumer.
from channels.generic.websocket import AsyncWebsocketConsumer
# Import DjangoJSONEncoder because some payloads carry dates and decimals.
from django.core.serializers.json import DjangoJSONEncoder

# Close code sent when the socket has no valid credential
UNAUTHENTICATED_CLOSE_CODE = 4401

"""
One instance per open socket. The consumer itself keeps no state
besides its channel name: it hands every frame to the shared
RealtimeCoordinator and writes back whatever the coordinator sends
to its channel or to one of its groups.
RT: This is the single WebSocket endpoint for chat, presence and
video call signaling.
"""
class RealtimeConsumer(AsyncWebsocketConsumer):

    def __init__(self, *args, coordinator=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.coordinator = coordinator
        self.registered = False

    """
    Runs when a client opens the socket. Anonymous users (no session
    and no valid token) are turned away before the handshake completes.
    RT: Registers the connection, which broadcasts the new online list.
    """
    async def connect(self):
        user = self.scope.get('user')
        if user is None or not user.is_authenticated:
            await self.close(code=UNAUTHENTICATED_CLOSE_CODE)
            return
        await self.accept()
        await self.coordinator.connect(self.channel_name, user)
        self.registered = True

    async def disconnect(self, close_code):
        if self.registered:
            await self.coordinator.disconnect(self.channel_name)
            self.registered = False

    async def receive(self, text_data=None, bytes_data=None):
        try:
            frame = json.loads(text_data or '')
        except ValueError:
            frame = None # rejected by the coordinator as a malformed frame
        await self.coordinator.dispatch(self.channel_name, frame)

    """
    Called by the channel layer for every event addressed to this
    connection or to a group it is in. Room broadcasts that should
    skip the sender list its handle under 'exclude'.
    """
    async def realtime_event(self, event):
        if self.channel_name in event.get('exclude', ()):
            return
        await self.send(text_data=json.dumps(
            {'event': event['event'], 'payload': event['payload']}, cls=DjangoJSONEncoder
        ))
