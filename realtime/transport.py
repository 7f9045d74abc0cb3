# realtime/transport.py

import logging

# Import get_channel_layer from channels.layers because every send goes through the configured channel layer.
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

# A global group every connection joins, used only for the online-user list.
PRESENCE_GROUP_NAME = 'global_presence'

# Channel layer message type; Channels maps it to RealtimeConsumer.realtime_event
EVENT_MESSAGE_TYPE = 'realtime.event'


"""
Thin wrapper around the channel layer that speaks in events instead
of raw channel messages. Connection handles are channel names, and
rooms are channel layer groups. A failed send is logged and reported
as False; it never stops delivery to anybody else.
RT: The coordinator, the router and the signaling relay all send
through one of these.
"""
class ChannelLayerTransport:

    def __init__(self, channel_layer=None):
        self.channel_layer = channel_layer or get_channel_layer()

    @staticmethod
    def build_message(event, payload, exclude=()):
        return {
            'type': EVENT_MESSAGE_TYPE,
            'event': event,
            'payload': payload,
            'exclude': list(exclude),
        }

    async def send(self, handle, event, payload):
        try:
            await self.channel_layer.send(handle, self.build_message(event, payload))
        except Exception:
            logger.warning("Could not deliver '%s' to %s", event, handle, exc_info=True)
            return False
        return True

    async def group_send(self, group, event, payload, exclude=()):
        # The consumer drops the message when its own handle is in 'exclude'
        try:
            await self.channel_layer.group_send(group, self.build_message(event, payload, exclude))
        except Exception:
            logger.warning("Could not broadcast '%s' to group %s", event, group, exc_info=True)
            return False
        return True

    async def group_add(self, group, handle):
        await self.channel_layer.group_add(group, handle)

    async def group_discard(self, group, handle):
        await self.channel_layer.group_discard(group, handle)
