# realtime/signaling.py

import logging

logger = logging.getLogger(__name__)

"""
Moves WebRTC negotiation (offers, answers, ICE candidates) from one
connection to another. The payload is never looked at. If the target
connection is gone the message is dropped; the clients recover on
their own with an ICE restart.
RT: Also announces people entering and leaving a video call, using
the member list kept by the room membership table.
"""
class SignalingRelay:

    def __init__(self, transport, is_live):
        self.transport = transport
        self.is_live = is_live # callable(handle) -> bool

    async def relay(self, from_handle, to_handle, payload, event='signal'):
        if not self.is_live(to_handle):
            logger.debug("Dropped '%s' from %s: %s is not connected", event, from_handle, to_handle)
            return False
        return await self.transport.send(to_handle, event, {'from': from_handle, **payload})

    async def user_joined(self, room, member, rejoining=False, reconnecting=False):
        payload = {
            **member.to_payload(),
            'roomId': room.name,
            'rejoining': rejoining,
            'reconnecting': reconnecting,
        }
        await self.transport.group_send(room.group_name, 'user:joined', payload, exclude=[member.handle])

    async def user_left(self, room, member, provisional=False):
        payload = {**member.to_payload(), 'roomId': room.name, 'provisional': provisional}
        await self.transport.group_send(room.group_name, 'user:left', payload, exclude=[member.handle])

    async def room_users(self, handle, room, members):
        # Sent to the newcomer only so it can open a peer connection to everyone else
        payload = {'roomId': room.name, 'users': [member.to_payload() for member in members]}
        await self.transport.send(handle, 'room:users', payload)

    async def broadcast(self, room, event, payload, exclude=()):
        await self.transport.group_send(room.group_name, event, payload, exclude=exclude)
