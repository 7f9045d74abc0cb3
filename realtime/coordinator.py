# realtime/coordinator.py

import asyncio
import logging
from dataclasses import dataclass, field

# Import sync_to_async from asgiref.sync because the online-user snapshot is written to Django's sync cache API.
from asgiref.sync import sync_to_async
from django.conf import settings

from core.errors import RealtimeError, Unauthenticated, Unauthorized
from core.utils import set_online_user_ids
from messaging.router import MessageRouter
from messaging.storage import MessageStore
from . import events
from .grace import DisconnectGraceTracker
from .presence import PresenceRegistry
from .rooms import ConferenceRoom, Member, RoomMembershipTable
from .signaling import SignalingRelay
from .transport import PRESENCE_GROUP_NAME, ChannelLayerTransport

logger = logging.getLogger(__name__)


@dataclass
class Connection:
    handle: str
    user: object
    rooms: set = field(default_factory=set)

    @property
    def user_id(self):
        return self.user.pk

    @property
    def display_name(self):
        return self.user.display_name

    @property
    def role(self):
        return getattr(self.user, 'role', '')


"""
The one object that owns all live realtime state for this process:
who is online, who is in which room, who dropped out recently and
every open connection. asgi.py builds a single instance and hands it
to every consumer, so there is no module-level state anywhere.
Membership and presence changes, plus the notifications they cause,
run under one asyncio lock so that each room sees them in the order
they happened. Storage calls made while routing chat messages run
outside the lock.
RT: Every inbound socket event ends up in dispatch().
"""
class RealtimeCoordinator:

    def __init__(self, transport=None, store=None, grace_seconds=None, sweep_interval=None, preview_length=None):
        conf = getattr(settings, 'REALTIME', {})
        self.transport = transport or ChannelLayerTransport()
        self.presence = PresenceRegistry()
        self.rooms = RoomMembershipTable()
        self.grace = DisconnectGraceTracker(
            grace_seconds if grace_seconds is not None else conf.get('DISCONNECT_GRACE_SECONDS', 300)
        )
        self.sweep_interval = sweep_interval if sweep_interval is not None else conf.get('SWEEP_INTERVAL_SECONDS', 60)
        self.connections = {}
        self.signaling = SignalingRelay(self.transport, self.is_live)
        self.router = MessageRouter(
            store or MessageStore(),
            self.transport,
            self.presence,
            self.handles_in,
            preview_length if preview_length is not None else conf.get('PREVIEW_LENGTH', 50),
        )
        self._lock = asyncio.Lock()
        self._sweeper = None

    # --- Connections ---

    def is_live(self, handle):
        return handle in self.connections

    def handles_in(self, room):
        return [handle for handle, conn in self.connections.items() if room in conn.rooms]

    def get_connection(self, handle):
        conn = self.connections.get(handle)
        if conn is None:
            raise Unauthenticated('Connection is not registered')
        return conn

    async def connect(self, handle, user):
        async with self._lock:
            self.connections[handle] = Connection(handle, user)
            self.presence.register(user.pk, handle)
            await self.transport.group_add(PRESENCE_GROUP_NAME, handle)
            await self.publish_online_users()
        self.start_sweeper()
        logger.info("User %s connected on %s", user.pk, handle)

    """
    Cleans up after a closed socket. Peers in each room the connection
    was in are told the user left, marked as provisional: if the user
    comes back to that room within the grace window the new join is
    reported as a reconnect.
    """
    async def disconnect(self, handle):
        async with self._lock:
            conn = self.connections.pop(handle, None)
            if conn is None:
                return
            # Conference rooms last: only the latest room is remembered per user
            for room in sorted(conn.rooms, key=lambda r: isinstance(r, ConferenceRoom)):
                member = self.rooms.leave(room, handle)
                if member is not None:
                    self.grace.record_disconnect(conn.user_id, room)
                    await self.notify_left(room, member, provisional=True)
                await self.transport.group_discard(room.group_name, handle)
            await self.transport.group_discard(PRESENCE_GROUP_NAME, handle)
            if self.presence.unregister(handle):
                await self.publish_online_users()
        logger.info("User %s disconnected from %s", conn.user_id, handle)

    async def publish_online_users(self):
        user_ids = self.presence.online_user_ids()
        await sync_to_async(set_online_user_ids)(user_ids)
        await self.transport.group_send(PRESENCE_GROUP_NAME, 'users:online', {'userIds': user_ids})

    # --- Rooms ---

    async def join_room(self, handle, room, display_name=None):
        conn = self.get_connection(handle)
        async with self._lock:
            member = Member(conn.user_id, handle, display_name or conn.display_name, conn.role)
            result = self.rooms.join(room, member)
            reconnecting = self.grace.try_recover_reconnect(conn.user_id, room)
            conn.rooms.add(room)
            await self.transport.group_add(room.group_name, handle)
            await self.notify_joined(room, member, result, reconnecting)
        if result.replaced is not None and result.replaced.handle != handle:
            logger.info("User %s in %s moved from socket %s to %s",
                        conn.user_id, room.name, result.replaced.handle, handle)
        if result.rejoin or reconnecting:
            logger.info("User %s rejoined %s (reconnecting=%s)", conn.user_id, room.name, reconnecting)
        return result

    async def leave_room(self, handle, room):
        conn = self.get_connection(handle)
        async with self._lock:
            conn.rooms.discard(room)
            member = self.rooms.leave(room, handle)
            await self.transport.group_discard(room.group_name, handle)
            if member is not None:
                await self.notify_left(room, member, provisional=False)
        return member

    async def notify_joined(self, room, member, result, reconnecting):
        if isinstance(room, ConferenceRoom):
            await self.signaling.user_joined(room, member, rejoining=result.rejoin, reconnecting=reconnecting)
            await self.signaling.room_users(member.handle, room, result.members)
            return
        await self.transport.group_send(room.group_name, 'room:userJoined', {
            'user': {'_id': member.user_id, 'name': member.display_name},
            'roomName': room.name,
            'rejoin': result.rejoin,
            'reconnecting': reconnecting,
        }, exclude=[member.handle])
        await self.transport.send(member.handle, 'room:members', {
            'roomName': room.name,
            'members': [m.to_payload() for m in result.members],
        })

    async def notify_left(self, room, member, provisional):
        if isinstance(room, ConferenceRoom):
            await self.signaling.user_left(room, member, provisional=provisional)
            return
        await self.transport.group_send(room.group_name, 'room:userLeft', {
            'user': {'_id': member.user_id, 'name': member.display_name},
            'roomName': room.name,
            'provisional': provisional,
        }, exclude=[member.handle])

    # --- Inbound events ---

    """
    Entry point for every frame a client sends. Errors are answered
    with an 'error' event to the sender only; the socket stays open
    whatever happens here.
    """
    async def dispatch(self, handle, frame):
        try:
            event = events.parse_event(frame)
            await self.handle_event(handle, event)
        except RealtimeError as exc:
            logger.info("Event from %s rejected: %s (%s)", handle, exc.message, exc.code)
            await self.transport.send(handle, 'error', exc.as_event_payload())
        except Exception:
            logger.exception("Unexpected error while handling an event from %s", handle)
            await self.transport.send(handle, 'error', {'code': 'INTERNAL_ERROR', 'message': 'Internal server error'})

    async def handle_event(self, handle, event):
        conn = self.get_connection(handle)
        user = conn.user

        if isinstance(event, (events.RoomJoin, events.ConferenceJoin)):
            await self.join_room(handle, event.room, getattr(event, 'user_name', None))
        elif isinstance(event, (events.RoomLeave, events.ConferenceLeave)):
            await self.leave_room(handle, event.room)
        elif isinstance(event, events.ThreadMessage):
            await self.router.route_thread_message(
                user, handle, event.thread_id, event.content, event.attachments, event.parent_id
            )
        elif isinstance(event, events.DirectMessage):
            await self.router.route_direct_message(user, handle, event.receiver_id, event.content, event.attachments)
        elif isinstance(event, events.MarkRead):
            await self.router.mark_read(user, event.message_ids)
        elif isinstance(event, events.React):
            await self.router.react(user, event.message_id, event.emoji, add=event.add)
        elif isinstance(event, events.Typing):
            await self.router.relay_typing(
                user, handle, event.is_typing, thread_id=event.thread_id, recipient_id=event.receiver_id
            )
        elif isinstance(event, events.Signal):
            await self.signaling.relay(handle, event.to, {event.field: event.data}, event=event.event)
        elif isinstance(event, events.RoomRelay):
            await self.relay_to_room(conn, event)
        else:
            raise TypeError(f'Unhandled event {event!r}')

    async def relay_to_room(self, conn, event):
        # In-call controls only make sense from someone who is in the call
        if event.room not in conn.rooms:
            raise Unauthorized('Join the room first')
        payload = {'userId': conn.user_id, 'userName': conn.display_name, **event.data}
        exclude = () if event.include_sender else (conn.handle,)
        await self.signaling.broadcast(event.room, event.event, payload, exclude=exclude)

    # --- Grace sweep ---

    def start_sweeper(self):
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self.sweep_forever())

    async def sweep_forever(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            await self.sweep()

    async def sweep(self, now=None):
        async with self._lock:
            return self.grace.sweep(now=now)

    async def stop(self):
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
