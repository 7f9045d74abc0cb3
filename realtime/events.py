# realtime/events.py

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from core.errors import InvalidRequest
from .rooms import ROOM_ID_PATTERN, ConferenceRoom, MessagingRoom

"""
Every event a client may send over the realtime socket, one frozen
dataclass per kind. parse_event() is the only way in: it checks
the required fields and rejects anything else with InvalidRequest,
so the coordinator never sees a half-formed event.
RT: Frames look like {"event": "thread:message", "payload": {...}}.
"""


@dataclass(frozen=True)
class RoomJoin:
    room: MessagingRoom


@dataclass(frozen=True)
class RoomLeave:
    room: MessagingRoom


@dataclass(frozen=True)
class ThreadMessage:
    thread_id: int
    content: str
    attachments: Tuple[Any, ...] = ()
    parent_id: Optional[int] = None


@dataclass(frozen=True)
class DirectMessage:
    receiver_id: int
    content: str
    attachments: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class MarkRead:
    message_ids: Tuple[int, ...]


@dataclass(frozen=True)
class React:
    message_id: int
    emoji: str
    add: bool = True


@dataclass(frozen=True)
class Typing:
    is_typing: bool
    thread_id: Optional[int] = None
    receiver_id: Optional[int] = None


@dataclass(frozen=True)
class ConferenceJoin:
    room: ConferenceRoom
    user_name: Optional[str] = None


@dataclass(frozen=True)
class ConferenceLeave:
    room: ConferenceRoom


@dataclass(frozen=True)
class Signal:
    to: str
    data: Any
    event: str = 'signal'
    field: str = 'signal'


@dataclass(frozen=True)
class RoomRelay:
    room: ConferenceRoom
    event: str # outbound event name
    data: dict
    include_sender: bool = False


# inbound name -> (outbound name, forwarded payload fields, sender also receives it)
ROOM_RELAYS = {
    'screen:share:start': ('screen:share:started', (), False),
    'screen:share:stop': ('screen:share:stopped', (), False),
    'hand:raise': ('hand:raised', (), False),
    'hand:lower': ('hand:lowered', (), False),
    'mic:toggle': ('mic:toggled', ('status',), False),
    'camera:toggle': ('camera:toggled', ('status',), False),
    'recording:start': ('recording:started', (), False),
    'recording:stop': ('recording:stopped', (), False),
    'connection:quality': ('connection:quality:update', ('status',), False),
    'conference:message': ('conference:message', ('message',), True),
}


def _require(payload, key):
    value = payload.get(key)
    if value is None or value == '':
        raise InvalidRequest(f"'{key}' is required")
    return value


def _as_int(value, key):
    if isinstance(value, bool):
        raise InvalidRequest(f"'{key}' must be an id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"'{key}' must be an id")


def _room_id(value, key):
    value = str(value)
    if not ROOM_ID_PATTERN.match(value):
        raise InvalidRequest(f"'{key}' is not a valid room id")
    return value


def _content(payload):
    content = _require(payload, 'content')
    if not isinstance(content, str) or not content.strip():
        raise InvalidRequest("'content' must be a non-empty string")
    return content


def _attachments(payload):
    attachments = payload.get('attachments') or []
    if not isinstance(attachments, list):
        raise InvalidRequest("'attachments' must be a list")
    return tuple(attachments)


def _messaging_room(payload):
    room_type = _require(payload, 'roomType')
    if room_type not in MessagingRoom.KINDS:
        raise InvalidRequest(f"Unknown roomType '{room_type}'")
    return MessagingRoom(room_type, _room_id(_require(payload, 'roomId'), 'roomId'))


def _conference_room(payload):
    return ConferenceRoom(_room_id(_require(payload, 'roomId'), 'roomId'))


def _typing(payload, is_typing):
    thread_id = payload.get('threadId')
    receiver_id = payload.get('receiverId')
    if thread_id is not None:
        return Typing(is_typing, thread_id=_as_int(thread_id, 'threadId'))
    if receiver_id is not None:
        return Typing(is_typing, receiver_id=_as_int(receiver_id, 'receiverId'))
    raise InvalidRequest("'threadId' or 'receiverId' is required")


def _mark_read(payload):
    message_ids = payload.get('messageIds')
    if not isinstance(message_ids, list):
        raise InvalidRequest("'messageIds' must be a list")
    return MarkRead(tuple(_as_int(message_id, 'messageIds') for message_id in message_ids))


def _react(payload):
    action = payload.get('action', 'add')
    if action not in ('add', 'remove'):
        raise InvalidRequest("'action' must be 'add' or 'remove'")
    emoji = _require(payload, 'emoji')
    if not isinstance(emoji, str) or len(emoji) > 32:
        raise InvalidRequest("'emoji' must be a short string")
    return React(_as_int(_require(payload, 'messageId'), 'messageId'), emoji, add=action == 'add')


def _signal(payload, event, field):
    to = _require(payload, 'to')
    if not isinstance(to, str):
        raise InvalidRequest("'to' must be a connection id")
    return Signal(to=to, data=_require(payload, field), event=event, field=field)


def _room_relay(name, payload):
    outbound, fields, include_sender = ROOM_RELAYS[name]
    data = {key: payload.get(key) for key in fields}
    if name == 'conference:message':
        _require(payload, 'message')
    return RoomRelay(_conference_room(payload), outbound, data, include_sender)


def parse_event(frame):
    if not isinstance(frame, dict):
        raise InvalidRequest('Event frame must be an object')
    name = frame.get('event')
    payload = frame.get('payload') or {}
    if not isinstance(name, str):
        raise InvalidRequest("'event' is required")
    if not isinstance(payload, dict):
        raise InvalidRequest("'payload' must be an object")

    if name == 'room:join':
        return RoomJoin(_messaging_room(payload))
    elif name == 'room:leave':
        return RoomLeave(_messaging_room(payload))
    elif name == 'thread:message':
        parent_id = payload.get('parentId')
        return ThreadMessage(
            thread_id=_as_int(_require(payload, 'threadId'), 'threadId'),
            content=_content(payload),
            attachments=_attachments(payload),
            parent_id=_as_int(parent_id, 'parentId') if parent_id is not None else None,
        )
    elif name == 'dm:message':
        return DirectMessage(
            receiver_id=_as_int(_require(payload, 'receiverId'), 'receiverId'),
            content=_content(payload),
            attachments=_attachments(payload),
        )
    elif name == 'message:read':
        return _mark_read(payload)
    elif name == 'message:react':
        return _react(payload)
    elif name == 'typing:start':
        return _typing(payload, True)
    elif name == 'typing:stop':
        return _typing(payload, False)
    elif name == 'join:room':
        user_name = payload.get('userName')
        return ConferenceJoin(_conference_room(payload), user_name if isinstance(user_name, str) else None)
    elif name == 'leave:room':
        return ConferenceLeave(_conference_room(payload))
    elif name == 'signal':
        return _signal(payload, 'signal', 'signal')
    elif name == 'ice-candidate':
        return _signal(payload, 'ice-candidate', 'candidate')
    elif name in ROOM_RELAYS:
        return _room_relay(name, payload)
    raise InvalidRequest(f"Unknown event '{name}'")
