# realtime/rooms.py

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar, Dict, List, Optional

# Channel layer group names only allow these characters
ROOM_ID_PATTERN = re.compile(r'^[A-Za-z0-9_\-.]{1,64}$')


@dataclass(frozen=True)
class MessagingRoom:
    """A chat room for a course or a discussion thread, e.g. 'course-12'."""

    KINDS: ClassVar[tuple] = ('course', 'thread')

    kind: str
    id: str

    @property
    def name(self):
        return f'{self.kind}-{self.id}'

    @property
    def group_name(self):
        return f'room.{self.name}'


@dataclass(frozen=True)
class ConferenceRoom:
    """A video call room, named by the bare session room id."""

    id: str

    @property
    def name(self):
        return self.id

    @property
    def group_name(self):
        return f'conference.{self.id}'


def thread_room(thread_id):
    return MessagingRoom('thread', str(thread_id))


def course_room(course_id):
    return MessagingRoom('course', str(course_id))


@dataclass
class Member:
    user_id: int
    handle: str
    display_name: str
    role: str
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self):
        return {
            'userId': self.user_id,
            'userName': self.display_name,
            'socketId': self.handle,
            'role': self.role,
            'joinedAt': self.joined_at.isoformat(),
        }


@dataclass
class JoinResult:
    members: List[Member]
    rejoin: bool
    replaced: Optional[Member] = None


"""
Who is in which room right now. A room holds at most one entry per
user id: joining again (a second tab, or a stale entry left behind
by a network blip) replaces the old entry and is reported as a
rejoin. Rooms with nobody left in them are dropped on the spot and
come back the next time someone joins.
RT: Only the coordinator mutates this table, one event at a time.
"""
class RoomMembershipTable:

    def __init__(self):
        self._rooms: Dict[object, Dict[int, Member]] = {}

    def join(self, room, member):
        members = self._rooms.setdefault(room, {})
        # pop + insert moves a rejoining member to the end of the order
        replaced = members.pop(member.user_id, None)
        members[member.user_id] = member
        return JoinResult(members=list(members.values()), rejoin=replaced is not None, replaced=replaced)

    def leave(self, room, handle):
        members = self._rooms.get(room)
        if not members:
            return None
        for user_id, member in members.items():
            if member.handle == handle:
                del members[user_id]
                break
        else:
            return None
        if not members:
            del self._rooms[room]
        return member

    def members_of(self, room):
        return list(self._rooms.get(room, {}).values())

    def member(self, room, user_id):
        return self._rooms.get(room, {}).get(user_id)

    def rooms_of(self, handle):
        return [room for room, members in self._rooms.items()
                if any(m.handle == handle for m in members.values())]

    def has_room(self, room):
        return room in self._rooms

    def room_count(self):
        return len(self._rooms)
