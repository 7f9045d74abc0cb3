"""
Shared test fixtures for the realtime and office hour suites.

Provides: a recording transport, an in-memory message store, fake socket
users and database factories for users, courses, threads and sessions.
Dependencies: pytest, pytest-django, pytest-asyncio
System role: Test infrastructure and fixture management
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from types import SimpleNamespace

import pytest
from django.utils import timezone

from core.errors import StorageUnavailable
from messaging.models import Message


class RecordingTransport:
    """
    Stands in for ChannelLayerTransport. Group sends are expanded to the
    handles in the group at send time, so every test can ask what one
    connection actually received, in order.
    """

    def __init__(self):
        self.deliveries = [] # (handle, event, payload)
        self.broadcasts = [] # (group, event, payload, exclude)
        self.groups = {}
        self.failing = set()

    async def send(self, handle, event, payload):
        if handle in self.failing:
            return False
        self.deliveries.append((handle, event, payload))
        return True

    async def group_send(self, group, event, payload, exclude=()):
        self.broadcasts.append((group, event, payload, list(exclude)))
        for handle in sorted(self.groups.get(group, set()) - set(exclude)):
            if handle not in self.failing:
                self.deliveries.append((handle, event, payload))
        return True

    async def group_add(self, group, handle):
        self.groups.setdefault(group, set()).add(handle)

    async def group_discard(self, group, handle):
        self.groups.get(group, set()).discard(handle)

    def received(self, handle, event=None):
        return [
            (name, payload) for target, name, payload in self.deliveries
            if target == handle and (event is None or name == event)
        ]

    def payloads(self, handle, event):
        return [payload for _, payload in self.received(handle, event)]

    def clear(self):
        self.deliveries.clear()
        self.broadcasts.clear()


class FakeMessageStore:
    """
    In-memory MessageStore with the same awaitable methods. Messages are
    real (unsaved) Message instances so payloads match production.
    """

    def __init__(self):
        self.threads = {}
        self.users = {}
        self.messages = {}
        self.delivered = []
        self.fail_delivery = False
        self._next_id = 1

    def add_thread(self, pk, course_id):
        thread = SimpleNamespace(pk=pk, course_id=course_id)
        self.threads[pk] = thread
        return thread

    def add_user(self, user):
        self.users[user.pk] = user
        return user

    def _store(self, message):
        message.pk = self._next_id
        self._next_id += 1
        self.messages[message.pk] = message
        return message

    async def find_thread(self, thread_id):
        return self.threads.get(thread_id)

    async def find_user(self, user_id):
        return self.users.get(user_id)

    async def find_message(self, message_id):
        return self.messages.get(message_id)

    async def save_thread_message(self, sender_id, thread, body, attachments=None, parent_id=None):
        message = Message(
            kind=Message.THREAD, sender_id=sender_id, thread_id=thread.pk, parent_id=parent_id,
            body=body, attachments=list(attachments or []), created_at=timezone.now(),
        )
        message.mark_read(sender_id)
        return self._store(message)

    async def save_direct_message(self, sender_id, recipient_id, body, attachments=None):
        message = Message(
            kind=Message.DIRECT, sender_id=sender_id, recipient_id=recipient_id,
            body=body, attachments=list(attachments or []), created_at=timezone.now(),
        )
        message.mark_read(sender_id)
        return self._store(message)

    async def mark_delivered(self, message_id, user_id):
        if self.fail_delivery:
            raise StorageUnavailable()
        self.delivered.append((message_id, user_id))
        message = self.messages.get(message_id)
        message.mark_delivered(user_id)
        return message

    async def mark_read(self, reader_id, message_ids):
        found = []
        for message_id in message_ids:
            message = self.messages.get(message_id)
            if message is None:
                continue
            if message.is_direct and reader_id not in (message.sender_id, message.recipient_id):
                continue
            message.mark_read(reader_id)
            found.append(message)
        return found

    async def react(self, message_id, user_id, emoji, add=True):
        message = self.messages.get(message_id)
        if message is None:
            return None
        if add:
            message.add_reaction(user_id, emoji)
        else:
            message.remove_reaction(user_id, emoji)
        return message


def socket_user(pk, name=None, role='student'):
    """A stand-in for an authenticated user as the coordinator sees it."""
    return SimpleNamespace(
        pk=pk, id=pk, display_name=name or f'User {pk}', role=role,
        is_authenticated=True, email=f'user{pk}@example.com',
    )


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def store():
    return FakeMessageStore()


@pytest.fixture
def alice():
    return socket_user(1, 'Alice Instructor', role='instructor')


@pytest.fixture
def bob():
    return socket_user(2, 'Bob Student')


@pytest.fixture
def carol():
    return socket_user(3, 'Carol Student')


@pytest.fixture
async def coordinator(transport, store):
    """
    A coordinator wired to the recording transport and the fake store.
    The sweeper interval is long enough that tests drive sweeps by hand.
    """
    from realtime.coordinator import RealtimeCoordinator

    coordinator = RealtimeCoordinator(
        transport=transport, store=store, grace_seconds=300, sweep_interval=3600, preview_length=50,
    )
    yield coordinator
    await coordinator.stop()


# --- Database factories ---

@pytest.fixture
def make_user(db, django_user_model):
    counter = {'n': 0}

    def factory(role='student', first_name=None, last_name='Tester', password='pass-1234-word'):
        counter['n'] += 1
        n = counter['n']
        return django_user_model.objects.create_user(
            email=f'{role}{n}@example.com',
            password=password,
            first_name=first_name or role.capitalize(),
            last_name=last_name,
            role=role,
        )
    return factory


@pytest.fixture
def instructor(make_user):
    return make_user('instructor', first_name='Ada')


@pytest.fixture
def student(make_user):
    return make_user('student', first_name='Sam')


@pytest.fixture
def outsider(make_user):
    return make_user('student', first_name='Olive')


@pytest.fixture
def course(db, instructor):
    from courses.models import Course
    return Course.objects.create(title='Distributed Systems', slug='distributed-systems', instructor=instructor)


@pytest.fixture
def thread(db, course, instructor):
    from courses.models import Thread
    return Thread.objects.create(course=course, title='Week 1 questions', created_by=instructor)


@pytest.fixture
def session_times():
    start = datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc)
    return start, start + timedelta(minutes=30)


@pytest.fixture
def office_hour(db, instructor, student, course, session_times):
    from officehours.models import OfficeHourSession
    start, end = session_times
    return OfficeHourSession.objects.create(
        instructor=instructor, student=student, course=course,
        start_time=start, end_time=end, duration=30, topic='Exam prep',
    )


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()
