"""
Tests for the realtime coordinator.

Covers: presence broadcasts on connect and disconnect, room joins and
leaves, provisional leaves followed by reconnects inside the grace
window, the grace sweep, in-call relays and error replies from dispatch.
"""

import logging
from datetime import timedelta

import pytest

from core.utils import get_online_user_ids
from realtime.rooms import ConferenceRoom, course_room
from realtime.transport import PRESENCE_GROUP_NAME


def frame(name, **payload):
    return {'event': name, 'payload': payload}


class TestConnections:
    """Connect, disconnect and the online-user list."""

    @pytest.mark.asyncio
    async def test_connect_publishes_online_users(self, coordinator, transport, alice, bob):
        await coordinator.connect('h1', alice)
        await coordinator.connect('h2', bob)

        assert transport.payloads('h1', 'users:online')[-1] == {'userIds': [1, 2]}
        assert transport.payloads('h2', 'users:online') == [{'userIds': [1, 2]}]
        assert get_online_user_ids() == [1, 2]

    @pytest.mark.asyncio
    async def test_disconnect_takes_user_offline(self, coordinator, transport, alice, bob):
        await coordinator.connect('h1', alice)
        await coordinator.connect('h2', bob)
        transport.clear()

        await coordinator.disconnect('h2')

        assert transport.payloads('h1', 'users:online') == [{'userIds': [1]}]
        assert 'h2' not in transport.groups[PRESENCE_GROUP_NAME]
        assert not coordinator.is_live('h2')

    @pytest.mark.asyncio
    async def test_stale_tab_closing_keeps_user_online(self, coordinator, transport, alice):
        await coordinator.connect('tab1', alice)
        await coordinator.connect('tab2', alice)
        transport.clear()

        await coordinator.disconnect('tab1')

        assert coordinator.presence.lookup(1) == 'tab2'
        assert transport.payloads('tab2', 'users:online') == []

    @pytest.mark.asyncio
    async def test_disconnect_of_unknown_handle_is_ignored(self, coordinator, transport):
        await coordinator.disconnect('ghost')
        assert transport.deliveries == []


class TestMessagingRooms:
    """Course and thread room membership."""

    @pytest.mark.asyncio
    async def test_join_notifies_others_and_lists_members(self, coordinator, transport, alice, bob):
        await coordinator.connect('h1', alice)
        await coordinator.connect('h2', bob)
        await coordinator.dispatch('h1', frame('room:join', roomType='course', roomId='7'))
        transport.clear()

        await coordinator.dispatch('h2', frame('room:join', roomType='course', roomId='7'))

        [joined] = transport.payloads('h1', 'room:userJoined')
        assert joined == {'user': {'_id': 2, 'name': 'Bob Student'}, 'roomName': 'course-7',
                          'rejoin': False, 'reconnecting': False}
        [members] = transport.payloads('h2', 'room:members')
        assert [m['userId'] for m in members['members']] == [1, 2]
        assert transport.payloads('h2', 'room:userJoined') == []

    @pytest.mark.asyncio
    async def test_leave_is_not_provisional(self, coordinator, transport, alice, bob):
        await coordinator.connect('h1', alice)
        await coordinator.connect('h2', bob)
        for handle in ('h1', 'h2'):
            await coordinator.dispatch(handle, frame('room:join', roomType='course', roomId='7'))
        transport.clear()

        await coordinator.dispatch('h2', frame('room:leave', roomType='course', roomId='7'))

        [left] = transport.payloads('h1', 'room:userLeft')
        assert left['provisional'] is False
        assert course_room(7) not in coordinator.get_connection('h2').rooms

    @pytest.mark.asyncio
    async def test_empty_room_is_dropped(self, coordinator, alice):
        await coordinator.connect('h1', alice)
        await coordinator.dispatch('h1', frame('room:join', roomType='thread', roomId='3'))
        await coordinator.dispatch('h1', frame('room:leave', roomType='thread', roomId='3'))

        assert coordinator.rooms.room_count() == 0


class TestConferenceReconnect:
    """Provisional leaves and reconnects within the grace window."""

    @pytest.mark.asyncio
    async def test_reconnect_within_grace_window(self, coordinator, transport, alice, bob):
        room = {'roomId': 'AbC123xyz0'}
        await coordinator.connect('a1', alice)
        await coordinator.connect('b1', bob)
        await coordinator.dispatch('a1', frame('join:room', **room))
        await coordinator.dispatch('b1', frame('join:room', **room))
        transport.clear()

        await coordinator.disconnect('b1')

        [left] = transport.payloads('a1', 'user:left')
        assert left['provisional'] is True
        assert left['userId'] == 2

        await coordinator.connect('b2', bob)
        await coordinator.dispatch('b2', frame('join:room', **room))

        [joined] = transport.payloads('a1', 'user:joined')
        assert joined['reconnecting'] is True
        assert joined['socketId'] == 'b2'
        [users] = transport.payloads('b2', 'room:users')
        assert {u['socketId'] for u in users['users']} == {'a1', 'b2'}
        assert coordinator.grace.get(2) is None

    @pytest.mark.asyncio
    async def test_join_after_sweep_is_a_fresh_join(self, coordinator, transport, alice, bob):
        room = {'roomId': 'AbC123xyz0'}
        await coordinator.connect('a1', alice)
        await coordinator.connect('b1', bob)
        await coordinator.dispatch('a1', frame('join:room', **room))
        await coordinator.dispatch('b1', frame('join:room', **room))
        await coordinator.disconnect('b1')

        record = coordinator.grace.get(2)
        removed = await coordinator.sweep(now=record.disconnected_at + timedelta(seconds=301))
        assert removed == 1

        transport.clear()
        await coordinator.connect('b2', bob)
        await coordinator.dispatch('b2', frame('join:room', **room))

        [joined] = transport.payloads('a1', 'user:joined')
        assert joined['reconnecting'] is False

    @pytest.mark.asyncio
    async def test_second_tab_join_is_a_rejoin(self, coordinator, transport, alice, bob):
        await coordinator.connect('a1', alice)
        await coordinator.connect('b1', bob)
        await coordinator.dispatch('a1', frame('join:room', roomId='r1'))
        await coordinator.dispatch('b1', frame('join:room', roomId='r1'))
        transport.clear()

        await coordinator.connect('b2', bob)
        await coordinator.dispatch('b2', frame('join:room', roomId='r1'))

        [joined] = transport.payloads('a1', 'user:joined')
        assert joined['rejoining'] is True
        assert [m.handle for m in coordinator.rooms.members_of(ConferenceRoom('r1'))] == ['a1', 'b2']

    @pytest.mark.asyncio
    async def test_second_tab_join_logs_the_moved_socket(self, coordinator, bob, caplog):
        caplog.set_level(logging.INFO, logger='realtime.coordinator')
        await coordinator.connect('b1', bob)
        await coordinator.dispatch('b1', frame('join:room', roomId='r1'))
        await coordinator.connect('b2', bob)

        await coordinator.dispatch('b2', frame('join:room', roomId='r1'))

        assert 'moved from socket b1 to b2' in caplog.text

    @pytest.mark.asyncio
    async def test_disconnect_remembers_the_call_over_chat_rooms(self, coordinator, alice):
        await coordinator.connect('a1', alice)
        await coordinator.dispatch('a1', frame('room:join', roomType='course', roomId='7'))
        await coordinator.dispatch('a1', frame('join:room', roomId='r1'))

        await coordinator.disconnect('a1')

        assert coordinator.grace.get(1).room == ConferenceRoom('r1')


class TestInCallEvents:
    """Signals and room relays inside a video call."""

    @pytest.mark.asyncio
    async def test_signal_reaches_target(self, coordinator, transport, alice, bob):
        await coordinator.connect('a1', alice)
        await coordinator.connect('b1', bob)
        transport.clear()

        await coordinator.dispatch('a1', frame('signal', to='b1', signal={'type': 'offer'}))

        assert transport.received('b1') == [('signal', {'from': 'a1', 'signal': {'type': 'offer'}})]

    @pytest.mark.asyncio
    async def test_relay_outside_room_is_rejected(self, coordinator, transport, alice):
        await coordinator.connect('a1', alice)
        transport.clear()

        await coordinator.dispatch('a1', frame('hand:raise', roomId='r1'))

        [error] = transport.payloads('a1', 'error')
        assert error['code'] == 'UNAUTHORIZED'

    @pytest.mark.asyncio
    async def test_mic_toggle_reaches_others_only(self, coordinator, transport, alice, bob):
        await coordinator.connect('a1', alice)
        await coordinator.connect('b1', bob)
        await coordinator.dispatch('a1', frame('join:room', roomId='r1'))
        await coordinator.dispatch('b1', frame('join:room', roomId='r1'))
        transport.clear()

        await coordinator.dispatch('a1', frame('mic:toggle', roomId='r1', status=False))

        assert transport.payloads('b1', 'mic:toggled') == [
            {'userId': 1, 'userName': 'Alice Instructor', 'status': False}
        ]
        assert transport.payloads('a1', 'mic:toggled') == []

    @pytest.mark.asyncio
    async def test_conference_message_echoes_to_sender(self, coordinator, transport, alice, bob):
        await coordinator.connect('a1', alice)
        await coordinator.connect('b1', bob)
        await coordinator.dispatch('a1', frame('join:room', roomId='r1'))
        await coordinator.dispatch('b1', frame('join:room', roomId='r1'))
        transport.clear()

        await coordinator.dispatch('b1', frame('conference:message', roomId='r1', message='hi'))

        assert len(transport.payloads('a1', 'conference:message')) == 1
        assert len(transport.payloads('b1', 'conference:message')) == 1


class TestDispatchErrors:
    """Every failure becomes an 'error' event to the sender alone."""

    @pytest.mark.asyncio
    async def test_malformed_frame(self, coordinator, transport, alice, bob):
        await coordinator.connect('a1', alice)
        await coordinator.connect('b1', bob)
        transport.clear()

        await coordinator.dispatch('a1', None)

        [error] = transport.payloads('a1', 'error')
        assert error['code'] == 'INVALID_REQUEST'
        assert transport.received('b1') == []

    @pytest.mark.asyncio
    async def test_unregistered_connection(self, coordinator, transport):
        await coordinator.dispatch('ghost', frame('room:join', roomType='course', roomId='1'))

        [error] = transport.payloads('ghost', 'error')
        assert error['code'] == 'UNAUTHENTICATED'

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, coordinator, transport, alice, monkeypatch):
        await coordinator.connect('a1', alice)
        transport.clear()

        async def boom(*args, **kwargs):
            raise RuntimeError('db exploded')
        monkeypatch.setattr(coordinator.router, 'mark_read', boom)

        await coordinator.dispatch('a1', frame('message:read', messageIds=[1]))

        [error] = transport.payloads('a1', 'error')
        assert error == {'code': 'INTERNAL_ERROR', 'message': 'Internal server error'}
