# messaging/router.py

import logging

from core.errors import NotFound, StorageUnavailable, Unauthorized
from core.utils import truncate_preview
from realtime.rooms import course_room, thread_room
from . import constants

logger = logging.getLogger(__name__)


def user_summary(user):
    return {'_id': user.pk, 'name': user.display_name}


"""
Routes chat events that arrive on a socket: saves what has to be
saved, then works out who should hear about it. Nothing is sent
before the save succeeded, so a StorageUnavailable or NotFound
reaches only the sender and nobody else sees a half-done message.
RT: This is where thread messages, direct messages, read receipts,
reactions and typing indicators fan out to the right connections.
"""
class MessageRouter:

    def __init__(self, store, transport, presence, handles_in, preview_length=constants.DEFAULT_PREVIEW_LENGTH):
        self.store = store
        self.transport = transport
        self.presence = presence
        # callable(room) -> handles of every connection that joined the room
        self.handles_in = handles_in
        self.preview_length = preview_length

    def preview(self, text):
        return truncate_preview(text, self.preview_length)

    """
    Saves a message to a discussion thread and shows it to everyone
    in the thread room, sender included. People in the course room who
    are not looking at the thread get a short preview instead.
    RT: 'message:new' to the thread room, 'thread:activity' to the course room.
    """
    async def route_thread_message(self, sender, handle, thread_id, body, attachments=(), parent_id=None):
        thread = await self.store.find_thread(thread_id)
        if thread is None:
            raise NotFound('Thread not found')
        if parent_id is not None:
            parent = await self.store.find_message(parent_id)
            if parent is None or parent.thread_id != thread.pk:
                raise NotFound('Parent message not found')

        message = await self.store.save_thread_message(sender.pk, thread, body, attachments, parent_id)

        room = thread_room(thread.pk)
        await self.transport.group_send(room.group_name, constants.MESSAGE_NEW, message.to_payload())

        # Connections already in the thread room just got the full message
        exclude = set(self.handles_in(room))
        exclude.add(handle)
        activity = {
            'threadId': thread.pk,
            'message': {
                '_id': message.pk,
                'content': self.preview(message.body),
                'sender': sender.pk,
                'createdAt': message.created_at.isoformat(),
            },
        }
        await self.transport.group_send(
            course_room(thread.course_id).group_name, constants.THREAD_ACTIVITY, activity, exclude=sorted(exclude)
        )
        logger.debug("Thread message %s sent to thread %s by %s", message.pk, thread.pk, sender.pk)
        return message

    """
    Saves a private message. The sender always gets it back (that's
    how their other views learn the saved id). The recipient gets it
    live only if they are online right now; otherwise it waits in the
    database until their client asks for it.
    """
    async def route_direct_message(self, sender, handle, recipient_id, body, attachments=()):
        recipient = await self.store.find_user(recipient_id)
        if recipient is None:
            raise NotFound('Recipient not found')

        message = await self.store.save_direct_message(sender.pk, recipient.pk, body, attachments)
        payload = message.to_payload()
        await self.transport.send(handle, constants.DM_MESSAGE, payload)

        recipient_handle = self.presence.lookup(recipient.pk)
        if recipient_handle is None:
            logger.debug("DM %s stored for offline user %s", message.pk, recipient.pk)
            return message
        if recipient_handle == handle:
            # Writing to yourself: the sender copy above is the only one
            return message

        delivered = await self.transport.send(recipient_handle, constants.DM_MESSAGE, payload)
        await self.transport.send(recipient_handle, constants.DM_NOTIFICATION, {
            'from': user_summary(sender),
            'messageId': message.pk,
            'preview': self.preview(message.body),
        })
        if delivered:
            try:
                await self.store.mark_delivered(message.pk, recipient.pk)
            except StorageUnavailable:
                # The message itself is saved; a missing receipt is only cosmetic
                logger.warning("Could not record delivery of DM %s to %s", message.pk, recipient.pk)
        return message

    """
    Marks messages as read by 'reader'. For direct messages, each
    original sender who is online gets one 'message:read' listing all
    of their messages in this batch. The reader is never told about
    their own messages.
    """
    async def mark_read(self, reader, message_ids):
        if not message_ids:
            return {}
        messages = await self.store.mark_read(reader.pk, list(message_ids))

        by_sender = {}
        for message in messages:
            if message.is_direct and message.sender_id != reader.pk:
                by_sender.setdefault(message.sender_id, []).append(message.pk)

        for sender_id, ids in by_sender.items():
            sender_handle = self.presence.lookup(sender_id)
            if sender_handle is None:
                continue
            await self.transport.send(sender_handle, constants.MESSAGE_READ, {
                'reader': user_summary(reader),
                'messageIds': ids,
            })
        logger.debug("%d message(s) marked as read by %s", len(messages), reader.pk)
        return by_sender

    async def react(self, reactor, message_id, emoji, add=True):
        message = await self.store.find_message(message_id)
        if message is None:
            raise NotFound('Message not found')
        if message.is_direct and reactor.pk not in (message.sender_id, message.recipient_id):
            raise Unauthorized('You are not part of this conversation')

        message = await self.store.react(message_id, reactor.pk, emoji, add=add)
        if message is None:
            raise NotFound('Message not found')

        payload = {
            'messageId': message.pk,
            'emoji': emoji,
            'action': 'add' if add else 'remove',
            'user': user_summary(reactor),
            'reactions': message.reactions,
        }
        if message.thread_id is not None:
            await self.transport.group_send(thread_room(message.thread_id).group_name, constants.MESSAGE_REACTION, payload)
        else:
            for user_id in {message.sender_id, message.recipient_id}:
                party_handle = self.presence.lookup(user_id)
                if party_handle is not None:
                    await self.transport.send(party_handle, constants.MESSAGE_REACTION, payload)
        return message

    # Best effort: nothing is stored, queued or retried
    async def relay_typing(self, sender, handle, is_typing, thread_id=None, recipient_id=None):
        payload = {'user': user_summary(sender), 'isTyping': is_typing}
        if thread_id is not None:
            payload['threadId'] = thread_id
            await self.transport.group_send(
                thread_room(thread_id).group_name, constants.TYPING_UPDATE, payload, exclude=[handle]
            )
        elif recipient_id is not None:
            recipient_handle = self.presence.lookup(recipient_id)
            if recipient_handle is not None:
                await self.transport.send(recipient_handle, constants.TYPING_UPDATE, payload)
