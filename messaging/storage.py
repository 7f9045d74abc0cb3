# messaging/storage.py

import functools
import logging

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import F, Q
from django.utils import timezone

from core.errors import StorageUnavailable
from courses.models import Thread
from .models import Message

logger = logging.getLogger(__name__)

User = get_user_model()


def storage_call(func):
    # Runs the ORM work off the event loop and maps DB failures to StorageUnavailable
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.error("Storage call %s failed: %s", func.__name__, exc, exc_info=True)
            raise StorageUnavailable() from exc
    return database_sync_to_async(wrapper)


"""
The message router's only way to reach the database. Every method
is awaitable and either completes fully or raises StorageUnavailable,
so the router never broadcasts something that wasn't saved.
RT: These are the async helpers the socket layer awaits; they are
the only suspension points while routing a chat event.
"""
class MessageStore:

    @storage_call
    def find_thread(self, thread_id):
        return Thread.objects.filter(pk=thread_id).first()

    @storage_call
    def find_user(self, user_id):
        return User.objects.filter(pk=user_id).first()

    @storage_call
    def find_message(self, message_id):
        return Message.objects.filter(pk=message_id).first()

    @storage_call
    def save_thread_message(self, sender_id, thread, body, attachments=None, parent_id=None):
        now = timezone.now()
        with transaction.atomic():
            message = Message(
                kind=Message.THREAD,
                sender_id=sender_id,
                thread=thread,
                parent_id=parent_id,
                body=body,
                attachments=list(attachments or []),
                created_at=now,
            )
            message.mark_read(sender_id, now) # Sender has read it
            message.save()

            # Thread summary counters
            Thread.objects.filter(pk=thread.pk).update(
                message_count=F('message_count') + 1,
                last_activity_at=now,
            )

            if parent_id:
                parent = Message.objects.select_for_update().filter(pk=parent_id).first()
                if parent is not None:
                    parent.register_reply(sender_id, now)
                    parent.save(update_fields=['thread_info'])
        return message

    @storage_call
    def save_direct_message(self, sender_id, recipient_id, body, attachments=None):
        now = timezone.now()
        message = Message(
            kind=Message.DIRECT,
            sender_id=sender_id,
            recipient_id=recipient_id,
            body=body,
            attachments=list(attachments or []),
            created_at=now,
        )
        message.mark_read(sender_id, now) # Sender has read it
        message.save()
        return message

    @storage_call
    def mark_delivered(self, message_id, user_id):
        with transaction.atomic():
            message = Message.objects.select_for_update().filter(pk=message_id).first()
            if message is not None and message.mark_delivered(user_id):
                message.save(update_fields=['delivered_to'])
        return message

    @storage_call
    def mark_read(self, reader_id, message_ids):
        """
        Adds the reader to read_by on every named message and returns all
        of them. Messages the reader already read are left untouched, and
        direct messages between two other users are skipped.
        """
        now = timezone.now()
        foreign_dm = Q(kind=Message.DIRECT) & ~Q(sender_id=reader_id) & ~Q(recipient_id=reader_id)
        with transaction.atomic():
            messages = list(
                Message.objects.select_for_update().filter(pk__in=message_ids).exclude(foreign_dm)
            )
            for message in messages:
                if message.mark_read(reader_id, now):
                    message.save(update_fields=['read_by'])
        return messages

    @storage_call
    def react(self, message_id, user_id, emoji, add=True):
        with transaction.atomic():
            message = Message.objects.select_for_update().filter(pk=message_id).first()
            if message is None:
                return None
            changed = message.add_reaction(user_id, emoji) if add else message.remove_reaction(user_id, emoji)
            if changed:
                message.save(update_fields=['reactions'])
        return message
