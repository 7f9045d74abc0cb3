# messaging/models.py

# Import models from django.db because this file defines database models.
from django.db import models
# Import settings from django.conf because 'Message' links to the User model.
from django.conf import settings
from django.utils import timezone

"""
A single chat message. It is either posted to a course discussion
thread ('thread'), sent privately to one user ('direct'), or an
announcement. Receipts are stored as lists of {'user': id, 'at': iso}
entries; they only ever grow and hold each user at most once.
RT: New messages are created by the socket message router, and the
read/delivered lists are updated as receipts come in live.
"""
class Message(models.Model):
    THREAD = 'thread'
    DIRECT = 'direct'
    ANNOUNCEMENT = 'announcement'
    KIND_CHOICES = (
        (THREAD, 'Thread message'),
        (DIRECT, 'Direct message'),
        (ANNOUNCEMENT, 'Announcement'),
    )

    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='sent_messages')
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, null=True, blank=True, related_name='received_messages'
    )
    thread = models.ForeignKey('courses.Thread', on_delete=models.CASCADE, null=True, blank=True, related_name='messages')
    parent = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='replies')
    body = models.TextField()
    attachments = models.JSONField(default=list, blank=True)
    delivered_to = models.JSONField(default=list, blank=True)
    read_by = models.JSONField(default=list, blank=True)
    reactions = models.JSONField(default=dict, blank=True) # emoji -> [user ids]
    thread_info = models.JSONField(default=dict, blank=True) # reply_count, participants, last_reply_at
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['thread', 'created_at']),
            models.Index(fields=['recipient', 'created_at']),
        ]

    def __str__(self):
        if self.kind == self.DIRECT:
            return f"DM from {self.sender_id} to {self.recipient_id}"
        return f"Message from {self.sender_id} in thread {self.thread_id}"

    @property
    def is_direct(self):
        return self.kind == self.DIRECT

    def _add_receipt(self, field, user_id, at=None):
        receipts = getattr(self, field)
        if any(entry['user'] == user_id for entry in receipts):
            return False
        receipts.append({'user': user_id, 'at': (at or timezone.now()).isoformat()})
        return True

    # The mutators below return True when something changed; callers save.
    def mark_delivered(self, user_id, at=None):
        return self._add_receipt('delivered_to', user_id, at)

    def mark_read(self, user_id, at=None):
        return self._add_receipt('read_by', user_id, at)

    def has_read(self, user_id):
        return any(entry['user'] == user_id for entry in self.read_by)

    def add_reaction(self, user_id, emoji):
        users = self.reactions.setdefault(emoji, [])
        if user_id in users:
            return False
        users.append(user_id)
        return True

    def remove_reaction(self, user_id, emoji):
        users = self.reactions.get(emoji)
        if not users or user_id not in users:
            return False
        users.remove(user_id)
        if not users:
            del self.reactions[emoji]
        return True

    def register_reply(self, user_id, at=None):
        # Called on the parent when someone replies to it
        info = self.thread_info
        info['reply_count'] = info.get('reply_count', 0) + 1
        info['last_reply_at'] = (at or timezone.now()).isoformat()
        participants = info.setdefault('participants', [])
        if user_id not in participants:
            participants.append(user_id)

    def to_payload(self):
        return {
            '_id': self.pk,
            'kind': self.kind,
            'senderId': self.sender_id,
            'receiverId': self.recipient_id,
            'threadId': self.thread_id,
            'parentId': self.parent_id,
            'content': self.body,
            'attachments': self.attachments,
            'readBy': self.read_by,
            'deliveredTo': self.delivered_to,
            'reactions': self.reactions,
            'threadInfo': self.thread_info,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
