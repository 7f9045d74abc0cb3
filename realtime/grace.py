# realtime/grace.py

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 300


def _utcnow():
    return datetime.now(timezone.utc)


@dataclass
class DisconnectRecord:
    user_id: int
    room: object
    disconnected_at: datetime


"""
Remembers users whose socket dropped while they were in a room, so
that coming back within the grace window counts as a reconnect
instead of a brand new join. One record per user: a newer drop
overwrites the older one. Nothing here runs on a timer of its own;
the coordinator calls sweep() on a fixed interval.
"""
class DisconnectGraceTracker:

    def __init__(self, threshold_seconds=DEFAULT_GRACE_SECONDS):
        self.threshold = timedelta(seconds=threshold_seconds)
        self._records = {}

    def record_disconnect(self, user_id, room, now=None):
        self._records[user_id] = DisconnectRecord(user_id, room, now or _utcnow())

    def try_recover_reconnect(self, user_id, room):
        record = self._records.get(user_id)
        if record is None or record.room != room:
            return False
        del self._records[user_id]
        return True

    def sweep(self, now=None, threshold=None):
        now = now or _utcnow()
        threshold = self.threshold if threshold is None else threshold
        stale = [user_id for user_id, record in self._records.items()
                 if now - record.disconnected_at > threshold]
        for user_id in stale:
            del self._records[user_id]
        if stale:
            logger.debug("Swept %d stale disconnect record(s)", len(stale))
        return len(stale)

    def get(self, user_id):
        return self._records.get(user_id)

    def __len__(self):
        return len(self._records)
