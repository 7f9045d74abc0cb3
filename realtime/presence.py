# realtime/presence.py

import logging

logger = logging.getLogger(__name__)

"""
Tracks which users hold a live socket and through which connection.
Only the newest connection of a user is kept for direct delivery;
an older tab still gets room broadcasts because those go to every
socket in the room's group, not through this registry.
RT: Every change here is followed by a 'users:online' broadcast.
"""
class PresenceRegistry:

    def __init__(self):
        self._handles = {} # user id -> newest connection handle
        self._users = {}   # connection handle -> user id

    def register(self, user_id, handle):
        previous = self._handles.get(user_id)
        self._handles[user_id] = handle
        self._users[handle] = user_id
        if previous and previous != handle:
            logger.debug("User %s replaced connection %s with %s", user_id, previous, handle)
        return previous

    def unregister(self, handle):
        """
        Forget a connection. The user only goes offline when this was
        their current connection; a stale tab closing after a newer one
        registered leaves the newer registration alone.
        """
        user_id = self._users.pop(handle, None)
        if user_id is None:
            return False
        if self._handles.get(user_id) != handle:
            return False
        del self._handles[user_id]
        return True

    def lookup(self, user_id):
        return self._handles.get(user_id)

    def is_online(self, user_id):
        return user_id in self._handles

    def online_user_ids(self):
        return list(self._handles.keys())

    def __len__(self):
        return len(self._handles)
