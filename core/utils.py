# core/utils.py

# Import cache from django.core.cache because the online-user snapshot lives there.
from django.core.cache import cache

# This is the "key" used to store and retrieve the list of online users from the cache.
ONLINE_USERS_CACHE_KEY = 'online_users'

"""
Returns the ids of users who currently hold a live socket, as last
published by the realtime coordinator. HTTP views read this instead
of touching the coordinator's in-process state.
RT: This function is the central source of "who is online" data
for anything that is not a WebSocket consumer.
"""
def get_online_user_ids():
    return cache.get(ONLINE_USERS_CACHE_KEY, [])


def set_online_user_ids(user_ids):
    # Persist indefinitely, the coordinator overwrites it on every change
    cache.set(ONLINE_USERS_CACHE_KEY, list(user_ids), timeout=None)


def truncate_preview(text, length=50):
    # Notification previews: first N characters plus an ellipsis when cut
    text = text or ''
    if len(text) > length:
        return text[:length] + '...'
    return text
