# messaging/constants.py

"""
Event names the message router sends to clients. They match what
the web client listens for, so they should only change together
with the client.
"""
MESSAGE_NEW = 'message:new'
THREAD_ACTIVITY = 'thread:activity'
DM_MESSAGE = 'dm:message'
DM_NOTIFICATION = 'dm:notification'
MESSAGE_READ = 'message:read'
MESSAGE_REACTION = 'message:reaction'
TYPING_UPDATE = 'typing:update'

# Notification previews are cut to this many characters, then '...'
DEFAULT_PREVIEW_LENGTH = 50
