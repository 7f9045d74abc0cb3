# messaging/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
This class tells Django that an app named "messaging" exists.
It stores thread and direct messages and routes new ones to the
right sockets.
RT: The message router in this app fans out live chat events.
"""
class MessagingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'messaging'
