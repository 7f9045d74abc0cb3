# realtime/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
This class tells Django that an app named "realtime" exists. It has
no models: everything it tracks (presence, rooms, recent drops)
lives in memory for as long as the process runs.
RT: The WebSocket consumer and the coordinator live here.
"""
class RealtimeConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'realtime'
