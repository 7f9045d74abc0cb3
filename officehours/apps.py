# officehours/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
This class tells Django that an app named "officehours" exists.
It holds one-to-one video office hours, their lifecycle and the
network quality records collected during the call.
"""
class OfficehoursConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'officehours'
