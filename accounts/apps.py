# accounts/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
This class tells Django how to treat the "accounts" app. It owns
the custom User model (email login plus a role) and the bearer
token helpers the API and the realtime socket authenticate with.
"""
class AccountsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'accounts'
