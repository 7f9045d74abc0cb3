# accounts/urls.py

from django.urls import path
from .views import token_view

urlpatterns = [
    # Auth
    path('token/', token_view, name='token'),
]
