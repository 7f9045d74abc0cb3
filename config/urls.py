# config/urls.py

from django.contrib import admin
from django.urls import path, include
from .views import health_view
from realtime.views import online_users_view

urlpatterns = [
    path('admin/', admin.site.urls),
    path('healthz/', health_view, name='healthz'),

    # API
    path('api/auth/', include('accounts.urls')),
    path('api/office-hours/', include('officehours.urls')),
    path('api/realtime/online/', online_users_view, name='online-users'),
]
