# officehours/urls.py

# Import path from django.urls because it's used to define URL patterns.
from django.urls import path
# Import views from . because each pattern points at one of the JSON views.
from . import views

urlpatterns = [
    path('', views.office_hours_view, name='office-hours'),
    path('analytics/', views.analytics_view, name='office-hours-analytics'),
    path('<int:pk>/', views.office_hour_detail_view, name='office-hour-detail'),
    path('<int:pk>/cancel/', views.cancel_view, name='office-hour-cancel'),
    path('<int:pk>/start/', views.start_view, name='office-hour-start'),
    path('<int:pk>/end/', views.end_view, name='office-hour-end'),
    path('<int:pk>/notes/', views.notes_view, name='office-hour-notes'),
    path('<int:pk>/feedback/', views.feedback_view, name='office-hour-feedback'),
    path('<int:pk>/events/', views.events_view, name='office-hour-events'),
    path('<int:pk>/recording/', views.recording_view, name='office-hour-recording'),

    # Network quality during the call
    path('<int:pk>/quality/samples/', views.quality_samples_view, name='office-hour-quality-samples'),
    path('<int:pk>/quality/changes/', views.quality_changes_view, name='office-hour-quality-changes'),
    path('<int:pk>/quality/finalize/', views.finalize_view, name='office-hour-quality-finalize'),
    path('<int:pk>/summary/', views.summary_view, name='office-hour-summary'),
]
