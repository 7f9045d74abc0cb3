# officehours/admin.py

# Import admin from django.contrib because this file configures the admin site.
from django.contrib import admin
# Import OfficeHourSession from .models because it needs to be registered.
from .models import OfficeHourSession

"""
Lists office hours with their parties and status. Status changes
should go through the API so the emails are sent; the admin is for
looking things up.
"""
class OfficeHourSessionAdmin(admin.ModelAdmin):
    list_display = ('topic', 'course', 'instructor', 'student', 'start_time', 'status') # columns in the list view
    list_filter = ('status', 'kind')
    search_fields = ('topic', 'room_id')
    readonly_fields = ('room_id', 'analytics', 'created_at', 'updated_at')


admin.site.register(OfficeHourSession, OfficeHourSessionAdmin)
