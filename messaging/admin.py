# messaging/admin.py

# Import admin from django.contrib because this file configures the admin site.
from django.contrib import admin
# Import Message from .models because it needs to be registered.
from .models import Message

"""
Makes chat messages visible in the Django admin so an administrator
can look up a thread or direct message and its receipts.
"""
class MessageAdmin(admin.ModelAdmin):
    list_display = ('kind', 'sender', 'recipient', 'thread', 'created_at')
    list_filter = ('kind',)
    search_fields = ('body',)


admin.site.register(Message, MessageAdmin)
