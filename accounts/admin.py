# accounts/admin.py

# Import admin from django.contrib because this file configures the admin site.
from django.contrib import admin
# Import User from .models because it needs to be registered.
from .models import User

"""
Makes user accounts visible in the Django admin control panel,
with the role shown so instructors and students are easy to tell apart.
"""
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'first_name', 'last_name', 'role', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'first_name', 'last_name')


admin.site.register(User, UserAdmin)
