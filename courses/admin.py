# courses/admin.py

# Import admin from django.contrib because this file configures the admin site.
from django.contrib import admin
# Import models from .models because Course and Thread need to be registered.
from .models import Course, Thread


class CourseAdmin(admin.ModelAdmin):
    list_display = ('title', 'slug', 'instructor')
    search_fields = ('title', 'slug')


class ThreadAdmin(admin.ModelAdmin):
    list_display = ('title', 'course', 'created_by', 'message_count', 'last_activity_at') # columns shown in the Thread list
    list_filter = ('course',)


admin.site.register(Course, CourseAdmin)
admin.site.register(Thread, ThreadAdmin)
