# courses/models.py

# Import models from django.db because this file defines database models.
from django.db import models
# Import settings from django.conf because 'Thread' links to the User model.
from django.conf import settings

"""
A course that students enroll in. Only the parts the realtime
layer needs live here: threads hang off a course, and the
course room ('course-<id>') is where thread activity previews go.
"""
class Course(models.Model):
    title = models.CharField(max_length=200)
    slug = models.SlugField(unique=True) # URL-friendly identifier
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='courses_taught'
    )
    description = models.TextField(blank=True)

    def __str__(self):
        return self.title

"""
A discussion thread inside a course. Messages posted to it arrive
over the socket; the counters are kept here so course pages can
sort threads without counting messages.
RT: 'message_count' and 'last_activity_at' are bumped by the
message router every time a thread message is saved.
"""
class Thread(models.Model):
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='threads')
    title = models.CharField(max_length=255)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='threads')
    is_pinned = models.BooleanField(default=False)
    message_count = models.PositiveIntegerField(default=0)
    last_activity_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-is_pinned', '-last_activity_at']

    def __str__(self):
        return self.title
