# officehours/models.py

# Import models from django.db because this file defines database models.
from django.db import models
# Import settings from django.conf because 'OfficeHourSession' links to the User model.
from django.conf import settings
# Import get_random_string because every session gets a random video room id.
from django.utils.crypto import get_random_string

ROOM_ID_LENGTH = 10


def generate_room_id():
    return get_random_string(ROOM_ID_LENGTH)


def default_analytics():
    return {
        'join_time': None,
        'leave_time': None,
        'actual_duration': None,
        'participant_events': [],
        'network_quality': [],
        'average_stats': {},
        'stable_quality_percentage': None,
        'quality_changes': [],
        'finalized_at': None,
    }


def default_recording():
    return {'enabled': False, 'url': None, 'duration': None, 'created_at': None}


"""
A one-to-one video office hour between an instructor and a student
of a course. It is created by the instructor in 'scheduled', goes to
'in-progress' when the instructor starts it and 'completed' when the
instructor ends it. Cancelling is only possible before the start.
Rows are never deleted; 'cancelled' is kept like any other outcome.
RT: 'room_id' is the video call room both parties join over the
realtime socket ('join:room').
"""
class OfficeHourSession(models.Model):
    SCHEDULED = 'scheduled'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    STATUS_CHOICES = (
        (SCHEDULED, 'Scheduled'),
        (IN_PROGRESS, 'In progress'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    )

    VIDEO = 'video'
    AUDIO = 'audio'
    CHAT = 'chat'
    KIND_CHOICES = (
        (VIDEO, 'Video'),
        (AUDIO, 'Audio'),
        (CHAT, 'Chat'),
    )

    instructor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='office_hours_hosted')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='office_hours_booked')
    course = models.ForeignKey('courses.Course', on_delete=models.CASCADE, related_name='office_hours')
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    duration = models.PositiveIntegerField() # scheduled length in minutes
    topic = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default=VIDEO)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=SCHEDULED)
    room_id = models.CharField(max_length=32, unique=True, default=generate_room_id)
    analytics = models.JSONField(default=default_analytics, blank=True)
    notes = models.JSONField(default=list, blank=True)
    feedback = models.JSONField(null=True, blank=True) # rating, comment, given_at
    recording = models.JSONField(default=default_recording, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_time']

    def __str__(self):
        return f"{self.topic} ({self.status})"

    def party_role(self, user_id):
        # 'instructor', 'student' or None for anybody else
        if user_id == self.instructor_id:
            return 'instructor'
        if user_id == self.student_id:
            return 'student'
        return None

    def is_party(self, user_id):
        return self.party_role(user_id) is not None

    def to_payload(self):
        return {
            'id': self.pk,
            'instructorId': self.instructor_id,
            'studentId': self.student_id,
            'courseId': self.course_id,
            'startTime': self.start_time.isoformat(),
            'endTime': self.end_time.isoformat(),
            'duration': self.duration,
            'topic': self.topic,
            'description': self.description,
            'type': self.kind,
            'status': self.status,
            'roomId': self.room_id,
            'analytics': self.analytics,
            'notes': self.notes,
            'feedback': self.feedback,
            'recording': self.recording,
        }
