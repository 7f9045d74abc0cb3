# officehours/services.py

import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Q

from core.errors import NotFound, NotificationFailed, StorageUnavailable, Unauthorized
from courses.models import Course
from . import machine
from .models import OfficeHourSession
from .notifications import EmailNotifier

logger = logging.getLogger(__name__)

User = get_user_model()


"""
Runs office hour transitions against the database. Each call loads
the row under a lock, applies the state machine and saves, all in
one transaction. Side effects (emails, log lines) run only after that
transaction committed, once per successful call. A failed check or a
failed save leaves the row untouched and sends nothing.
RT: The REST views in views.py are thin wrappers around this class.
"""
class OfficeHourService:

    def __init__(self, notifier=None):
        self.notifier = notifier or EmailNotifier()

    # --- Reads ---

    def get_for_party(self, session_id, actor):
        session = (
            OfficeHourSession.objects.select_related('instructor', 'student', 'course')
            .filter(pk=session_id)
            .first()
        )
        if session is None:
            raise NotFound('Office hour not found')
        if not session.is_party(actor.pk):
            raise Unauthorized('Not authorized to access this office hour')
        return session

    def list_for(self, user, status=None):
        sessions = OfficeHourSession.objects.select_related('instructor', 'student', 'course')
        if getattr(user, 'role', None) == 'instructor':
            sessions = sessions.filter(instructor=user)
        elif getattr(user, 'role', None) == 'student':
            sessions = sessions.filter(student=user)
        else:
            sessions = sessions.filter(Q(instructor=user) | Q(student=user))
        if status:
            sessions = sessions.filter(status=status)
        return list(sessions.order_by('-start_time'))

    # --- Writes ---

    def schedule(self, instructor, student_id, course_id, start_time, end_time, topic, description='', kind=OfficeHourSession.VIDEO):
        student = User.objects.filter(pk=student_id).first()
        if student is None:
            raise NotFound('Student not found')
        course = Course.objects.filter(pk=course_id).first()
        if course is None:
            raise NotFound('Course not found')

        transition = machine.schedule(instructor, student, course, start_time, end_time, topic, description, kind)
        try:
            with transaction.atomic():
                transition.session.save()
        except DatabaseError as exc:
            logger.error("Could not save new office hour: %s", exc, exc_info=True)
            raise StorageUnavailable() from exc
        self.run_effects(transition)
        return transition.session

    def update(self, session_id, actor, changes):
        return self.apply(session_id, machine.update_details, actor.pk, changes)

    def cancel(self, session_id, actor):
        return self.apply(session_id, machine.cancel, actor.pk)

    def start(self, session_id, actor, now=None):
        return self.apply(session_id, machine.start, actor.pk, now=now)

    def end(self, session_id, actor, now=None):
        return self.apply(session_id, machine.end, actor.pk, now=now)

    def add_note(self, session_id, actor, content):
        return self.apply(session_id, machine.add_note, actor.pk, content)

    def add_feedback(self, session_id, actor, rating, comment=''):
        return self.apply(session_id, machine.add_feedback, actor.pk, rating, comment)

    def log_event(self, session_id, actor, event):
        return self.apply(session_id, machine.log_participant_event, actor.pk, event)

    def set_recording(self, session_id, actor, url, duration=None):
        return self.apply(session_id, machine.set_recording, actor.pk, url, duration)

    def apply(self, session_id, step, *args, **kwargs):
        try:
            with transaction.atomic():
                session = (
                    OfficeHourSession.objects.select_for_update()
                    .select_related('instructor', 'student', 'course')
                    .filter(pk=session_id)
                    .first()
                )
                if session is None:
                    raise NotFound('Office hour not found')
                transition = step(session, *args, **kwargs)
                transition.session.save()
        except DatabaseError as exc:
            logger.error("Office hour %s: %s failed to save: %s", session_id, step.__name__, exc, exc_info=True)
            raise StorageUnavailable() from exc
        self.run_effects(transition)
        return transition.session

    def run_effects(self, transition):
        session = transition.session
        for effect in transition.effects:
            logger.info("Office hour %s: %s %s", session.pk, effect.kind, effect.payload or '')
            try:
                self.notifier.notify(effect.kind, session, **effect.payload)
            except NotificationFailed as exc:
                # The change is committed; a lost email doesn't undo it
                logger.warning("%s", exc.message, exc_info=True)
