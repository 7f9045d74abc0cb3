# officehours/notifications.py

import logging

# Import requests because notification emails go through the Resend API when an API key is configured.
import requests
from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string

from core.errors import NotificationFailed

logger = logging.getLogger(__name__)

SUBJECTS = {
    'scheduled': '{course} - Office Hour booked',
    'updated': '{course} - Office Hour updated',
    'cancelled': '{course} - Office Hour cancelled',
}

TEMPLATES = {
    'scheduled': 'officehours/emails/booking.txt',
    'updated': 'officehours/emails/update.txt',
    'cancelled': 'officehours/emails/cancellation.txt',
}


def meeting_link(session):
    return f"{settings.FRONTEND_URL.rstrip('/')}/office-hours/{session.pk}"


def deliver(recipients, subject, body):
    api_key = getattr(settings, 'EMAIL_API_KEY', '')
    if not api_key:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, recipients)
        return
    response = requests.post(
        settings.EMAIL_API_URL,
        json={
            'from': settings.DEFAULT_FROM_EMAIL,
            'to': recipients,
            'subject': subject,
            'text': body,
        },
        headers={
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        },
        timeout=settings.EMAIL_API_TIMEOUT,
    )
    response.raise_for_status()


"""
Sends the office hour emails (booking, update, cancellation) to both
the instructor and the student. It runs after the change is already
committed, so a failure here can't undo anything: it is raised as
NotificationFailed for the caller to log.
"""
class EmailNotifier:

    def notify(self, kind, session, **extra):
        if kind not in TEMPLATES:
            return False
        course_title = session.course.title
        context = {
            'session': session,
            'course_title': course_title,
            'instructor_name': session.instructor.display_name,
            'student_name': session.student.display_name,
            'meeting_link': meeting_link(session),
            **extra,
        }
        recipients = [session.instructor.email, session.student.email]
        try:
            body = render_to_string(TEMPLATES[kind], context)
            deliver(recipients, SUBJECTS[kind].format(course=course_title), body)
        except Exception as exc:
            raise NotificationFailed(f"Could not send '{kind}' email for office hour {session.pk}: {exc}") from exc
        logger.info("Sent '%s' email for office hour %s", kind, session.pk)
        return True
