# officehours/machine.py

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from django.utils import timezone

from core.errors import InvalidRequest, InvalidState, Unauthorized
from .models import OfficeHourSession

"""
The office hour lifecycle as plain functions. Each one checks who is
asking (Unauthorized) and what state the session is in (InvalidState),
changes the in-memory session, and returns a Transition listing the
side effects the caller owes: emails, log lines. Nothing here touches
the database or sends anything, and a failed check leaves the session
exactly as it was.

    scheduled --start--> in-progress --end--> completed
    scheduled --cancel--> cancelled
"""

# Fields the instructor may change while the session is still scheduled
EDITABLE_FIELDS = ('start_time', 'end_time', 'topic', 'description', 'kind')

PARTICIPANT_EVENT_MAX_LENGTH = 50


@dataclass(frozen=True)
class Effect:
    kind: str
    payload: dict = field(default_factory=dict)


@dataclass
class Transition:
    session: OfficeHourSession
    effects: List[Effect] = field(default_factory=list)


def round_half_up(value):
    # Halves round up, so 22.5 minutes count as 23
    return int(math.floor(value + 0.5))


def minutes_between(start, end):
    return round_half_up((end - start).total_seconds() / 60)


def _stamp(now):
    return (now or timezone.now()).isoformat()


def _require_party(session, actor_id, message='Not authorized to access this office hour'):
    role = session.party_role(actor_id)
    if role is None:
        raise Unauthorized(message)
    return role


def _require_instructor(session, actor_id, message):
    if actor_id != session.instructor_id:
        raise Unauthorized(message)


def _require_status(session, allowed, message):
    if session.status not in allowed:
        raise InvalidState(message)


def _validate_times(start_time, end_time):
    if start_time is None or end_time is None:
        raise InvalidRequest('Start and end time are required')
    if end_time <= start_time:
        raise InvalidRequest('End time must be after start time')


def _validate_kind(kind):
    if kind not in dict(OfficeHourSession.KIND_CHOICES):
        raise InvalidRequest(f"Unknown session type '{kind}'")


def schedule(instructor, student, course, start_time, end_time, topic, description='', kind=OfficeHourSession.VIDEO):
    """
    Builds a new, unsaved session. Only instructors book office hours,
    and only with a student.
    """
    if getattr(instructor, 'role', None) != 'instructor':
        raise Unauthorized('Only instructors can schedule office hours')
    if getattr(student, 'role', None) != 'student':
        raise InvalidRequest('Office hours can only be booked with a student')
    _validate_times(start_time, end_time)
    _validate_kind(kind)
    if not (topic or '').strip():
        raise InvalidRequest('Topic is required')

    session = OfficeHourSession(
        instructor=instructor,
        student=student,
        course=course,
        start_time=start_time,
        end_time=end_time,
        duration=minutes_between(start_time, end_time),
        topic=topic.strip(),
        description=(description or '').strip(),
        kind=kind,
    )
    return Transition(session, [Effect('scheduled')])


def update_details(session, actor_id, changes):
    _require_instructor(session, actor_id, 'Not authorized to update this office hour')
    _require_status(session, (OfficeHourSession.SCHEDULED,), 'Cannot update an active or completed office hour')

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidRequest(f"Cannot update: {', '.join(sorted(unknown))}")
    start_time = changes.get('start_time', session.start_time)
    end_time = changes.get('end_time', session.end_time)
    _validate_times(start_time, end_time)
    if 'kind' in changes:
        _validate_kind(changes['kind'])
    if 'topic' in changes and not (changes['topic'] or '').strip():
        raise InvalidRequest('Topic is required')

    for name, value in changes.items():
        setattr(session, name, value)
    session.duration = minutes_between(start_time, end_time)
    return Transition(session, [Effect('updated', {'changed': sorted(changes)})])


def cancel(session, actor_id):
    role = _require_party(session, actor_id, 'Not authorized to cancel this office hour')
    _require_status(session, (OfficeHourSession.SCHEDULED,), 'Cannot cancel an active or completed office hour')
    session.status = OfficeHourSession.CANCELLED
    return Transition(session, [Effect('cancelled', {'cancelled_by': role})])


def start(session, actor_id, now=None):
    _require_instructor(session, actor_id, 'Only instructor can start the session')
    _require_status(session, (OfficeHourSession.SCHEDULED,), 'Session cannot be started')
    session.status = OfficeHourSession.IN_PROGRESS
    session.analytics['join_time'] = _stamp(now)
    return Transition(session, [Effect('started', {'join_time': session.analytics['join_time']})])


def end(session, actor_id, now=None):
    _require_instructor(session, actor_id, 'Only instructor can end the session')
    _require_status(session, (OfficeHourSession.IN_PROGRESS,), 'Session is not in progress')
    leave_time = now or timezone.now()
    session.status = OfficeHourSession.COMPLETED
    session.analytics['leave_time'] = leave_time.isoformat()
    join_time = session.analytics.get('join_time')
    if join_time:
        session.analytics['actual_duration'] = minutes_between(datetime.fromisoformat(join_time), leave_time)
    return Transition(session, [Effect('ended', {'actual_duration': session.analytics.get('actual_duration')})])


def add_note(session, actor_id, content, now=None):
    _require_party(session, actor_id, 'Not authorized to add notes')
    if not isinstance(content, str) or not content.strip():
        raise InvalidRequest('Note content is required')
    note = {'content': content.strip(), 'created_by': actor_id, 'created_at': _stamp(now)}
    session.notes.append(note)
    return Transition(session, [Effect('note_added', {'note': note})])


def add_feedback(session, actor_id, rating, comment='', now=None):
    if actor_id != session.student_id:
        raise Unauthorized('Only student can provide feedback')
    _require_status(session, (OfficeHourSession.COMPLETED,), 'Can only add feedback after session is completed')
    if session.feedback:
        raise InvalidState('Feedback has already been given')
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRequest('Rating must be a whole number from 1 to 5')
    session.feedback = {'rating': rating, 'comment': (comment or '').strip(), 'given_at': _stamp(now)}
    return Transition(session, [Effect('feedback_added', {'rating': rating})])


def log_participant_event(session, actor_id, event, now=None):
    # 'join', 'leave', 'screen_share_start', ... whatever the client reports
    _require_party(session, actor_id)
    if not isinstance(event, str) or not event.strip() or len(event) > PARTICIPANT_EVENT_MAX_LENGTH:
        raise InvalidRequest('Event name is required')
    entry = {'user': actor_id, 'event': event.strip(), 'timestamp': _stamp(now)}
    session.analytics.setdefault('participant_events', []).append(entry)
    return Transition(session, [Effect('participant_event', entry)])


def set_recording(session, actor_id, url, duration=None, now=None):
    _require_instructor(session, actor_id, 'Only instructor can upload recordings')
    _require_status(
        session,
        (OfficeHourSession.IN_PROGRESS, OfficeHourSession.COMPLETED),
        'Recordings can only be added to a started session',
    )
    if not isinstance(url, str) or not url.strip():
        raise InvalidRequest('Recording URL is required')
    session.recording = {'enabled': True, 'url': url.strip(), 'duration': duration, 'created_at': _stamp(now)}
    return Transition(session, [Effect('recording_added', {'url': session.recording['url']})])
