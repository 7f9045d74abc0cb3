# officehours/views.py

import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from core.errors import InvalidRequest, RealtimeError, Unauthenticated, error_response
from .forms import FeedbackForm, NoteForm, RecordingForm, ScheduleForm, UpdateForm, first_error
from .models import OfficeHourSession
from .quality import QualityAggregator, QualitySample
from .services import OfficeHourService

logger = logging.getLogger(__name__)

service = OfficeHourService()
aggregator = QualityAggregator()


"""
Wraps a JSON API view: checks the HTTP method, requires a logged-in
user (session cookie or bearer token), and turns any of our own
errors into the standard JSON error body with the matching status.
"""
def api_view(*methods):
    def decorator(view):
        @require_http_methods(list(methods))
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return error_response(Unauthenticated())
            try:
                return view(request, *args, **kwargs)
            except RealtimeError as exc:
                logger.info("%s %s -> %s: %s", request.method, request.path, exc.code, exc.message)
                return error_response(exc)
        return wrapper
    return decorator


def json_body(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except ValueError:
        raise InvalidRequest('Request body must be valid JSON')
    if not isinstance(data, dict):
        raise InvalidRequest('Request body must be a JSON object')
    return data


def validated(form):
    if not form.is_valid():
        raise InvalidRequest(first_error(form))
    return form


def success(data, status=200):
    return JsonResponse({'status': 'success', 'data': data}, status=status)


# GET: the caller's sessions (optionally ?status=...). POST: instructor books a new one.
@api_view('GET', 'POST')
def office_hours_view(request):
    if request.method == 'GET':
        status = request.GET.get('status')
        if status and status not in dict(OfficeHourSession.STATUS_CHOICES):
            raise InvalidRequest(f"Unknown status '{status}'")
        sessions = service.list_for(request.user, status=status)
        return success([session.to_payload() for session in sessions])

    form = validated(ScheduleForm(json_body(request)))
    data = form.cleaned_data
    session = service.schedule(
        request.user,
        student_id=data['studentId'],
        course_id=data['courseId'],
        start_time=data['startTime'],
        end_time=data['endTime'],
        topic=data['topic'],
        description=data['description'],
        kind=data['type'] or OfficeHourSession.VIDEO,
    )
    return success(session.to_payload(), status=201)


@api_view('GET', 'PATCH')
def office_hour_detail_view(request, pk):
    if request.method == 'GET':
        return success(service.get_for_party(pk, request.user).to_payload())
    form = validated(UpdateForm(json_body(request)))
    session = service.update(pk, request.user, form.changes())
    return success(session.to_payload())


@api_view('POST')
def cancel_view(request, pk):
    session = service.cancel(pk, request.user)
    return success(session.to_payload())


@api_view('POST')
def start_view(request, pk):
    session = service.start(pk, request.user)
    return success(session.to_payload())


@api_view('POST')
def end_view(request, pk):
    session = service.end(pk, request.user)
    return success(session.to_payload())


@api_view('POST')
def notes_view(request, pk):
    form = validated(NoteForm(json_body(request)))
    session = service.add_note(pk, request.user, form.cleaned_data['content'])
    return success({'notes': session.notes}, status=201)


@api_view('POST')
def feedback_view(request, pk):
    form = validated(FeedbackForm(json_body(request)))
    session = service.add_feedback(pk, request.user, form.cleaned_data['rating'], form.cleaned_data['comment'])
    return success({'feedback': session.feedback}, status=201)


@api_view('POST')
def events_view(request, pk):
    event = json_body(request).get('event')
    session = service.log_event(pk, request.user, event)
    return success({'participantEvents': session.analytics['participant_events']}, status=201)


@api_view('POST')
def recording_view(request, pk):
    form = validated(RecordingForm(json_body(request)))
    session = service.set_recording(pk, request.user, form.cleaned_data['url'], form.cleaned_data['duration'])
    return success({'recording': session.recording})


# --- Quality ---

@api_view('POST')
def quality_samples_view(request, pk):
    sample = QualitySample.from_payload(json_body(request))
    stats = aggregator.ingest_sample(pk, sample, actor_id=request.user.pk)
    return success({'averageStats': stats}, status=201)


@api_view('POST')
def quality_changes_view(request, pk):
    data = json_body(request)
    from_quality, to_quality = data.get('from'), data.get('to')
    if not isinstance(from_quality, str) or not isinstance(to_quality, str):
        raise InvalidRequest("'from' and 'to' are required")
    reason = data.get('reason') or ''
    entry = aggregator.record_quality_change(pk, from_quality, to_quality, str(reason), actor_id=request.user.pk)
    return success(entry, status=201)


@api_view('POST')
def finalize_view(request, pk):
    return success(aggregator.finalize(pk, actor_id=request.user.pk))


@api_view('GET')
def summary_view(request, pk):
    return success(aggregator.summary(pk, actor_id=request.user.pk))


@api_view('GET')
def analytics_view(request):
    return success(aggregator.aggregate_for(request.user))
