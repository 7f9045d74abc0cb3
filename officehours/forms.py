# officehours/forms.py

from django import forms

from .models import OfficeHourSession

"""
These forms only check the shape of the JSON the API receives (types,
lengths, dates). Who may do what, and when, is decided by the state
machine in machine.py.
"""


class ScheduleForm(forms.Form):
    studentId = forms.IntegerField()
    courseId = forms.IntegerField()
    startTime = forms.DateTimeField()
    endTime = forms.DateTimeField()
    topic = forms.CharField(max_length=255)
    description = forms.CharField(required=False)
    type = forms.ChoiceField(choices=OfficeHourSession.KIND_CHOICES, required=False)


class UpdateForm(forms.Form):
    startTime = forms.DateTimeField(required=False)
    endTime = forms.DateTimeField(required=False)
    topic = forms.CharField(max_length=255, required=False)
    description = forms.CharField(required=False)
    type = forms.ChoiceField(choices=OfficeHourSession.KIND_CHOICES, required=False)

    # JSON key -> model field
    FIELD_MAP = {
        'startTime': 'start_time',
        'endTime': 'end_time',
        'topic': 'topic',
        'description': 'description',
        'type': 'kind',
    }

    def changes(self):
        # Only the keys the client actually sent
        return {
            model_field: self.cleaned_data[key]
            for key, model_field in self.FIELD_MAP.items()
            if key in self.data
        }


class FeedbackForm(forms.Form):
    rating = forms.IntegerField(min_value=1, max_value=5)
    comment = forms.CharField(required=False, max_length=2000)


class NoteForm(forms.Form):
    content = forms.CharField(max_length=5000)


class RecordingForm(forms.Form):
    url = forms.URLField(max_length=500)
    duration = forms.IntegerField(min_value=0, required=False)


def first_error(form):
    # A single readable message for the JSON error body
    for field, errors in form.errors.items():
        label = field if field != '__all__' else 'request'
        return f"{label}: {errors[0]}"
    return 'Invalid request'
