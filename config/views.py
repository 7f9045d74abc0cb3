# config/views.py

from django.http import HttpResponse


# Liveness probe for the load balancer
def health_view(request):
    return HttpResponse("ok", content_type="text/plain")
