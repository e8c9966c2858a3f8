"""
URL configuration for the booking portal.

Everything under /api/v1/ is served by the portal app; the bare root
answers health checks.
"""
from django.http import HttpResponse
from django.urls import include, path


def health_check(_request):
    return HttpResponse("OK", content_type="text/plain")


urlpatterns = [
    path('', health_check),
    path('api/v1/', include('portal.urls')),
]
