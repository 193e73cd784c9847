"""Root URL configuration.

The client-facing API layer is not part of this project; only the admin
and a health probe are routed here.
"""

from django.contrib import admin
from django.http import HttpRequest, JsonResponse
from django.urls import path


def health_check(request: HttpRequest) -> JsonResponse:
    """Report that the service is up."""
    return JsonResponse({'status': 'ok', 'service': 'cloud-drive'})


urlpatterns = [
    path('health/', health_check, name='health'),
    path('admin/', admin.site.urls),
]
