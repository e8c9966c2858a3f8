"""
ASGI config for portal_service.

Checkout attempts wait on in-process futures, so the portal must run on a
single ASGI worker.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'portal_service.settings')

application = get_asgi_application()
