# run_server.py
import os

import django
import uvicorn

# Ensure the Django settings are set before importing any app modules
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'portal_service.settings')
django.setup()

# One worker: open checkouts are tracked in this process
uvicorn.run(
    'portal_service.asgi:application',
    host=os.environ.get('PORTAL_HOST', '0.0.0.0'),
    port=int(os.environ.get('PORTAL_PORT', 8000)),
    workers=1,
)
