# backend/asgi.py
"""
ASGI config for the POS backend.
Checkout performs blocking gateway I/O; serve it under WSGI in production.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_asgi_application()
