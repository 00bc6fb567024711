"""
WSGI entry point for the payments service.

Exposes the ``application`` callable used by gunicorn in deployment.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
