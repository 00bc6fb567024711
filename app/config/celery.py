"""
Celery configuration for the payments service.

Background work in this project is limited to reconciliation jobs:
- expiring ``processing`` payments that never received a provider answer
- moving listings whose paid term has ended to ``expired``

Both are periodic tasks stored in django-celery-beat's database scheduler
(see the ``payments`` and ``listings`` data migrations). Tasks are
auto-discovered from each installed app's ``tasks.py``.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
