"""
Settings for the pytest suite.

Fills in the variables production reads from the environment, then swaps
the external backing services (PostgreSQL, Redis, the Celery broker) for
in-process equivalents.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ENV_FILE", "/nonexistent/.env.test")

from config.settings import *  # noqa: E402,F403

DEBUG = False
SECURE_SSL_REDIRECT = False

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "payments-tests",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}

MPESA_CONSUMER_KEY = "test-consumer-key"
MPESA_CONSUMER_SECRET = "test-consumer-secret"
MPESA_SHORTCODE = "174379"
MPESA_PASSKEY = "test-passkey"
MPESA_CALLBACK_URL = "https://testserver/api/v1/payments/callbacks/mpesa/"

PAYMENT_TOKEN_CACHE = "memory"
PAYMENT_CALLBACK_ALLOWED_IPS = []

ALLOWED_HOSTS = ["testserver", "localhost"]

# Let pytest's caplog see payment logs
LOGGING["loggers"]["payments"]["propagate"] = True  # noqa: F405
LOGGING["loggers"]["payments"]["handlers"] = []  # noqa: F405
