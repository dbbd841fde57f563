"""Settings for the test suite: SQLite, local-memory cache, eager Celery."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from config.settings import *  # noqa: E402,F401,F403
from config.settings import REST_FRAMEWORK  # noqa: E402

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "fulfillment-tests",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Throttle counters live in the shared cache; tests exercise throttling
# explicitly by overriding these.
REST_FRAMEWORK = {**REST_FRAMEWORK, "DEFAULT_THROTTLE_CLASSES": []}

PAYMENT_WEBHOOK_SECRET = "test-webhook-secret"
PAYMENT_GATEWAY_ACCESS_TOKEN = "test-access-token"
SITE_URL = "https://loja.example.com/"
ROUTE_OPTIMIZER_URL = ""
DEFAULT_FROM_EMAIL = "pedidos@loja.example.com"
