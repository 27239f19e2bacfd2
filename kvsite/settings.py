"""Django settings for the bucketkv development site and test suite."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "bucketkv-insecure-development-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "drf_spectacular",
    "bucketkv.apps.BucketKVConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "kvsite.urls"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("BUCKETKV_SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        # Persistent connections stand in for the pool; lifetime in seconds.
        "CONN_MAX_AGE": 180,
        # File-backed so the suite sees real connection closes.
        "TEST": {"NAME": os.environ.get("BUCKETKV_TEST_SQLITE_PATH", str(BASE_DIR / "test_db.sqlite3"))},
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

# Raw PUT bodies up to the value size limit (16,777,215 bytes).
DATA_UPLOAD_MAX_MEMORY_SIZE = 16_777_215 + 1024

BUCKETKV_DATABASE = "default"
BUCKETKV_AUTO_CLOSE = os.environ.get("BUCKETKV_AUTO_CLOSE", "0") == "1"
BUCKETKV_DEFAULT_MIME = "text/html"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Bucketed key/value store API",
    "DESCRIPTION": "Buckets of binary values with content types and named counters.",
    "VERSION": "0.1.0",
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "bucketkv": {
            "handlers": ["console"],
            "level": os.environ.get("BUCKETKV_LOG_LEVEL", "INFO"),
        },
    },
}
