"""
Django settings for the health_sync project.

Every deployment-specific value is read from the environment.
"""

import os
from pathlib import Path

from huey import PriorityRedisExpireHuey


def env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-development-key")
DEBUG = env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = [host for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",") if host]

APPLICATION_VERSION = os.environ.get("APPLICATION_VERSION", "0.1.0")
ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "huey.contrib.djhuey",
    "base",
    "ingestors.apps.IngestorsConfig",
    "metrics.apps.MetricsConfig",
]

MIDDLEWARE = [
    "metrics.middleware.MetricsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "health_sync.urls"
WSGI_APPLICATION = "health_sync.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DATABASE_PATH", str(BASE_DIR / "health_sync.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_THROTTLE_RATES": {"anon": "60/minute", "manual_sync": "30/minute"},
    "UNAUTHENTICATED_USER": None,
}

# Remote FHIR server
FHIR_BASE_URL = os.environ.get("FHIR_BASE_URL", "http://localhost:8080/fhir/")
FHIR_AUTH_TOKEN_HEADER = os.environ.get("FHIR_AUTH_TOKEN_HEADER", "Authorization")
FHIR_AUTH_TOKEN_VALUE = os.environ.get("FHIR_AUTH_TOKEN_VALUE", "")
FHIR_CLIENT_CONFIG = {
    "CONNECT_TIMEOUT": float(os.environ.get("FHIR_CONNECT_TIMEOUT", "10")),
    "READ_TIMEOUT": float(os.environ.get("FHIR_READ_TIMEOUT", "30")),
}

# Health record provider (Health Connect bridge)
HEALTH_RECORDS_BASE_URL = os.environ.get("HEALTH_RECORDS_BASE_URL", "http://localhost:8090/")
HEALTH_RECORDS_PAGE_SIZE = int(os.environ.get("HEALTH_RECORDS_PAGE_SIZE", "1000"))
HEALTH_RECORDS_CLIENT_CONFIG = {
    "CONNECT_TIMEOUT": float(os.environ.get("HEALTH_RECORDS_CONNECT_TIMEOUT", "10")),
    "READ_TIMEOUT": float(os.environ.get("HEALTH_RECORDS_READ_TIMEOUT", "30")),
}

BATCH_SIZES = {
    "PUBLISHER": int(os.environ.get("PUBLISHER_BATCH_SIZE", "500")),
}

SYNC_LOCK_NAME = os.environ.get("SYNC_LOCK_NAME", "health-data-sync")
# Seconds before a lock left by a killed process expires; longer than any sync
SYNC_LOCK_TTL = int(os.environ.get("SYNC_LOCK_TTL", "3600"))

# Background jobs. Immediate mode runs tasks inline with in-memory storage.
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
HUEY = PriorityRedisExpireHuey(
    "health_sync",
    url=REDIS_URL,
    immediate=env_bool("HUEY_IMMEDIATE", DEBUG),
)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get("LOG_FORMAT", "json" if not DEBUG else "plain")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {"()": "metrics.logging.JsonFormatter"},
        "plain": {"format": "%(levelname)s %(asctime)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": LOG_FORMAT,
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "huey": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
