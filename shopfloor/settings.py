"""
Django settings for the shopfloor project.
Production workflow service with PostgreSQL, JWT, DRF,
stage-graph enforcement, audit safety, and Celery background tasks.
"""

from pathlib import Path
from decouple import config
from datetime import timedelta
from celery.schedules import crontab
import os


# ===============================================================
# Base paths
# ===============================================================
BASE_DIR = Path(__file__).resolve().parent.parent


# ===============================================================
# Security
# ===============================================================
SECRET_KEY = config("SECRET_KEY", default="insecure-key-change-me")
DEBUG = config("DEBUG", default=False, cast=bool)

# ALLOWED_HOSTS is usually overridden by .env:
# - strip whitespace and drop empty entries
# - "*.domain" becomes ".domain"
_raw_hosts = config(
    "ALLOWED_HOSTS",
    default="127.0.0.1,localhost,testserver",
)

ALLOWED_HOSTS = [h.strip() for h in str(_raw_hosts).split(",") if h.strip()]

_fixed_hosts = []
for h in ALLOWED_HOSTS:
    if h.startswith("*."):
        _fixed_hosts.append("." + h[2:])
    else:
        _fixed_hosts.append(h)
ALLOWED_HOSTS = _fixed_hosts

if "testserver" not in ALLOWED_HOSTS:
    ALLOWED_HOSTS.append("testserver")


# ---------------------------------------------------------------
# Reverse proxy
# ---------------------------------------------------------------
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=False, cast=bool)
SESSION_COOKIE_SECURE = config("SESSION_COOKIE_SECURE", default=True, cast=bool)
CSRF_COOKIE_SECURE = config("CSRF_COOKIE_SECURE", default=True, cast=bool)

CSRF_TRUSTED_ORIGINS = [
    o.strip()
    for o in str(config("CSRF_TRUSTED_ORIGINS", default="")).split(",")
    if o.strip()
]


# ===============================================================
# Installed apps
# ===============================================================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt.token_blacklist",
    "django_filters",
    "drf_spectacular",
    "drf_spectacular_sidecar",
    "shopfloor_core.apps.ShopfloorCoreConfig",
    "django_celery_results",
    "django_celery_beat",
]


# ===============================================================
# Middleware
# ===============================================================
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "shopfloor.urls"
WSGI_APPLICATION = "shopfloor.wsgi.application"


# ===============================================================
# Templates (admin + browsable API only)
# ===============================================================
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]


# ===============================================================
# Database
# ===============================================================
DJANGO_ENV = os.environ.get("DJANGO_ENV", "").lower()

if DJANGO_ENV in {"ci", "test"}:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": config("DB_NAME", default="shopfloor_db"),
            "USER": config("DB_USER", default="shopfloor_user"),
            "PASSWORD": config("DB_PASSWORD", default="StrongPasswordHere"),
            "HOST": config("DB_HOST", default="127.0.0.1"),
            "PORT": config("DB_PORT", default="5432"),
        }
    }


# ===============================================================
# Password validation
# ===============================================================
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]


# ===============================================================
# Internationalization
# ===============================================================
LANGUAGE_CODE = "en-us"
TIME_ZONE = config("TIME_ZONE", default="UTC")
USE_I18N = True
USE_TZ = True


# ===============================================================
# Static
# ===============================================================
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# ===============================================================
# CORS
# ===============================================================
CORS_ALLOW_ALL_ORIGINS = config("CORS_ALLOW_ALL_ORIGINS", default=True, cast=bool)


# ===============================================================
# Django REST Framework
# ===============================================================
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_RENDERER_CLASSES": (
        "rest_framework.renderers.JSONRenderer",
        "rest_framework.renderers.BrowsableAPIRenderer",
    ),
    "DEFAULT_FILTER_BACKENDS": (
        "django_filters.rest_framework.DjangoFilterBackend",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "shopfloor.pagination.DefaultPagination",
    "PAGE_SIZE": 50,
    "EXCEPTION_HANDLER": "shopfloor_core.exceptions.api_exception_handler",
}


# ===============================================================
# OpenAPI / Swagger
# ===============================================================
SPECTACULAR_SETTINGS = {
    "TITLE": "Shopfloor API",
    "DESCRIPTION": "Production batches, stage transitions, assignments and quality gates",
    "VERSION": "0.1.0",
    "SWAGGER_UI_DIST": "SIDECAR",
    "SWAGGER_UI_FAVICON_HREF": "SIDECAR",
    "REDOC_DIST": "SIDECAR",
}


# ===============================================================
# JWT
# ===============================================================
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": True,
    "AUTH_HEADER_TYPES": ("Bearer",),
}


# ===============================================================
# Logging
# ===============================================================
LOG_LEVEL = config("LOG_LEVEL", default="INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "shopfloor_core": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}


# ===============================================================
# Notifications
# ===============================================================
# E-mail copies of stall alerts are opt-in.
STAGE_ALERT_EMAIL_NOTIFICATIONS = config("STAGE_ALERT_EMAIL_NOTIFICATIONS", default=False, cast=bool)
STAGE_ALERT_NOTIFY_EMAILS = [
    e.strip()
    for e in str(config("STAGE_ALERT_NOTIFY_EMAILS", default="")).split(",")
    if e.strip()
]
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="shopfloor@localhost")


# ===============================================================
# Production stage graph (default, overridden by an active
# StageGraphDefinition row)
# ===============================================================
def _checklist(*items):
    return [
        {"id": i, "category": category, "item": item, "required": True}
        for i, (category, item) in enumerate(items, start=1)
    ]


PRODUCTION_STAGE_GRAPH = {
    "initial": "intake",
    "stages": [
        {
            "code": "intake",
            "name": "Intake",
            "warn_after_hours": 24,
            "breach_after_hours": 48,
            "checklist": _checklist(
                ("Wood Quality", "Check for cracks or defects"),
                ("Wood Quality", "Verify wood type matches order"),
                ("Measurements", "Verify dimensions"),
            ),
        },
        {
            "code": "sanding",
            "name": "Sanding",
            "warn_after_hours": 48,
            "breach_after_hours": 72,
            "checklist": _checklist(
                ("Surface", "Check smoothness (220 grit)"),
                ("Surface", "No visible scratches"),
                ("Shape", "Maintain original contours"),
            ),
        },
        {
            "code": "finishing",
            "name": "Finishing",
            "warn_after_hours": 72,
            "breach_after_hours": 96,
            "checklist": _checklist(
                ("Coating", "Even coat application"),
                ("Coating", "No runs or drips"),
                ("Coating", "Proper cure time observed"),
            ),
        },
        {
            "code": "sub_assembly",
            "name": "Sub-Assembly",
            "warn_after_hours": 48,
            "breach_after_hours": 72,
            "checklist": _checklist(
                ("Components", "All parts present"),
                ("Fit", "Components fit properly"),
                ("Alignment", "Proper alignment verified"),
            ),
        },
        {
            "code": "final_assembly",
            "name": "Final Assembly",
            "warn_after_hours": 48,
            "breach_after_hours": 72,
            "checklist": _checklist(
                ("Assembly", "All components secure"),
                ("Function", "Moving parts operate smoothly"),
                ("Aesthetics", "No visible assembly marks"),
            ),
        },
        {
            "code": "acoustic_qc",
            "name": "Acoustic QC",
            "warn_after_hours": 24,
            "breach_after_hours": 48,
            "checklist": _checklist(
                ("Sound", "Frequency response within tolerance"),
                ("Sound", "No rattles or buzzing"),
                ("Sound", "Channel balance verified"),
            ),
        },
        {
            "code": "packaging",
            "name": "Packaging",
            "warn_after_hours": 24,
            "breach_after_hours": 48,
            "checklist": _checklist(
                ("Packaging", "Proper protective packaging"),
                ("Documentation", "All documents included"),
                ("Final Check", "Serial number recorded"),
            ),
        },
        {
            "code": "shipped",
            "name": "Shipped",
            "terminal": True,
        },
    ],
    "transitions": [
        {"from": "intake", "to": "sanding", "requires_quality_gate": True},
        {"from": "sanding", "to": "finishing"},
        {"from": "finishing", "to": "sub_assembly"},
        {"from": "sub_assembly", "to": "final_assembly"},
        {"from": "final_assembly", "to": "acoustic_qc"},
        {"from": "acoustic_qc", "to": "packaging", "requires_quality_gate": True},
        {"from": "acoustic_qc", "to": "sanding"},
        {"from": "acoustic_qc", "to": "finishing"},
        {"from": "packaging", "to": "shipped"},
    ],
}

# Window used by the bottleneck metrics endpoint
SHOPFLOOR_BOTTLENECK_WINDOW_DAYS = config("SHOPFLOOR_BOTTLENECK_WINDOW_DAYS", default=30, cast=int)


# ===============================================================
# Celery configuration
# ===============================================================
CELERY_BROKER_URL = config("CELERY_BROKER_URL", default="redis://127.0.0.1:6379/0")
CELERY_RESULT_BACKEND = "django-db"

CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"

CELERY_TIMEZONE = TIME_ZONE

CELERY_BEAT_SCHEDULE = {
    "scan-stalled-batches-every-15-mins": {
        "task": "shopfloor_core.tasks.scan_stalled_batches",
        "schedule": crontab(minute="*/15"),
        "args": (),
    }
}
