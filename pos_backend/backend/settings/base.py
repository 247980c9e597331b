"""
PATH: backend/settings/base.py

BASE SETTINGS (shared by dev + prod)

Operational maturity:
- Throttling
- Sentry (optional): error visibility in production
- POS money policy (tax fallback, card surcharge) is explicit config, not module constants
- Integrations (payment gateway, cloud terminal, books ledger, receipt notifier)
  are selected by dotted path and resolved once at startup (sales.apps.SalesConfig)
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import environ
from corsheaders.defaults import default_headers, default_methods

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# -----------------------------------------
# TEST MODE DETECTION
# -----------------------------------------
TESTING = "test" in sys.argv or any("pytest" in arg for arg in sys.argv[:1])

# -----------------------------------------
# ENV (django-environ)
# -----------------------------------------
env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "UTC"),
    LOG_LEVEL=(str, "INFO"),
    ADMIN_PATH=(str, "admin/"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    CORS_ALLOWED_ORIGINS=(list, ["http://localhost:5173"]),
    CSRF_TRUSTED_ORIGINS=(list, ["http://localhost:5173"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    # Throttling
    THROTTLE_ANON_RATE=(str, "60/min"),
    THROTTLE_USER_RATE=(str, "600/min"),
    # POS money policy
    POS_DEFAULT_TAX_PERCENT=(str, "7.5"),
    POS_CARD_FEE_PERCENT=(str, "3.00"),
    POS_SURCHARGE_DEBIT_CARDS=(bool, True),
    # Ledger sync toggle: default disabled in tests so no suite depends on a live books API.
    POS_LEDGER_SYNC_ENABLED=(bool, not TESTING),
    # Pending syncs older than this may be re-claimed by an operator retry.
    POS_SYNC_PENDING_STALE_MINUTES=(int, 15),
    # Authorize.Net (payment gateway + cloud terminal routing)
    AUTHORIZE_NET_API_LOGIN_ID=(str, ""),
    AUTHORIZE_NET_TRANSACTION_KEY=(str, ""),
    AUTHORIZE_NET_ENDPOINT=(str, "https://apitest.authorize.net/xml/v1/request.api"),
    AUTHORIZE_NET_TIMEOUT=(int, 30),
    # Books ledger (external accounting system of record)
    BOOKS_BASE_URL=(str, "https://www.zohoapis.com/books/v3"),
    BOOKS_ACCESS_TOKEN=(str, ""),
    BOOKS_ORGANIZATION_ID=(str, ""),
    BOOKS_TIMEOUT=(int, 25),
    # Receipts
    RECEIPT_FROM_EMAIL=(str, "receipts@localhost"),
    RECEIPT_MAX_WORKERS=(int, 2),
    # Sentry (optional; enable by setting SENTRY_DSN)
    SENTRY_DSN=(str, ""),
    SENTRY_ENVIRONMENT=(str, "development"),
    SENTRY_TRACES_SAMPLE_RATE=(float, 0.0),
    SENTRY_SEND_PII=(bool, False),
)

# -----------------------------------------
# LOAD .env
# -----------------------------------------
env_file_1 = BASE_DIR / ".env"
env_file_2 = BASE_DIR.parent / ".env"

if env_file_1.exists():
    env.read_env(str(env_file_1))
elif env_file_2.exists():
    env.read_env(str(env_file_2))

# -----------------------------------------
# CORE SECURITY
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")
ADMIN_PATH = (env("ADMIN_PATH") or "admin/").strip()

# -----------------------------------------
# I18N / TZ
# -----------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

# -----------------------------------------
# INSTALLED APPS
# -----------------------------------------
INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",
    "store.apps.StoreConfig",
    "products.apps.ProductsConfig",
    "customers.apps.CustomersConfig",
    "integrations.apps.IntegrationsConfig",
    "sales.apps.SalesConfig",
]

# -----------------------------------------
# MIDDLEWARE
# -----------------------------------------
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "backend.urls"
WSGI_APPLICATION = "backend.wsgi.application"
APPEND_SLASH = True

# -----------------------------------------
# TEMPLATES (required for Django admin)
# -----------------------------------------
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [str(BASE_DIR / "templates")],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# -----------------------------------------
# REST FRAMEWORK
# -----------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_FILTER_BACKENDS": ("django_filters.rest_framework.DjangoFilterBackend",),
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("THROTTLE_ANON_RATE"),
        "user": env("THROTTLE_USER_RATE"),
    },
}

# -----------------------------------------
# SIMPLE JWT
# -----------------------------------------
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
}

# -----------------------------------------
# DATABASE
# -----------------------------------------
DATABASES = {
    "default": env.db("DATABASE_URL"),
}

# -----------------------------------------
# POS MONEY POLICY
# -----------------------------------------
# DEFAULT_TAX_PERCENT: last step of the tax fallback chain (store field -> store name "(7%)" -> default).
# CARD_FEE_PERCENT: convenience surcharge on card charges, computed on subtotal + tax.
# SURCHARGE_DEBIT_CARDS: False exempts debit-funded cards from the surcharge.
# SYNC_PENDING_STALE_MINUTES: a pending ledger sync older than this is treated as interrupted.
POS = {
    "DEFAULT_TAX_PERCENT": (env("POS_DEFAULT_TAX_PERCENT") or "7.5").strip(),
    "CARD_FEE_PERCENT": (env("POS_CARD_FEE_PERCENT") or "3.00").strip(),
    "SURCHARGE_DEBIT_CARDS": env.bool("POS_SURCHARGE_DEBIT_CARDS"),
    "LEDGER_SYNC_ENABLED": env.bool("POS_LEDGER_SYNC_ENABLED"),
    "SYNC_PENDING_STALE_MINUTES": env.int("POS_SYNC_PENDING_STALE_MINUTES"),
}

# -----------------------------------------
# PAYMENTS
# -----------------------------------------
PAYMENTS = {
    "AUTHORIZE_NET": {
        "API_LOGIN_ID": (env("AUTHORIZE_NET_API_LOGIN_ID") or "").strip(),
        "TRANSACTION_KEY": (env("AUTHORIZE_NET_TRANSACTION_KEY") or "").strip(),
        "ENDPOINT": (env("AUTHORIZE_NET_ENDPOINT") or "").strip(),
        "TIMEOUT": env.int("AUTHORIZE_NET_TIMEOUT"),
    }
}

# -----------------------------------------
# LEDGER (BOOKS)
# -----------------------------------------
LEDGER = {
    "BOOKS": {
        "BASE_URL": (env("BOOKS_BASE_URL") or "").strip().rstrip("/"),
        "ACCESS_TOKEN": (env("BOOKS_ACCESS_TOKEN") or "").strip(),
        "ORGANIZATION_ID": (env("BOOKS_ORGANIZATION_ID") or "").strip(),
        "TIMEOUT": env.int("BOOKS_TIMEOUT"),
    }
}

# -----------------------------------------
# RECEIPTS
# -----------------------------------------
RECEIPTS = {
    "FROM_EMAIL": (env("RECEIPT_FROM_EMAIL") or "receipts@localhost").strip(),
    "MAX_WORKERS": env.int("RECEIPT_MAX_WORKERS"),
}

# -----------------------------------------
# INTEGRATIONS (resolved once at startup)
# -----------------------------------------
POS_INTEGRATIONS = {
    "PAYMENT_GATEWAY": "integrations.authorize_net.AuthorizeNetGateway",
    "CLOUD_TERMINAL": "integrations.authorize_net.AuthorizeNetCloudTerminal",
    "LEDGER": "integrations.books_ledger.BooksLedgerClient",
    "RECEIPT_NOTIFIER": "integrations.notifiers.EmailReceiptNotifier",
}

# -----------------------------------------
# EMAIL
# -----------------------------------------
EMAIL_BACKEND = env(
    "EMAIL_BACKEND", default="django.core.mail.backends.console.EmailBackend"
)
DEFAULT_FROM_EMAIL = RECEIPTS["FROM_EMAIL"]

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = (env("LOG_LEVEL") or "INFO").strip().upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "sales": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "integrations": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# -----------------------------------------
# SENTRY (optional)
# -----------------------------------------
SENTRY_DSN = (env("SENTRY_DSN") or "").strip()
SENTRY_ENVIRONMENT = (env("SENTRY_ENVIRONMENT") or "development").strip()
SENTRY_TRACES_SAMPLE_RATE = float(env("SENTRY_TRACES_SAMPLE_RATE"))
SENTRY_SEND_PII = env.bool("SENTRY_SEND_PII")

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        integrations=[DjangoIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=SENTRY_SEND_PII,
    )

# -----------------------------------------
# CORS / CSRF
# -----------------------------------------
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = list(default_methods)
CORS_ALLOW_HEADERS = list(default_headers)

CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS")

# -----------------------------------------
# STATIC FILES
# -----------------------------------------
STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# SWAGGER
# -----------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "Retail POS Backend API",
    "DESCRIPTION": "Checkout, payment dispatch, and books ledger sync API",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}
