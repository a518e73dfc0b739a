from pathlib import Path
import os

import dj_database_url
import sentry_sdk
from dotenv import load_dotenv
from sentry_sdk.integrations.django import DjangoIntegration


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")  # explicit .env location

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY") or os.getenv("SECRET_KEY") or "dev-key"


def _get_bool_env(name: str, default: bool) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if not raw_value:
        return default
    return int(raw_value)


def _get_list_env(name: str) -> list[str]:
    raw_value = os.getenv(name, "")
    if not raw_value:
        return []
    parts = raw_value.replace(";", ",").split(",")
    return [p.strip() for p in parts if p.strip()]


DEBUG = _get_bool_env("DJANGO_DEBUG", _get_bool_env("DEBUG", True))

ALLOWED_HOSTS = list(dict.fromkeys(["localhost", "127.0.0.1"] + _get_list_env("DJANGO_ALLOWED_HOSTS")))

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",

    # Third-party
    "rest_framework",

    # Project apps
    "core",
    "inventory",
    "billing",
    "udhari",
    "notifications",
]

default_db = "sqlite:///" + str((BASE_DIR / "db.sqlite3").resolve())
database_url = os.getenv("DATABASE_URL", default_db)
DATABASES = {"default": dj_database_url.parse(database_url)}

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Kolkata")
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ===================================
# Billing & credit ledger
# ===================================

# Finalized bills accept metadata edits (party, notes) only inside this window.
BILL_EDIT_GRACE_HOURS = _get_int_env("BILL_EDIT_GRACE_HOURS", 24)

# Due date assigned to a new udhari entry when the bill does not carry one.
UDHARI_DEFAULT_CREDIT_DAYS = _get_int_env("UDHARI_DEFAULT_CREDIT_DAYS", 30)

DEFAULT_TAX_RATE = _get_int_env("DEFAULT_TAX_RATE", 18)
DOCUMENT_NUMBER_PADDING = _get_int_env("DOCUMENT_NUMBER_PADDING", 6)

# --- Sentry ---

SENTRY_DSN = os.getenv("SENTRY_DSN", "")

if not DEBUG and SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[DjangoIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
        environment=os.getenv("SENTRY_ENVIRONMENT", "production"),
    )


LOG_LEVEL = os.getenv("DUKAAN_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        app: {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False}
        for app in ("core", "inventory", "billing", "udhari", "notifications")
    },
}
