"""Django settings for the example registration desk.

Keeps the journal in a file-based cache under ``examples/journal`` so it
survives restarts, and reads gateway and endpoint settings from ``.env``.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = "example-dev-key-not-for-production"
DEBUG = True
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "django_regdesk.registration",
]

ROOT_URLCONF = "urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.filebased.FileBasedCache",
        "LOCATION": BASE_DIR / "journal",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
STATIC_URL = "static/"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "loggers": {"django_regdesk": {"handlers": ["console"], "level": os.environ.get("REGDESK_LOG_LEVEL", "INFO")}},
}

DJANGO_REGDESK = {
    "razorpay": {
        "key_id": os.environ.get("RAZORPAY_KEY_ID", ""),
    },
    "api": {
        "order_url": os.environ.get("REGDESK_ORDER_URL", "https://apvcouncil.in/api/create_order2.php"),
        "submission_url": os.environ.get("REGDESK_SUBMISSION_URL", "https://apvcouncil.in/api/submission_handler.php"),
    },
}
