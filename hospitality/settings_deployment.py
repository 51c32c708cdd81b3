"""Production settings for container deployments."""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

from .settings import *  # noqa: F401,F403
from .settings import BASE_DIR as _BASE_DIR

BASE_DIR: Path = _BASE_DIR

secret_key = os.environ.get("DJANGO_SECRET_KEY")
if not secret_key or secret_key == "change-me":
    raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set for production deployments.")
SECRET_KEY = secret_key

hostname = os.environ.get("WEBSITE_HOSTNAME", "").strip()
if hostname:
    ALLOWED_HOSTS = [hostname]
    CSRF_TRUSTED_ORIGINS = [f"https://{hostname}"]
else:
    warnings.warn(
        "WEBSITE_HOSTNAME environment variable not set; using base ALLOWED_HOSTS.",
        stacklevel=2,
    )

DEBUG = False

if EMAIL_BACKEND == "django.core.mail.backends.console.EmailBackend":  # type: ignore[name-defined]
    raise ImproperlyConfigured(
        "Console email backend is not allowed in production. Set EMAIL_BACKEND to an SMTP or service-specific backend "
        "and provide the necessary credentials via environment variables."
    )

if EMAIL_BACKEND == "django.core.mail.backends.smtp.EmailBackend":  # type: ignore[name-defined]
    missing_email_settings: list[str] = []
    if not EMAIL_HOST:  # type: ignore[name-defined]
        missing_email_settings.append("EMAIL_HOST")
    if not EMAIL_HOST_USER:  # type: ignore[name-defined]
        missing_email_settings.append("EMAIL_HOST_USER")
    if not EMAIL_HOST_PASSWORD:  # type: ignore[name-defined]
        missing_email_settings.append("EMAIL_HOST_PASSWORD")
    if missing_email_settings:
        raise ImproperlyConfigured(
            "SMTP email backend is configured but these settings are missing: "
            + ", ".join(missing_email_settings)
            + ". Set them as environment variables in your deployment."
        )

_original_middleware = MIDDLEWARE  # type: ignore[name-defined]
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
]
for middleware in _original_middleware:
    if middleware in MIDDLEWARE:
        continue
    MIDDLEWARE.append(middleware)

STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_HSTS_SECONDS = int(os.environ.get("SECURE_HSTS_SECONDS", "31536000"))
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True

if not os.environ.get("DATABASE_URL"):
    warnings.warn(
        "DATABASE_URL not set; production is running on the default SQLite database.",
        stacklevel=2,
    )
