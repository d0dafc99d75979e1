from __future__ import annotations

from .settings_base import *  # noqa: F403

# Development defaults
DEBUG = env.bool("DEBUG", default=True)  # type: ignore[name-defined]  # noqa: F405
NINJA_ENABLE_DOCS = env.bool("NINJA_ENABLE_DOCS", default=True)  # type: ignore[name-defined]  # noqa: F405

# Receipts and order mails land on stdout unless a real backend is configured.
EMAIL_BACKEND = env(  # type: ignore[name-defined]  # noqa: F405
    "EMAIL_BACKEND", default="django.core.mail.backends.console.EmailBackend")
