"""
Preview host configuration — all environment variables in one place.

Read from environment at import time.
"""

from __future__ import annotations

import os


def _float_env(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


class Settings:
    """Application settings from environment variables."""

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    # Preview surface
    VIEW_TYPE: str = os.environ.get("PREVIEW_VIEW_TYPE", "OJSPreview")
    TITLE: str = os.environ.get("PREVIEW_TITLE", "OJS Preview")
    SCRIPT_URL: str = os.environ.get("PREVIEW_SCRIPT_URL", "/static/webview.js")

    # Diagnostics drain period
    FLUSH_INTERVAL_SECONDS: float = _float_env("PREVIEW_FLUSH_INTERVAL_SECONDS", 1.0)

    # Bridge deadlines (unset = wait forever)
    REQUEST_TIMEOUT_SECONDS: float | None = _float_env("PREVIEW_REQUEST_TIMEOUT_SECONDS", None)
    INIT_TIMEOUT_SECONDS: float | None = _float_env("PREVIEW_INIT_TIMEOUT_SECONDS", None)

    # Sandbox resource pulls
    PULL_TIMEOUT_SECONDS: float = _float_env("PREVIEW_PULL_TIMEOUT_SECONDS", 30.0)


# Singleton instance
settings = Settings()
