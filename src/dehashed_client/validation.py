"""Validation and runtime guardrails."""

from __future__ import annotations

from urllib.parse import urlparse

from .errors import ConfigError


def is_https_url(url: str) -> bool:
    """Allow only absolute HTTPS URLs with a hostname."""
    parsed = urlparse(url)
    return parsed.scheme == "https" and bool(parsed.netloc)


def validate_client_settings(
    *,
    base_url: str,
    request_timeout: float,
    page_size: int,
    page_delay: float,
    scheduler_delay: float,
    queue_capacity: int,
) -> None:
    """Validate client configuration and raise ConfigError on invalid values."""
    if not is_https_url(base_url):
        raise ConfigError(f"base_url must be an absolute https URL, got {base_url!r}.")
    if request_timeout <= 0:
        raise ConfigError("request_timeout must be > 0.")
    if page_size < 1:
        raise ConfigError("page_size must be >= 1.")
    if page_delay < 0 or scheduler_delay < 0:
        raise ConfigError("page_delay and scheduler_delay must be >= 0.")
    if queue_capacity < 1:
        raise ConfigError("queue_capacity must be >= 1.")
