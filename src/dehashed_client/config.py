"""Client configuration model."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .errors import ConfigError
from .validation import validate_client_settings

DEFAULT_BASE_URL = "https://api.dehashed.com/search"
DEFAULT_USER_AGENT = "dehashed-client/0.5.0"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_PAGE_SIZE = 10_000
# Dehashed bans accounts doing more than 5 requests per second.
DEFAULT_PAGE_DELAY = 0.2
DEFAULT_SCHEDULER_DELAY = 0.2
DEFAULT_QUEUE_CAPACITY = 5

EMAIL_ENV_VAR = "DEHASHED_EMAIL"
API_KEY_ENV_VAR = "DEHASHED_API_KEY"


@dataclass(frozen=True)
class ClientConfig:
    """Validated configuration used by the client and its scheduler."""

    email: str
    api_key: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    page_delay: float = DEFAULT_PAGE_DELAY
    scheduler_delay: float = DEFAULT_SCHEDULER_DELAY
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY

    def __post_init__(self) -> None:
        validate_client_settings(
            base_url=self.base_url,
            request_timeout=self.request_timeout,
            page_size=self.page_size,
            page_delay=self.page_delay,
            scheduler_delay=self.scheduler_delay,
            queue_capacity=self.queue_capacity,
        )

    @classmethod
    def from_env(cls, **overrides: object) -> ClientConfig:
        """Build a config from DEHASHED_EMAIL and DEHASHED_API_KEY."""
        email = os.getenv(EMAIL_ENV_VAR)
        api_key = os.getenv(API_KEY_ENV_VAR)
        if not email or not api_key:
            raise ConfigError(f"Set {EMAIL_ENV_VAR} and {API_KEY_ENV_VAR} to use from_env().")
        return cls(email=email, api_key=api_key, **overrides)  # type: ignore[arg-type]
