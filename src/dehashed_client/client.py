"""Dehashed API client: authenticated requests and pagination."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from requests import Session
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException

from .config import ClientConfig
from .errors import (
    DehashedError,
    InvalidQueryError,
    RateLimitedError,
    TransportError,
    UnauthorizedError,
    UnknownError,
    WireFormatError,
)
from .logging_utils import get_logger
from .models import HttpSession, RawResponse, SearchResult
from .normalize import normalize_entries, parse_response
from .query import Query, render
from .scheduler import Scheduler

SleepFn = Callable[[float], None]

STATUS_ERRORS: dict[int, type[DehashedError]] = {
    302: InvalidQueryError,
    400: RateLimitedError,
    401: UnauthorizedError,
}


def make_session(user_agent: str) -> Session:
    """Create a requests session that sends JSON accept headers and never retries."""
    session = Session()
    session.headers.update({"Accept": "application/json", "User-Agent": user_agent})
    session.mount("https://", HTTPAdapter(max_retries=0))
    return session


class DehashedClient:
    """Search client for the Dehashed API.

    Dehashed bans every account doing more than 5 requests per second. A single
    ``search`` paces its own pages; use ``start_scheduler`` to serialize searches
    issued from several threads.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        session: HttpSession | None = None,
        logger: logging.Logger | None = None,
        sleep_fn: SleepFn = time.sleep,
    ) -> None:
        self._config = config
        self._email = config.email
        self._api_key = config.api_key.lower()
        self._session = session if session is not None else make_session(config.user_agent)
        self._logger = logger or get_logger()
        self._sleep_fn = sleep_fn

    @classmethod
    def from_credentials(cls, email: str, api_key: str, **kwargs: Any) -> DehashedClient:
        """Create a client with the default configuration."""
        return cls(ClientConfig(email=email, api_key=api_key), **kwargs)

    @property
    def config(self) -> ClientConfig:
        return self._config

    def _raw_request(self, query: str, page: int) -> RawResponse:
        params: dict[str, str | int] = {
            "size": self._config.page_size,
            "query": query,
            "page": page,
        }
        try:
            response = self._session.get(
                self._config.base_url,
                params=params,
                auth=(self._email, self._api_key),
                timeout=self._config.request_timeout,
                allow_redirects=False,
            )
        except RequestException as exc:
            raise TransportError(f"Request for page {page} failed: {exc}") from exc

        status = response.status_code
        if status != 200:
            error_type = STATUS_ERRORS.get(status)
            if error_type is not None:
                raise error_type(f"Dehashed answered with HTTP {status}")
            raise UnknownError(f"Unexpected HTTP status {status}")

        try:
            payload = response.json()
        except ValueError as exc:
            self._logger.error("Could not decode response body: %s", response.text)
            raise UnknownError("Response body is not valid JSON") from exc
        try:
            return parse_response(payload)
        except WireFormatError:
            self._logger.error("Unexpected response body: %s", response.text)
            raise

    def search(self, query: Query) -> SearchResult:
        """Run a query to completion and return the entries of every page.

        Any failure aborts the whole search; entries of earlier pages are discarded.
        """
        rendered = render(query)
        self._logger.debug("Query: %s", rendered)

        page_size = self._config.page_size
        result = SearchResult()
        page = 1
        while True:
            self._logger.debug("Requesting page %d", page)
            response = self._raw_request(rendered, page)
            if not response.success:
                self._logger.error("Success field in response is set to false")
                raise UnknownError("Dehashed reported an unsuccessful search")

            result.entries.extend(normalize_entries(response.entries))
            result.balance = response.balance

            if response.total < page * page_size:
                self._logger.debug("Last page reached (total=%d, page=%d)", response.total, page)
                break
            self._sleep_fn(self._config.page_delay)
            page += 1

        return result

    def start_scheduler(self) -> Scheduler:
        """Start a scheduler that runs searches one at a time on this client."""
        return Scheduler(
            self,
            queue_capacity=self._config.queue_capacity,
            delay=self._config.scheduler_delay,
            logger=self._logger,
        )
