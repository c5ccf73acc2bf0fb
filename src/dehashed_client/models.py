"""Protocols, result records and wire types."""

from __future__ import annotations

from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address
from typing import Any, Protocol, Union

IPAddress = Union[IPv4Address, IPv6Address]


class HttpResponse(Protocol):
    """Subset of ``requests.Response`` used by the client."""

    status_code: int
    text: str

    def json(self) -> Any:
        """Decode the body as JSON."""


class HttpSession(Protocol):
    """Subset of ``requests.Session`` used by the client."""

    def get(self, url: str, **kwargs: Any) -> HttpResponse:
        """Send a GET request."""


@dataclass(frozen=True)
class SearchEntry:
    """A single normalized record of a search result."""

    id: int
    email: str | None = None
    username: str | None = None
    password: str | None = None
    hashed_password: str | None = None
    ip_address: IPAddress | None = None
    name: str | None = None
    vin: str | None = None
    address: str | None = None
    phone: str | None = None
    database_name: str | None = None


@dataclass
class SearchResult:
    """Entries of every fetched page plus the remaining balance."""

    entries: list[SearchEntry] = field(default_factory=list)
    balance: int = 0


ENTRY_FIELDS = (
    "id",
    "email",
    "username",
    "password",
    "hashed_password",
    "ip_address",
    "name",
    "vin",
    "address",
    "phone",
    "database_name",
)


@dataclass(frozen=True)
class RawEntry:
    """Entry as sent by the API, every field a possibly empty string."""

    id: str
    email: str = ""
    username: str = ""
    password: str = ""
    hashed_password: str = ""
    ip_address: str = ""
    name: str = ""
    vin: str = ""
    address: str = ""
    phone: str = ""
    database_name: str = ""


@dataclass(frozen=True)
class RawResponse:
    """One page of the search endpoint."""

    balance: int
    entries: list[RawEntry]
    success: bool
    took: str
    total: int
