"""Search expressions and their rendering to the Dehashed query syntax."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Union

RESERVED_CHARACTERS = frozenset('+-=&|><!(){}[]^"~*?:\\')


def escape(text: str) -> str:
    """Prefix every reserved character with a backslash."""
    return "".join(f"\\{char}" if char in RESERVED_CHARACTERS else char for char in text)


@dataclass(frozen=True)
class Simple:
    """Plain term, matched the way the provider tokenizes it."""

    text: str


@dataclass(frozen=True)
class Exact:
    """Quoted term that must match exactly."""

    text: str


@dataclass(frozen=True)
class Regex:
    """Regular expression term."""

    pattern: str


@dataclass(frozen=True)
class Or:
    """Any of the child terms."""

    terms: tuple[SearchType, ...]

    def __init__(self, terms: Iterable[SearchType]) -> None:
        object.__setattr__(self, "terms", tuple(terms))


@dataclass(frozen=True)
class And:
    """All of the child terms."""

    terms: tuple[SearchType, ...]

    def __init__(self, terms: Iterable[SearchType]) -> None:
        object.__setattr__(self, "terms", tuple(terms))


SearchType = Union[Simple, Exact, Regex, Or, And]


def render_search_type(term: SearchType) -> str:
    """Render a search expression, recursing into Or/And children."""
    if isinstance(term, Simple):
        return escape(term.text)
    if isinstance(term, Exact):
        return f'"{escape(term.text)}"'
    if isinstance(term, Regex):
        return f"/{escape(term.pattern)}/"
    if isinstance(term, Or):
        return " OR ".join(render_search_type(child) for child in term.terms)
    if isinstance(term, And):
        return " ".join(render_search_type(child) for child in term.terms)
    raise TypeError(f"Unsupported search term: {term!r}")


class QueryField(str, Enum):
    """Searchable fields and their names in the query syntax."""

    EMAIL = "email"
    IP_ADDRESS = "ip_address"
    USERNAME = "username"
    PASSWORD = "password"
    HASHED_PASSWORD = "hashed_password"
    NAME = "name"
    DOMAIN = "domain"
    VIN = "vin"
    PHONE = "phone"
    ADDRESS = "address"


@dataclass(frozen=True)
class Query:
    """A search expression bound to one field.

    Build it with the field constructors, e.g.
    ``Query.domain(Or([Simple("example.com"), Exact("example.org")]))``.
    """

    field: QueryField
    term: SearchType

    def __str__(self) -> str:
        return render(self)

    @classmethod
    def email(cls, term: SearchType) -> Query:
        return cls(QueryField.EMAIL, term)

    @classmethod
    def ip_address(cls, term: SearchType) -> Query:
        return cls(QueryField.IP_ADDRESS, term)

    @classmethod
    def username(cls, term: SearchType) -> Query:
        return cls(QueryField.USERNAME, term)

    @classmethod
    def password(cls, term: SearchType) -> Query:
        return cls(QueryField.PASSWORD, term)

    @classmethod
    def hashed_password(cls, term: SearchType) -> Query:
        return cls(QueryField.HASHED_PASSWORD, term)

    @classmethod
    def name(cls, term: SearchType) -> Query:
        return cls(QueryField.NAME, term)

    @classmethod
    def domain(cls, term: SearchType) -> Query:
        return cls(QueryField.DOMAIN, term)

    @classmethod
    def vin(cls, term: SearchType) -> Query:
        return cls(QueryField.VIN, term)

    @classmethod
    def phone(cls, term: SearchType) -> Query:
        return cls(QueryField.PHONE, term)

    @classmethod
    def address(cls, term: SearchType) -> Query:
        return cls(QueryField.ADDRESS, term)


def render(query: Query) -> str:
    """Render a query as ``<field>:<expression>``."""
    return f"{query.field.value}:{render_search_type(query.term)}"
