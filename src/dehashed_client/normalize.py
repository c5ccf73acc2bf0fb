"""Conversion of wire payloads into typed search records."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from typing import Any

from .errors import AddressParseError, IntParseError, WireFormatError
from .models import ENTRY_FIELDS, IPAddress, RawEntry, RawResponse, SearchEntry

MAX_ENTRY_ID = 2**64 - 1


def _optional(value: str) -> str | None:
    return value or None


def parse_id(value: str) -> int:
    """Parse an entry id as an unsigned 64-bit decimal integer."""
    digits = value[1:] if value.startswith("+") else value
    if not (digits.isascii() and digits.isdigit()):
        raise IntParseError(f"Invalid entry id: {value!r}")
    parsed = int(digits)
    if parsed > MAX_ENTRY_ID:
        raise IntParseError(f"Entry id out of range: {value!r}")
    return parsed


def parse_ip_address(value: str) -> IPAddress | None:
    """Parse a non-empty ip address field, mapping empty strings to None."""
    if not value:
        return None
    try:
        return ipaddress.ip_address(value)
    except ValueError as exc:
        raise AddressParseError(f"Invalid ip address: {value!r}") from exc


def normalize_entry(raw: RawEntry) -> SearchEntry:
    """Convert a raw entry, failing on a malformed id or ip address."""
    return SearchEntry(
        id=parse_id(raw.id),
        email=_optional(raw.email),
        username=_optional(raw.username),
        password=_optional(raw.password),
        hashed_password=_optional(raw.hashed_password),
        ip_address=parse_ip_address(raw.ip_address),
        name=_optional(raw.name),
        vin=_optional(raw.vin),
        address=_optional(raw.address),
        phone=_optional(raw.phone),
        database_name=_optional(raw.database_name),
    )


def normalize_entries(raws: Iterable[RawEntry]) -> list[SearchEntry]:
    """Normalize one page of entries; the first bad entry aborts the batch."""
    return [normalize_entry(raw) for raw in raws]


def _parse_entry(item: Any) -> RawEntry:
    if not isinstance(item, dict):
        raise WireFormatError(f"Entry is not an object: {item!r}")
    values: dict[str, str] = {}
    for name in ENTRY_FIELDS:
        if name not in item:
            raise WireFormatError(f"Entry is missing field {name!r}")
        value = item[name]
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise WireFormatError(f"Entry field {name!r} is not a string: {value!r}")
        values[name] = value
    return RawEntry(**values)


def _require_int(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise WireFormatError(f"Response field {key!r} is not an unsigned integer: {value!r}")
    return value


def parse_response(payload: Any) -> RawResponse:
    """Build the wire response from a decoded JSON document."""
    if not isinstance(payload, dict):
        raise WireFormatError("Response body is not a JSON object")
    success = payload.get("success")
    if not isinstance(success, bool):
        raise WireFormatError(f"Response field 'success' is not a boolean: {success!r}")
    took = payload.get("took", "")
    if isinstance(took, bool) or not isinstance(took, (str, int, float)):
        raise WireFormatError(f"Response field 'took' is not a string: {took!r}")
    entries = payload.get("entries") or []
    if not isinstance(entries, list):
        raise WireFormatError("Response field 'entries' is not a list")
    return RawResponse(
        balance=_require_int(payload, "balance"),
        entries=[_parse_entry(item) for item in entries],
        success=success,
        took=str(took),
        total=_require_int(payload, "total"),
    )
