"""Custom exceptions for the Dehashed client."""


class DehashedError(Exception):
    """Base exception for this project."""


class ConfigError(DehashedError):
    """Raised when client configuration is invalid."""


class TransportError(DehashedError):
    """Raised when the underlying HTTP request fails."""


class UnauthorizedError(DehashedError):
    """Raised when the API rejects the account credentials."""


class InvalidQueryError(DehashedError):
    """Raised when the query is missing or invalid."""


class RateLimitedError(DehashedError):
    """Raised when the account got rate limited."""


class UnknownError(DehashedError):
    """Raised for unexpected statuses or unsuccessful responses."""


class WireFormatError(UnknownError):
    """Raised when a response body does not match the expected shape."""


class IntParseError(DehashedError):
    """Raised when an entry id is not an unsigned integer."""


class AddressParseError(DehashedError):
    """Raised when an entry ip address cannot be parsed."""


class SchedulerStoppedError(DehashedError):
    """Raised when sending to a scheduler that no longer accepts requests."""
