"""Exception hierarchy for the 21-school API client.

Each failure layer (configuration, network, authentication, HTTP status,
payload decoding, GraphQL-reported errors and domain lookups) has its own
class so callers can tell them apart. Nothing in the client retries.
"""

from typing import Any


class S21ClientError(Exception):
    """Base exception for all client errors."""


class ConfigError(S21ClientError):
    """Raised when the client is missing configuration, e.g. credentials."""


class TransportError(S21ClientError):
    """Raised when an endpoint cannot be reached or the deadline runs out."""


class DecodeError(S21ClientError):
    """Raised when a response body cannot be decoded into the expected shape."""


class AuthError(S21ClientError):
    """Raised when the credential exchange fails."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthTransportError(AuthError, TransportError):
    """Raised when the auth endpoint cannot be reached."""


class AuthDecodeError(AuthError, DecodeError):
    """Raised when the auth endpoint returns a malformed token payload."""


class HTTPError(S21ClientError):
    """Raised when the GraphQL endpoint answers with a non-200 status."""

    def __init__(self, status_code: int, body: str):
        if body:
            msg = f"request failed with status {status_code}: {body}"
        else:
            msg = f"request failed with status {status_code} (empty response body)"
        super().__init__(msg)
        self.status_code = status_code
        self.body = body


class GraphQLError(S21ClientError):
    """Raised when a response carries one or more GraphQL errors.

    The ``errors`` attribute holds every entry reported by the server; the
    message lists all of their messages.
    """

    def __init__(self, errors: list[Any]):
        messages = "; ".join(error.message for error in errors)
        super().__init__(f"graphql errors: {messages}")
        self.errors = errors


class NotFoundError(S21ClientError):
    """Raised when a mutation response lacks the entity the caller expected."""


class ValidationError(S21ClientError):
    """Raised when caller input is rejected before any request is made."""
