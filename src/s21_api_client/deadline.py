"""Operation-wide deadline shared by every network call it covers."""

import time

from .errors import TransportError


class Deadline:
    """A fixed point in time by which a whole operation must finish.

    One deadline is threaded through an operation, including any token
    refresh it triggers, so that each HTTP call only gets the time that is
    left rather than a fresh timeout of its own.
    """

    def __init__(self, timeout: float):
        """Start a deadline ``timeout`` seconds from now.

        Raises:
            ValueError: If timeout is negative.
        """
        if timeout < 0:
            msg = "timeout cannot be negative"
            raise ValueError(msg)
        self._expires_at = time.monotonic() + timeout

    def remaining(self) -> float:
        """Seconds left, never below zero."""
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def timeout_for(self, default: float) -> float:
        """Return the timeout to hand to the next HTTP call.

        Raises:
            TransportError: If the deadline has already passed.
        """
        remaining = self.remaining()
        if remaining <= 0.0:
            msg = "deadline exceeded"
            raise TransportError(msg)
        return min(default, remaining)


def resolve_timeout(deadline: Deadline | None, default: float) -> float:
    """Timeout for one request: the configured default, capped by the deadline."""
    if deadline is None:
        return default
    return deadline.timeout_for(default)
