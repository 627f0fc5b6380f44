"""Thread-local httpx client management.

Both the token manager and the GraphQL transport talk HTTP. Each keeps one
:class:`ThreadLocalClient` so that every thread gets its own
``httpx.Client`` while sharing base URL, default timeout and, optionally,
an injected transport.
"""

import threading

import httpx

DEFAULT_TIMEOUT = 30.0


class ThreadLocalClient:
    """Lazily creates one ``httpx.Client`` per calling thread."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the factory.

        Args:
            base_url: Base URL every request path is resolved against.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport override (e.g.
                ``httpx.MockTransport`` in tests).

        Raises:
            ValueError: If base_url is empty or timeout is not positive.
        """
        if not base_url:
            msg = "base_url cannot be empty"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._local = threading.local()

    def _current(self) -> httpx.Client | None:
        client = getattr(self._local, "client", None)
        if client is None or client.is_closed:
            return None
        return client

    @property
    def client(self) -> httpx.Client:
        """The calling thread's client, created on first use or after close."""
        client = self._current()
        if client is None:
            client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
            self._local.client = client
        return client

    def close(self) -> None:
        """Close the calling thread's client, if it has an open one."""
        client = self._current()
        if client is not None:
            client.close()
