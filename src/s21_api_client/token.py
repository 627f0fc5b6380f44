"""Bearer token lifecycle for the 21-school auth service.

Holds the credentials and the current token, decides when a new token is
needed and performs the password-grant exchange against the Keycloak realm.
The token and its expiry live in a single immutable record that is swapped
under a lock, so concurrent callers never see a token paired with another
round's expiry and at most one exchange is in flight at a time.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock

import httpx
import pydantic
import structlog

from .deadline import Deadline, resolve_timeout
from .errors import (
    AuthDecodeError,
    AuthError,
    AuthTransportError,
    ConfigError,
    TransportError,
)
from .http import DEFAULT_TIMEOUT, ThreadLocalClient

logger = structlog.get_logger(__name__)

DEFAULT_AUTH_URL = "https://auth.21-school.ru"
AUTH_TOKEN_PATH = "/auth/realms/EduPowerKeycloak/protocol/openid-connect/token"
CLIENT_ID = "s21-open-api"

# Tokens are refreshed this many seconds before they actually expire.
REFRESH_MARGIN = 60.0


class Credentials(pydantic.BaseModel):
    """Login and password used for the password grant."""

    model_config = pydantic.ConfigDict(frozen=True)

    login: str
    password: str = pydantic.Field(repr=False)


class Token(pydantic.BaseModel):
    """Token payload returned by the auth endpoint."""

    model_config = pydantic.ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = pydantic.Field(repr=False)
    token_type: str = ""
    expires_in: int = 0
    refresh_token: str = pydantic.Field("", repr=False)
    id_token: str = pydantic.Field("", repr=False)
    not_before_policy: int = pydantic.Field(0, alias="not-before-policy")
    session_state: str = ""
    scope: str = ""


@dataclass(frozen=True)
class _TokenState:
    token: Token
    expires_at: float


class TokenManager:
    """Owns the credentials and the current access token.

    Thread-safe: ``ensure_valid`` and ``authenticate`` are serialized behind
    one lock, and the token/expiry pair is replaced wholesale.
    """

    def __init__(
        self,
        credentials: Credentials | None,
        auth_url: str = DEFAULT_AUTH_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the token manager.

        Args:
            credentials: Login and password, or None when only a manually set
                token will be used.
            auth_url: Base URL of the auth service.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport override.
        """
        self._credentials = credentials
        self._http = ThreadLocalClient(auth_url, timeout=timeout, transport=transport)
        self._lock = Lock()
        self._state: _TokenState | None = None

    @property
    def has_credentials(self) -> bool:
        return self._credentials is not None

    @property
    def token(self) -> Token | None:
        state = self._state
        return state.token if state is not None else None

    @property
    def expires_at(self) -> float | None:
        """Expiry as a Unix timestamp, or None when no token is held."""
        state = self._state
        return state.expires_at if state is not None else None

    def set_token(self, token: Token, expires_at: float) -> None:
        """Install a token manually, e.g. for tests."""
        with self._lock:
            self._state = _TokenState(token=token, expires_at=expires_at)

    def ensure_valid(self, deadline: Deadline | None = None) -> Token:
        """Return a valid token, authenticating first if needed.

        A token is valid while ``now + REFRESH_MARGIN < expires_at``.

        Raises:
            ConfigError: If a new token is needed and no credentials are set.
            AuthError: If the credential exchange fails.
        """
        with self._locked(deadline):
            state = self._state
            if state is not None and time.time() + REFRESH_MARGIN < state.expires_at:
                return state.token
            if state is not None:
                logger.info("Access token expiring, re-authenticating")
            return self._authenticate_locked(deadline)

    def authenticate(self, deadline: Deadline | None = None) -> Token:
        """Exchange the credentials for a new token unconditionally.

        Raises:
            ConfigError: If no credentials are set.
            AuthError: If the credential exchange fails.
        """
        with self._locked(deadline):
            return self._authenticate_locked(deadline)

    @contextmanager
    def _locked(self, deadline: Deadline | None) -> Iterator[None]:
        """Hold the token lock, waiting no longer than the deadline allows."""
        if deadline is None:
            acquired = self._lock.acquire()
        else:
            acquired = self._lock.acquire(timeout=deadline.remaining())
        if not acquired:
            msg = "deadline exceeded waiting for token refresh"
            raise AuthTransportError(msg)
        try:
            yield
        finally:
            self._lock.release()

    def _authenticate_locked(self, deadline: Deadline | None) -> Token:
        if self._credentials is None:
            msg = "credentials not set"
            raise ConfigError(msg)

        form = {
            "client_id": CLIENT_ID,
            "username": self._credentials.login,
            "password": self._credentials.password,
            "grant_type": "password",
        }
        try:
            timeout = resolve_timeout(deadline, self._http.timeout)
        except TransportError as exc:
            raise AuthTransportError(str(exc)) from exc

        start_time = time.time()
        try:
            response = self._http.client.post(
                AUTH_TOKEN_PATH,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=timeout,
            )
        except httpx.DecodingError as exc:
            msg = f"decode token response: {exc}"
            raise AuthDecodeError(msg) from exc
        except httpx.RequestError as exc:
            logger.exception("Auth request failed", auth_url=self._http.base_url)
            msg = f"auth request failed: {exc}"
            raise AuthTransportError(msg) from exc

        if response.status_code != httpx.codes.OK:
            body = response.text
            logger.error("Auth rejected", status_code=response.status_code)
            msg = f"auth failed with status {response.status_code}: {body}"
            raise AuthError(msg, status_code=response.status_code, body=body)

        try:
            token = Token.model_validate_json(response.content)
        except pydantic.ValidationError as exc:
            msg = f"decode token response: {exc}"
            raise AuthDecodeError(msg, status_code=response.status_code) from exc

        issued_at = time.time()
        self._state = _TokenState(token=token, expires_at=issued_at + token.expires_in)
        logger.info(
            "Authenticated",
            login=self._credentials.login,
            expires_in_seconds=token.expires_in,
            duration_seconds=round(issued_at - start_time, 3),
        )
        return token

    def close(self) -> None:
        self._http.close()
