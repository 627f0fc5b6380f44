"""GraphQL transport for the 21-school platform API.

Executes one operation per call with a bearer token obtained from the
:class:`~s21_api_client.token.TokenManager`, and sorts every failure into
the client's error taxonomy in a fixed order: transport, HTTP status,
envelope decoding, GraphQL errors, then decoding of ``data``.
"""

import time
from typing import TypeVar, overload

import httpx
import pydantic
import structlog

from ..deadline import Deadline, resolve_timeout
from ..errors import DecodeError, GraphQLError, HTTPError, TransportError
from ..http import DEFAULT_TIMEOUT, ThreadLocalClient
from ..token import TokenManager
from .types import GraphQLEnvelope, GraphQLOperation

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://platform.21-school.ru"
GRAPHQL_PATH = "/services/graphql"

T = TypeVar("T", bound=pydantic.BaseModel)


class GraphQLTransport:
    """Executes GraphQL operations against the platform endpoint.

    Holds no mutable state of its own; token refreshes are delegated to the
    token manager. Thread-safe through thread-local httpx clients.
    """

    def __init__(
        self,
        tokens: TokenManager,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        school_id: str | None = None,
        user_role: str | None = None,
        edu_product_id: str | None = None,
        edu_org_unit_id: str | None = None,
        debug: bool = False,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the transport.

        Args:
            tokens: Token manager supplying bearer tokens.
            base_url: Platform base URL; the GraphQL path is appended.
            timeout: Default request timeout in seconds.
            school_id: Value for the ``schoolid`` header, omitted if unset.
            user_role: Value for the ``userrole`` header, omitted if unset.
            edu_product_id: Value for ``x-edu-product-id``, omitted if unset.
            edu_org_unit_id: Value for ``x-edu-org-unit-id``, omitted if unset.
            debug: Trace request and response details at debug level.
            transport: Optional httpx transport override.
        """
        self.tokens = tokens
        self._http = ThreadLocalClient(base_url, timeout=timeout, transport=transport)
        self._debug = debug

        self._context_headers: dict[str, str] = {}
        for header, value in (
            ("schoolid", school_id),
            ("userrole", user_role),
            ("x-edu-product-id", edu_product_id),
            ("x-edu-org-unit-id", edu_org_unit_id),
        ):
            if value:
                self._context_headers[header] = value

    @property
    def base_url(self) -> str:
        return self._http.base_url

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        self._http.close()
        self.tokens.close()

    def _headers(self, access_token: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
        }
        headers.update(self._context_headers)
        return headers

    @overload
    def execute(
        self,
        operation: GraphQLOperation,
        response_model: type[T],
        deadline: Deadline | None = None,
    ) -> T: ...

    @overload
    def execute(
        self,
        operation: GraphQLOperation,
        response_model: None = None,
        deadline: Deadline | None = None,
    ) -> None: ...

    def execute(self, operation, response_model=None, deadline=None):
        """Execute a GraphQL operation and decode its ``data`` field.

        Args:
            operation: The operation to send.
            response_model: Pydantic model the ``data`` field is validated
                into, or None to discard it.
            deadline: Optional deadline covering the token refresh and the
                request itself.

        Returns:
            The validated ``data`` payload, or None without a response model.

        Raises:
            ConfigError: If a token is needed and no credentials are set.
            AuthError: If refreshing the token fails.
            TransportError: If the endpoint cannot be reached in time.
            HTTPError: If the endpoint answers with a non-200 status.
            DecodeError: If the envelope or the data payload is malformed.
            GraphQLError: If the response carries any GraphQL errors.
        """
        token = self.tokens.ensure_valid(deadline)

        payload = operation.to_payload()
        start_time = time.time()
        logger.debug("Making GraphQL request", operation=operation.operation_name)
        if self._debug:
            logger.debug(
                "Request details",
                url=f"{self.base_url}{GRAPHQL_PATH}",
                body=payload,
                headers=sorted(self._context_headers),
            )

        try:
            timeout = resolve_timeout(deadline, self._http.timeout)
            response = self._http.client.post(
                GRAPHQL_PATH,
                json=payload,
                headers=self._headers(token.access_token),
                timeout=timeout,
            )
        except httpx.DecodingError as exc:
            msg = f"decode response: {exc}"
            raise DecodeError(msg) from exc
        except httpx.RequestError as exc:
            logger.exception(
                "GraphQL request failed",
                operation=operation.operation_name,
                duration_seconds=round(time.time() - start_time, 3),
            )
            msg = f"do request: {exc}"
            raise TransportError(msg) from exc

        logger.debug(
            "GraphQL request completed",
            operation=operation.operation_name,
            status_code=response.status_code,
            duration_seconds=round(time.time() - start_time, 3),
        )

        if response.status_code != httpx.codes.OK:
            if self._debug:
                logger.debug(
                    "Response details",
                    headers=dict(response.headers),
                    body_length=len(response.content),
                )
            raise HTTPError(response.status_code, response.text)

        try:
            envelope = GraphQLEnvelope.model_validate_json(response.content)
        except pydantic.ValidationError as exc:
            msg = f"decode response: {exc}"
            raise DecodeError(msg) from exc

        if envelope.errors:
            for error in envelope.errors:
                logger.error(
                    "GraphQL error response",
                    operation=operation.operation_name,
                    error_message=error.message,
                    path=error.path,
                )
            raise GraphQLError(envelope.errors)

        if response_model is None:
            return None

        try:
            return response_model.model_validate(envelope.data)
        except pydantic.ValidationError as exc:
            msg = f"unmarshal data: {exc}"
            raise DecodeError(msg) from exc
