"""Shared fakes for the auth and GraphQL endpoints."""

import json

import httpx
import pytest

from s21_api_client import token

AUTH_URL = "https://auth.test"
BASE_URL = "https://platform.test"

TOKEN_PAYLOAD = {
    "access_token": "fresh-token",
    "token_type": "Bearer",
    "expires_in": 3600,
    "refresh_token": "refresh",
    "id_token": "id",
    "not-before-policy": 0,
    "session_state": "state",
    "scope": "openid",
}


class FakeServer:
    """Records requests and answers them by path.

    The auth path is answered with ``auth_response``, every other path with
    ``graphql_response``. Either may be an ``httpx.Response`` (copied per
    request), a callable taking the request, or an exception to raise.
    """

    auth_url = AUTH_URL
    base_url = BASE_URL

    def __init__(self, auth_response=None, graphql_response=None):
        if auth_response is None:
            auth_response = httpx.Response(200, json=TOKEN_PAYLOAD)
        if graphql_response is None:
            graphql_response = httpx.Response(200, json={"data": {}})
        self.auth_response = auth_response
        self.graphql_response = graphql_response
        self.requests: list[httpx.Request] = []

    @property
    def auth_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == token.AUTH_TOKEN_PATH]

    @property
    def graphql_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != token.AUTH_TOKEN_PATH]

    def last_graphql_body(self) -> dict:
        return json.loads(self.graphql_requests[-1].content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == token.AUTH_TOKEN_PATH:
            response = self.auth_response
        else:
            response = self.graphql_response
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return httpx.Response(
                response.status_code,
                headers=response.headers,
                content=response.content,
            )
        return response(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def make_server():
    """Factory for FakeServer instances with custom responses."""
    return FakeServer


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def credentials() -> token.Credentials:
    return token.Credentials(login="jdoe@student.21-school.ru", password="s3cret&pass")
