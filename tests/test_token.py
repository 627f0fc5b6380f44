"""Tests for TokenManager refresh decisions and the credential exchange.

Refresh decisions are checked by counting requests that reach a fake auth
endpoint; the boundary of the one-minute refresh margin is pinned with a
patched clock.
"""

import threading
import time
import urllib.parse
from unittest.mock import patch

import httpx
import pytest

from s21_api_client import errors, token
from s21_api_client.deadline import Deadline

OLD_TOKEN = token.Token(access_token="old-token", token_type="Bearer", expires_in=3600)
FRESH_PAYLOAD = {"access_token": "fresh-token", "expires_in": 3600}


def _manager(server, credentials=None) -> token.TokenManager:
    return token.TokenManager(
        credentials=credentials,
        auth_url=server.auth_url,
        transport=server.transport(),
    )


# ---------------------------------------------------------------------------
# ensure_valid refresh decisions
# ---------------------------------------------------------------------------


def test_ensure_valid_without_token_authenticates_once(server, credentials):
    """With no token held, exactly one exchange happens before returning."""
    manager = _manager(server, credentials)

    result = manager.ensure_valid()

    assert len(server.auth_requests) == 1
    assert result.access_token == "fresh-token"
    assert manager.token is result


def test_ensure_valid_reuses_token_after_authenticating(server, credentials):
    """A second call right after authenticating does not exchange again."""
    manager = _manager(server, credentials)

    manager.ensure_valid()
    manager.ensure_valid()

    assert len(server.auth_requests) == 1


def test_ensure_valid_fresh_token_skips_auth(server, credentials):
    """A token expiring in more than a minute is returned as-is."""
    manager = _manager(server, credentials)
    manager.set_token(OLD_TOKEN, time.time() + 3600)

    result = manager.ensure_valid()

    assert result is OLD_TOKEN
    assert server.auth_requests == []


def test_ensure_valid_token_within_margin_is_replaced(server, credentials):
    """A token expiring within a minute triggers one exchange and is replaced."""
    manager = _manager(server, credentials)
    manager.set_token(OLD_TOKEN, time.time() + 30)

    result = manager.ensure_valid()

    assert len(server.auth_requests) == 1
    assert result is not OLD_TOKEN
    assert result.access_token == "fresh-token"
    assert result.refresh_token == "refresh"
    assert manager.expires_at > time.time() + 3500


def test_ensure_valid_expired_token_is_replaced(server, credentials):
    """An already expired token triggers exactly one exchange."""
    manager = _manager(server, credentials)
    manager.set_token(OLD_TOKEN, time.time() - 3600)

    manager.ensure_valid()

    assert len(server.auth_requests) == 1
    assert manager.token.access_token == "fresh-token"


@patch("s21_api_client.token.time")
def test_ensure_valid_refreshes_at_exact_margin(mock_time, server, credentials):
    """now + margin equal to the expiry already counts as expiring."""
    mock_time.time.return_value = 1000.0
    manager = _manager(server, credentials)
    manager.set_token(OLD_TOKEN, 1000.0 + token.REFRESH_MARGIN)

    manager.ensure_valid()

    assert len(server.auth_requests) == 1
    assert manager.expires_at == 1000.0 + 3600


@patch("s21_api_client.token.time")
def test_ensure_valid_keeps_token_just_outside_margin(mock_time, server, credentials):
    """A token expiring just over a minute from now is still valid."""
    mock_time.time.return_value = 1000.0
    manager = _manager(server, credentials)
    manager.set_token(OLD_TOKEN, 1000.0 + token.REFRESH_MARGIN + 0.5)

    assert manager.ensure_valid() is OLD_TOKEN
    assert server.auth_requests == []


# ---------------------------------------------------------------------------
# Credential exchange
# ---------------------------------------------------------------------------


def test_authenticate_posts_password_grant_form(server, credentials):
    """The exchange is a form-encoded POST to the realm token endpoint."""
    manager = _manager(server, credentials)

    manager.authenticate()

    request = server.auth_requests[0]
    assert request.method == "POST"
    assert str(request.url) == server.auth_url + token.AUTH_TOKEN_PATH
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    form = urllib.parse.parse_qs(request.content.decode())
    assert form == {
        "client_id": [token.CLIENT_ID],
        "username": ["jdoe@student.21-school.ru"],
        "password": ["s3cret&pass"],
        "grant_type": ["password"],
    }


def test_authenticate_always_exchanges(server, credentials):
    """authenticate() ignores a still-valid token."""
    manager = _manager(server, credentials)
    manager.set_token(OLD_TOKEN, time.time() + 3600)

    manager.authenticate()

    assert len(server.auth_requests) == 1
    assert manager.token.access_token == "fresh-token"


def test_authenticate_decodes_full_payload(server, credentials):
    """Every token field, including not-before-policy, is decoded."""
    result = _manager(server, credentials).authenticate()

    assert result.token_type == "Bearer"
    assert result.expires_in == 3600
    assert result.id_token == "id"
    assert result.session_state == "state"
    assert result.scope == "openid"


def test_authenticate_rejected_carries_status_and_body(make_server, credentials):
    """A non-200 answer raises AuthError with the status and body."""
    server = make_server(
        auth_response=httpx.Response(401, text='{"error":"invalid_grant"}'),
    )

    with pytest.raises(errors.AuthError, match="401") as exc_info:
        _manager(server, credentials).authenticate()

    assert exc_info.value.status_code == 401
    assert exc_info.value.body == '{"error":"invalid_grant"}'


def test_authenticate_rejected_with_empty_body(make_server, credentials):
    """An empty error body is still surfaced, as an empty string."""
    server = make_server(auth_response=httpx.Response(500))

    with pytest.raises(errors.AuthError) as exc_info:
        _manager(server, credentials).authenticate()

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == ""


def test_failed_refresh_keeps_previous_token(make_server, credentials):
    """A failed exchange does not touch the stored token."""
    server = make_server(auth_response=httpx.Response(503))
    manager = _manager(server, credentials)
    expiry = time.time() - 10
    manager.set_token(OLD_TOKEN, expiry)

    with pytest.raises(errors.AuthError):
        manager.ensure_valid()

    assert manager.token is OLD_TOKEN
    assert manager.expires_at == expiry


def test_authenticate_malformed_payload_is_decode_error(make_server, credentials):
    """A 200 with a non-token body raises AuthDecodeError."""
    server = make_server(auth_response=httpx.Response(200, text="<html>"))

    with pytest.raises(errors.AuthDecodeError) as exc_info:
        _manager(server, credentials).authenticate()

    assert isinstance(exc_info.value, errors.DecodeError)
    assert isinstance(exc_info.value, errors.AuthError)


def test_authenticate_connection_failure_is_transport_error(make_server, credentials):
    """Connection failures surface as both AuthError and TransportError."""
    server = make_server(auth_response=httpx.ConnectError("connection refused"))

    with pytest.raises(errors.AuthTransportError) as exc_info:
        _manager(server, credentials).authenticate()

    assert isinstance(exc_info.value, errors.TransportError)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_authenticate_respects_expired_deadline(server, credentials):
    """An exhausted deadline fails the refresh as an auth transport error."""
    with pytest.raises(errors.AuthTransportError, match="deadline") as exc_info:
        _manager(server, credentials).ensure_valid(Deadline(0))

    assert isinstance(exc_info.value, errors.AuthError)
    assert isinstance(exc_info.value, errors.TransportError)
    assert server.requests == []


def test_authenticate_bad_content_encoding_is_decode_error(make_server, credentials):
    """A body that cannot be content-decoded is an AuthDecodeError."""
    server = make_server(
        auth_response=lambda request: httpx.Response(
            200,
            headers={"Content-Encoding": "gzip"},
            stream=httpx.ByteStream(b"not gzip"),
        ),
    )

    with pytest.raises(errors.AuthDecodeError):
        _manager(server, credentials).authenticate()


def test_authenticate_other_request_errors_are_transport_errors(
    make_server,
    credentials,
):
    """Request errors beyond connect/timeout still map to AuthTransportError."""
    server = make_server(auth_response=httpx.TooManyRedirects("redirect loop"))

    with pytest.raises(errors.AuthTransportError) as exc_info:
        _manager(server, credentials).authenticate()

    assert isinstance(exc_info.value.__cause__, httpx.TooManyRedirects)


# ---------------------------------------------------------------------------
# Missing credentials
# ---------------------------------------------------------------------------


def test_ensure_valid_without_credentials_raises_config_error(server):
    """Needing a token with no credentials is a ConfigError, sent nowhere."""
    manager = _manager(server)

    with pytest.raises(errors.ConfigError):
        manager.ensure_valid()

    assert server.requests == []


def test_manual_token_usable_without_credentials(server):
    """A manually set valid token is served even without credentials."""
    manager = _manager(server)
    manager.set_token(OLD_TOKEN, time.time() + 3600)

    assert manager.ensure_valid() is OLD_TOKEN
    assert not manager.has_credentials


# ---------------------------------------------------------------------------
# Thread safety
# ---------------------------------------------------------------------------


def test_concurrent_ensure_valid_single_exchange(server, credentials):
    """Threads racing on an empty manager cause exactly one exchange."""
    manager = _manager(server, credentials)
    thread_count = 20
    barrier = threading.Barrier(thread_count)
    results = []

    def worker():
        barrier.wait()
        results.append(manager.ensure_valid())

    threads = [threading.Thread(target=worker) for _ in range(thread_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(server.auth_requests) == 1
    assert len({id(r) for r in results}) == 1


def test_password_not_in_repr(credentials):
    assert "s3cret" not in repr(credentials)


def test_lock_wait_is_bounded_by_deadline(make_server, credentials):
    """A caller stuck behind another thread's exchange gives up at its deadline."""
    exchange_started = threading.Event()
    release_exchange = threading.Event()

    def slow_auth(request):
        exchange_started.set()
        release_exchange.wait(5)
        return httpx.Response(200, json=FRESH_PAYLOAD)

    server = make_server(auth_response=slow_auth)
    manager = _manager(server, credentials)
    holder = threading.Thread(target=manager.ensure_valid)
    holder.start()
    try:
        assert exchange_started.wait(5)
        started = time.monotonic()
        with pytest.raises(errors.AuthTransportError, match="deadline"):
            manager.ensure_valid(Deadline(0.05))
        waited = time.monotonic() - started
    finally:
        release_exchange.set()
        holder.join()

    assert waited < 2.0
    assert len(server.auth_requests) == 1
    assert manager.token.access_token == "fresh-token"
