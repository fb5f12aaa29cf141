"""Tests for the identity provider client and its error mapping."""

from __future__ import annotations

import httpx
import pytest

from dislink.errors import AuthInvalid, InvalidCredentials, InvalidInput, Transient
from dislink.models.auth import IdentityAction
from dislink.services.identity import IdentityProviderClient, raise_for_provider_status

pytestmark = pytest.mark.asyncio(loop_scope="session")


@pytest.fixture
def mock_provider(monkeypatch):
    """Route the client's httpx calls through a handler the test sets."""
    state = {"handler": lambda request: httpx.Response(200, json={})}
    original = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        transport = httpx.MockTransport(lambda request: state["handler"](request))
        return original(*args, transport=transport, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return state


@pytest.fixture
def client():
    return IdentityProviderClient(base_url="http://identity.test/", api_key="anon-key", timeout=1.0)


@pytest.mark.parametrize(
    ("status_code", "error"),
    [
        (400, InvalidCredentials),
        (401, InvalidCredentials),
        (403, InvalidCredentials),
        (409, InvalidInput),
        (422, InvalidInput),
        (429, Transient),
        (500, Transient),
        (503, Transient),
    ],
)
async def test_provider_status_mapping(status_code, error):
    with pytest.raises(error):
        raise_for_provider_status(httpx.Response(status_code))


async def test_success_status_passes():
    raise_for_provider_status(httpx.Response(200))
    raise_for_provider_status(httpx.Response(201))


async def test_credential_errors_are_auth_invalid():
    assert issubclass(InvalidCredentials, AuthInvalid)
    assert InvalidCredentials().error_code == "invalid_credentials"


async def test_forward_posts_to_action_path(client, mock_provider):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["apikey"] = request.headers.get("apikey")
        seen["body"] = request.content
        return httpx.Response(200, json={"ok": True})

    mock_provider["handler"] = handler

    result = await client.forward(IdentityAction.RESET_PASSWORD, {"email": "sam@example.com"})

    assert result == {"ok": True}
    assert seen["path"] == "/reset_password"
    assert seen["apikey"] == "anon-key"
    assert b"sam@example.com" in seen["body"]


async def test_forward_rejected_credentials(client, mock_provider):
    mock_provider["handler"] = lambda request: httpx.Response(400, json={"error": "invalid_grant"})

    with pytest.raises(InvalidCredentials):
        await client.forward(IdentityAction.LOGIN, {"email": "sam@example.com", "password": "wrong"})


async def test_transport_error_is_transient(client, mock_provider):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    mock_provider["handler"] = handler

    with pytest.raises(Transient):
        await client.refresh("refresh-token")


async def test_non_json_body_is_transient(client, mock_provider):
    mock_provider["handler"] = lambda request: httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(Transient):
        await client.refresh("refresh-token")


async def test_refresh_posts_token(client, mock_provider):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = request.content
        return httpx.Response(200, json={"access_token": "a"})

    mock_provider["handler"] = handler

    await client.refresh("refresh-token")

    assert seen["path"] == "/refresh"
    assert b"refresh-token" in seen["body"]
