# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for the authorization manager, signed OAuth state and the
provider configuration loader
"""

import json
import time
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from portal.core.config import Config, IntegrationConfig, load_integration_configs
from portal.core.errors import ValidationError
from portal.integrations.auth import AuthorizationManager
from portal.integrations.oauth_state import OAuthStateSigner


def integration(tool: str = "slack") -> IntegrationConfig:
    return IntegrationConfig(
        tool=tool,
        name=tool.title(),
        description=f"{tool} integration",
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri=f"http://localhost:8000/integrations/oauth/{tool}/callback",
        authorize_url=f"https://auth.example/{tool}/authorize",
        token_url=f"https://auth.example/{tool}/token",
        scopes=["chat:write", "users:read"],
    )


def manager(handler, *tools: str) -> AuthorizationManager:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AuthorizationManager({t: integration(t) for t in tools or ("slack",)}, http_client=client)


def unused(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


# =============================================================================
# Authorize URL
# =============================================================================

def test_generate_auth_url():
    url = manager(unused).generate_auth_url("slack", state="abc")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://auth.example/slack/authorize"
    assert query["client_id"] == ["client-id"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["chat:write users:read"]
    assert query["state"] == ["abc"]


def test_generate_auth_url_unknown_tool():
    assert manager(unused).generate_auth_url("jira") is None


# =============================================================================
# Token exchange and refresh
# =============================================================================

@pytest.mark.asyncio
async def test_exchange_code_for_tokens():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(parse_qs(request.content.decode()))
        return httpx.Response(200, json={
            "access_token": "xoxb-1",
            "refresh_token": "r-1",
            "expires_in": 3600,
            "scope": "chat:write",
        })

    tokens = await manager(handler).exchange_code_for_tokens("slack", "code-1")

    assert tokens.access_token == "xoxb-1"
    assert tokens.refresh_token == "r-1"
    assert tokens.expires_at is not None
    assert tokens.is_expired is False
    assert seen[0]["grant_type"] == ["authorization_code"]
    assert seen[0]["code"] == ["code-1"]


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(400, json={"error": "invalid_grant"}),
    httpx.Response(200, json={"ok": False, "error": "invalid_code"}),
    httpx.Response(200, text="<html>oops</html>"),
    httpx.Response(200, json=["access_token", "a"]),
    httpx.Response(200, json="a"),
])
async def test_exchange_failures_return_none(response):
    tokens = await manager(lambda request: response).exchange_code_for_tokens("slack", "bad")
    assert tokens is None


@pytest.mark.asyncio
async def test_exchange_network_error_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down")

    assert await manager(handler).exchange_code_for_tokens("slack", "code") is None


@pytest.mark.asyncio
async def test_exchange_unknown_tool():
    assert await manager(unused).exchange_code_for_tokens("jira", "code") is None


@pytest.mark.asyncio
async def test_refresh_keeps_old_refresh_token():
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["r-old"]
        return httpx.Response(200, json={"access_token": "new-access", "expires_in": 60})

    tokens = await manager(handler, "asana").refresh_access_token("asana", "r-old")

    assert tokens.access_token == "new-access"
    assert tokens.refresh_token == "r-old"


@pytest.mark.asyncio
async def test_refresh_prefers_rotated_refresh_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "a", "refresh_token": "r-new"})

    tokens = await manager(handler).refresh_access_token("slack", "r-old")
    assert tokens.refresh_token == "r-new"
    assert tokens.expires_at is None


@pytest.mark.asyncio
async def test_refresh_with_non_object_body_returns_none():
    refreshed = await manager(lambda request: httpx.Response(200, json=[])).refresh_access_token("slack", "r-old")
    assert refreshed is None


# =============================================================================
# Connection probes
# =============================================================================

@pytest.mark.asyncio
async def test_connection_probe_checks_slack_ok_field():
    ok = manager(lambda request: httpx.Response(200, json={"ok": True}))
    not_ok = manager(lambda request: httpx.Response(200, json={"ok": False, "error": "invalid_auth"}))

    assert await ok.test_connection("slack", "token") is True
    assert await not_ok.test_connection("slack", "token") is False


@pytest.mark.asyncio
async def test_connection_probe_sends_notion_version():
    headers = {}

    def handler(request: httpx.Request) -> httpx.Response:
        headers.update(request.headers)
        return httpx.Response(200, json={"object": "user"})

    assert await manager(handler, "notion").test_connection("notion", "token") is True
    assert headers["notion-version"] == "2022-06-28"
    assert headers["authorization"] == "Bearer token"


@pytest.mark.asyncio
async def test_connection_probe_failures():
    unauthorized = manager(lambda request: httpx.Response(401, json={}), "gmail")
    assert await unauthorized.test_connection("gmail", "token") is False
    assert await unauthorized.test_connection("jira", "token") is False

    listed = manager(lambda request: httpx.Response(200, json=[{"ok": True}]))
    assert await listed.test_connection("slack", "token") is False


# =============================================================================
# Signed state
# =============================================================================

def test_state_round_trip():
    signer = OAuthStateSigner("secret")
    state = signer.create("user-1", "gmail")
    assert signer.verify(state, "gmail") == "user-1"


def test_state_signed_with_other_secret_is_rejected():
    state = OAuthStateSigner("secret-a").create("user-1", "gmail")
    with pytest.raises(ValidationError, match="signature"):
        OAuthStateSigner("secret-b").verify(state, "gmail")


def test_state_for_other_tool_is_rejected():
    signer = OAuthStateSigner("secret")
    state = signer.create("user-1", "gmail")
    with pytest.raises(ValidationError, match="not issued for slack"):
        signer.verify(state, "slack")


def test_tampered_state_payload_is_rejected():
    signer = OAuthStateSigner("secret")
    payload, signature = signer.create("user-1", "gmail").split(".")
    other_payload = signer.create("user-2", "gmail").split(".")[0]

    with pytest.raises(ValidationError):
        signer.verify(f"{other_payload}.{signature}", "gmail")
    assert payload != other_payload


def test_expired_state_is_rejected():
    signer = OAuthStateSigner("secret", ttl=600)
    state = signer.create("user-1", "gmail")

    with patch("portal.integrations.oauth_state.time.time", return_value=time.time() + 601):
        with pytest.raises(ValidationError, match="expired"):
            signer.verify(state, "gmail")


@pytest.mark.parametrize("state", ["", "no-dot-here", None])
def test_malformed_state_is_rejected(state):
    with pytest.raises(ValidationError):
        OAuthStateSigner("secret").verify(state, "gmail")


# =============================================================================
# Provider configuration
# =============================================================================

def test_only_tools_with_client_credentials_are_configured(monkeypatch):
    for prefix in ("GOOGLE", "SLACK", "NOTION", "ASANA"):
        monkeypatch.delenv(f"{prefix}_CLIENT_ID", raising=False)
        monkeypatch.delenv(f"{prefix}_CLIENT_SECRET", raising=False)
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "gid")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "gsecret")
    monkeypatch.setenv("SLACK_CLIENT_ID", "sid")

    integrations = load_integration_configs(Config(app_url="https://portal.example/"))

    assert set(integrations) == {"gmail"}
    gmail = integrations["gmail"]
    assert gmail.client_id == "gid"
    assert gmail.redirect_uri == "https://portal.example/integrations/oauth/gmail/callback"
    assert json.dumps(gmail.scopes)
