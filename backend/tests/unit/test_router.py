# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for the IntegrationRouter pipeline
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from portal.integrations.adapters.slack import SlackAdapter
from portal.integrations.mediator import NullMediator, RedisMediator
from portal.integrations.models import RateLimit, UniversalIntegrationRequest
from portal.integrations.oauth_state import OAuthStateSigner
from portal.integrations.router import IntegrationRouter


def request(tool="stub", action="send", params=None, user_id="user-1"):
    return UniversalIntegrationRequest(
        tool=tool,
        action=action,
        params=params if params is not None else {"text": "hi"},
        agent_id="agent-1",
        user_id=user_id,
    )


@pytest.fixture
def stub(stub_adapter_factory):
    return stub_adapter_factory("stub")


@pytest.fixture
def router(stub, fake_redis):
    return IntegrationRouter({"stub": stub}, RedisMediator(fake_redis))


async def connect(credential_store, tokens_factory, tool="stub", user_id="user-1"):
    await credential_store.put(user_id, tool, tokens_factory())


# =============================================================================
# Validation and authentication
# =============================================================================

@pytest.mark.asyncio
async def test_unknown_tool_lists_registered_tools(stub_adapter_factory):
    router = IntegrationRouter(
        {"slack": stub_adapter_factory("slack"), "gmail": stub_adapter_factory("gmail")},
        NullMediator(),
    )

    response = await router.execute_integration(request(tool="trello"))

    assert response.success is False
    assert "slack" in response.error
    assert "gmail" in response.error
    assert response.metadata.tool == "trello"
    assert response.metadata.cached is False


@pytest.mark.asyncio
async def test_disconnected_tool_never_invokes_adapter(router, stub):
    response = await router.execute_integration(request())

    assert response.success is False
    assert "Authentication required for stub" in response.error
    assert stub.calls == []


@pytest.mark.asyncio
async def test_expired_token_without_refresh_is_disconnected(router, stub, credential_store, tokens_factory):
    await credential_store.put("user-1", "stub", tokens_factory(expires_in=-10, refresh_token=None))

    response = await router.execute_integration(request())

    assert response.success is False
    assert "Authentication required" in response.error
    assert stub.calls == []


@pytest.mark.asyncio
async def test_unsupported_action(router, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory)

    response = await router.execute_integration(request(action="delete"))

    assert response.success is False
    assert "Action 'delete' not supported for stub" in response.error


# =============================================================================
# Rate limiting
# =============================================================================

@pytest.mark.asyncio
async def test_rate_limit_blocks_sixth_call_and_resets(router, stub, clock, credential_store, tokens_factory):
    """5 requests per 1m: the 6th is rejected, the window reset allows calls again"""
    await connect(credential_store, tokens_factory)

    for i in range(5):
        response = await router.execute_integration(request(params={"text": f"msg {i}"}))
        assert response.success is True

    response = await router.execute_integration(request(params={"text": "msg 5"}))
    assert response.success is False
    assert "Rate limit exceeded" in response.error
    assert len(stub.calls) == 5

    clock.advance(61)
    response = await router.execute_integration(request(params={"text": "msg 6"}))
    assert response.success is True
    assert len(stub.calls) == 6


@pytest.mark.asyncio
async def test_rate_limit_is_per_user(router, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory, user_id="user-1")
    await connect(credential_store, tokens_factory, user_id="user-2")

    for i in range(5):
        await router.execute_integration(request(params={"n": i}))

    response = await router.execute_integration(request(params={"n": "other"}, user_id="user-2"))
    assert response.success is True


@pytest.mark.asyncio
async def test_unavailable_store_allows_everything(stub, credential_store, tokens_factory):
    router = IntegrationRouter({"stub": stub}, NullMediator())
    await connect(credential_store, tokens_factory)

    for i in range(10):
        response = await router.execute_integration(request(params={"n": i}))
        assert response.success is True


@pytest.mark.asyncio
async def test_store_errors_fail_open(stub, fake_redis, credential_store, tokens_factory):
    fake_redis.fail = True
    router = IntegrationRouter({"stub": stub}, RedisMediator(fake_redis))
    await connect(credential_store, tokens_factory)

    response = await router.execute_integration(request())

    assert response.success is True
    assert len(stub.calls) == 1


# =============================================================================
# Caching
# =============================================================================

@pytest.mark.asyncio
async def test_identical_call_is_served_from_cache_until_ttl(router, stub, clock, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory)
    params = {"query": "status", "limit": 5}

    first = await router.execute_integration(request(action="fetch", params=params))
    second = await router.execute_integration(request(action="fetch", params={"limit": 5, "query": "status"}))

    assert first.metadata.cached is False
    assert second.metadata.cached is True
    assert second.data == first.data
    assert len(stub.calls) == 1

    clock.advance(301)
    third = await router.execute_integration(request(action="fetch", params=params))

    assert third.metadata.cached is False
    assert len(stub.calls) == 2


@pytest.mark.asyncio
async def test_cache_is_not_shared_across_users(router, stub, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory, user_id="user-1")
    await connect(credential_store, tokens_factory, user_id="user-2")

    await router.execute_integration(request(action="fetch", params={}, user_id="user-1"))
    response = await router.execute_integration(request(action="fetch", params={}, user_id="user-2"))

    assert response.metadata.cached is False
    assert len(stub.calls) == 2


@pytest.mark.asyncio
async def test_connection_actions_are_not_cached(router, stub, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory)

    first = await router.execute_integration(request(action="isConnected", params={}))
    second = await router.execute_integration(request(action="is_connected", params={}))

    assert first.data == {"connected": True}
    assert second.metadata.cached is False


# =============================================================================
# Dispatch and error normalization
# =============================================================================

@pytest.mark.asyncio
async def test_adapter_failure_is_reported(router, stub, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory)

    response = await router.execute_integration(request(params={"action": "nope"}))

    assert response.success is False
    assert "not supported by stub" in response.error


@pytest.mark.asyncio
async def test_router_never_raises(router, stub, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory)
    stub.error = RuntimeError("boom\nTraceback (most recent call last): ...")

    response = await router.execute_integration(request())

    assert response.success is False
    assert response.error == "Failed to execute send on stub: boom"


@pytest.mark.asyncio
async def test_connect_and_disconnect(router, credential_store, tokens_factory):
    await connect(credential_store, tokens_factory)

    connected = await router.execute_integration(request(action="connect", params={}))
    assert connected.success is True
    assert connected.data["connected"] is True
    assert connected.data["scopes"] == ["read", "write"]

    disconnected = await router.execute_integration(request(action="disconnect", params={}))
    assert disconnected.data == {"disconnected": True}
    assert await credential_store.get("user-1", "stub") is None


@pytest.mark.asyncio
async def test_slack_send_example(credential_store, tokens_factory, mock_client_factory, fake_redis):
    """Connected, under quota, uncached: one adapter call, success, not cached"""
    sent = []

    def handler(http_request: httpx.Request) -> httpx.Response:
        sent.append(http_request)
        return httpx.Response(200, json={"ok": True, "channel": "C123", "ts": "1700000000.000100"})

    slack = SlackAdapter(credential_store, http_client=mock_client_factory(handler), retry_backoff=0)
    router = IntegrationRouter({"slack": slack}, RedisMediator(fake_redis))
    await connect(credential_store, tokens_factory, tool="slack")

    response = await router.execute_integration(
        request(tool="slack", action="send", params={"channel": "#general", "text": "hi"})
    )

    assert response.success is True
    assert response.metadata.cached is False
    assert response.metadata.tool == "slack"
    assert len(sent) == 1
    assert sent[0].url.path == "/api/chat.postMessage"
    assert response.data["ts"] == "1700000000.000100"


# =============================================================================
# Preferred-tool routing
# =============================================================================

@pytest.fixture
def abc_router(stub_adapter_factory):
    adapters = {name: stub_adapter_factory(name) for name in ("A", "B", "C")}
    return IntegrationRouter(adapters, NullMediator()), adapters


@pytest.mark.asyncio
async def test_preferred_routes_to_first_connected(abc_router, credential_store, tokens_factory):
    router, adapters = abc_router
    await connect(credential_store, tokens_factory, tool="B")
    await connect(credential_store, tokens_factory, tool="C")

    response = await router.send_to_preferred("send", {"text": "hi"}, "agent-1", "user-1", ["A", "B"], ["C"])

    assert response.success is True
    assert response.metadata.tool == "B"
    assert adapters["A"].calls == []
    assert len(adapters["B"].calls) == 1
    assert adapters["C"].calls == []


@pytest.mark.asyncio
async def test_preferred_falls_back(abc_router, credential_store, tokens_factory):
    router, adapters = abc_router
    await connect(credential_store, tokens_factory, tool="C")

    response = await router.send_to_preferred("send", {"text": "hi"}, "agent-1", "user-1", ["A", "B"], ["C"])

    assert response.success is True
    assert response.metadata.tool == "C"


@pytest.mark.asyncio
async def test_preferred_none_connected_names_all_tools(abc_router):
    router, _ = abc_router

    response = await router.send_to_preferred("send", {"text": "hi"}, "agent-1", "user-1", ["A", "B"], ["C"])

    assert response.success is False
    assert response.metadata.tool == "none"
    assert "Please connect to one of: A, B, C" in response.error


# =============================================================================
# Status and authorization lifecycle
# =============================================================================

@pytest.mark.asyncio
async def test_integration_status(stub_adapter_factory, credential_store, tokens_factory):
    router = IntegrationRouter(
        {"slack": stub_adapter_factory("slack"), "gmail": stub_adapter_factory("gmail")},
        NullMediator(),
        credentials=credential_store,
    )
    await connect(credential_store, tokens_factory, tool="slack")

    statuses = {s.tool: s for s in await router.get_integration_status("user-1")}

    assert statuses["slack"].status == "connected"
    assert statuses["slack"].last_synced is not None
    assert statuses["slack"].capabilities.actions == ["send", "fetch"]
    assert statuses["gmail"].status == "disconnected"
    assert statuses["gmail"].last_synced is None

    only = await router.get_integration_status("user-1", "gmail")
    assert [s.tool for s in only] == ["gmail"]
    assert await router.get_integration_status("user-1", "trello") == []


@pytest.mark.asyncio
async def test_status_reports_error_when_check_fails(stub):
    stub.is_connected = AsyncMock(side_effect=OSError("disk gone"))
    router = IntegrationRouter({"stub": stub}, NullMediator())

    [status] = await router.get_integration_status("user-1")

    assert status.status == "error"
    assert status.capabilities.actions == []


def test_available_tools(router):
    [tool] = router.get_available_tools()
    assert tool.id == "stub"
    assert tool.rate_limit == RateLimit(requests=5, window="1m")


@pytest.fixture
def auth_manager(tokens_factory):
    manager = MagicMock()
    manager.get_integration = MagicMock(return_value=object())
    manager.generate_auth_url = MagicMock(side_effect=lambda tool, state: f"https://auth.example/{tool}?state={state}")
    manager.exchange_code_for_tokens = AsyncMock(return_value=tokens_factory())
    manager.refresh_access_token = AsyncMock(return_value=tokens_factory(expires_in=7200))
    manager.test_connection = AsyncMock(return_value=True)
    return manager


@pytest.fixture
def oauth_router(stub, auth_manager, credential_store):
    return IntegrationRouter(
        {"stub": stub},
        NullMediator(),
        auth_manager=auth_manager,
        credentials=credential_store,
        state_signer=OAuthStateSigner("secret"),
    )


@pytest.mark.asyncio
async def test_authorization_round_trip(oauth_router, auth_manager, credential_store):
    url = oauth_router.generate_auth_url("stub", "user-1")
    state = url.split("state=", 1)[1]

    status = await oauth_router.complete_authorization("stub", "code-123", state)

    assert status.connected is True
    auth_manager.exchange_code_for_tokens.assert_awaited_once_with("stub", "code-123")
    stored = await credential_store.get("user-1", "stub")
    assert stored.tokens.access_token == "access-1"


@pytest.mark.asyncio
async def test_authorization_rejects_forged_state(oauth_router, auth_manager):
    status = await oauth_router.complete_authorization("stub", "code-123", "forged.state")

    assert status.connected is False
    assert "signature" in status.error
    auth_manager.exchange_code_for_tokens.assert_not_awaited()


@pytest.mark.asyncio
async def test_authorization_exchange_failure(oauth_router, auth_manager):
    auth_manager.exchange_code_for_tokens.return_value = None
    state = OAuthStateSigner("secret").create("user-1", "stub")

    status = await oauth_router.complete_authorization("stub", "bad-code", state)

    assert status.connected is False
    assert status.error == "Token exchange failed"


@pytest.mark.asyncio
async def test_refresh_credentials(oauth_router, auth_manager, credential_store, tokens_factory):
    assert (await oauth_router.refresh_credentials("user-1", "stub")).error == "Not connected"

    await connect(credential_store, tokens_factory)
    status = await oauth_router.refresh_credentials("user-1", "stub")

    assert status.connected is True
    auth_manager.refresh_access_token.assert_awaited_once_with("stub", "refresh-1")


@pytest.mark.asyncio
async def test_check_health_uses_stored_token(oauth_router, auth_manager, credential_store, tokens_factory):
    assert await oauth_router.check_health("user-1", "stub") is False

    await connect(credential_store, tokens_factory)
    assert await oauth_router.check_health("user-1", "stub") is True
    auth_manager.test_connection.assert_awaited_once_with("stub", "access-1")
