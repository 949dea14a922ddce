# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Integration Router

Single entry point for agent tool calls. Every request runs the same
pipeline:

    validate tool -> check auth -> check rate limit -> check cache
        -> dispatch -> cache result -> update rate limit -> respond

The router never raises to its caller. Every outcome, internal errors
included, is normalized into a UniversalIntegrationResponse.
"""

import time
from typing import Any, Dict, Iterable, List, Optional

from portal.core.errors import (
    AuthenticationRequiredError,
    PortalError,
    RateLimitExceededError,
    UnsupportedActionError,
    UnsupportedToolError,
    ValidationError,
    sanitize_error_for_user,
)
from portal.core.logging import get_service_logger, log_event
from portal.integrations.adapters.base import BaseAdapter
from portal.integrations.auth import AuthorizationManager
from portal.integrations.credentials import CredentialStore
from portal.integrations.mediator import NullMediator, RateCacheMediator
from portal.integrations.models import (
    AdapterResult,
    AuthStatus,
    IntegrationStatus,
    ResponseMetadata,
    StatusCapabilities,
    ToolCapabilities,
    UniversalIntegrationRequest,
    UniversalIntegrationResponse,
)
from portal.integrations.oauth_state import OAuthStateSigner

logger = get_service_logger("router")

ACTION_ALIASES = {"is_connected": "isConnected"}
CONNECTION_ACTIONS = {"connect", "disconnect", "isConnected"}
SUPPORTED_ACTIONS = {"send", "fetch"} | CONNECTION_ACTIONS


class IntegrationRouter:
    """
    Routes agent tool calls to adapters.

    Built once at startup with its collaborators and passed by reference
    to whoever needs it (API routes, workflow executor).
    """

    def __init__(
        self,
        adapters: Dict[str, BaseAdapter],
        mediator: Optional[RateCacheMediator] = None,
        auth_manager: Optional[AuthorizationManager] = None,
        credentials: Optional[CredentialStore] = None,
        state_signer: Optional[OAuthStateSigner] = None,
        cache_ttl: int = 300,
    ):
        self.adapters = dict(adapters)
        self.mediator = mediator or NullMediator()
        self.auth_manager = auth_manager
        self.credentials = credentials
        self.state_signer = state_signer
        self.cache_ttl = cache_ttl
        logger.info(f"IntegrationRouter initialized with {len(self.adapters)} adapters: {list(self.adapters)}")

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def execute_integration(self, request: UniversalIntegrationRequest) -> UniversalIntegrationResponse:
        """Run one tool call through the full pipeline."""
        start_time = time.monotonic()
        tool, action = request.tool, request.action
        cached = False

        try:
            data, error, success, cached = await self._execute(request)
        except PortalError as e:
            data, error, success = None, e.message, False
        except Exception as e:
            logger.error(f"Error executing {action} on {tool}: {e}", exc_info=True)
            data, success = None, False
            error = f"Failed to execute {action} on {tool}: {sanitize_error_for_user(e)}"

        execution_time = int((time.monotonic() - start_time) * 1000)
        log_event(
            logger,
            "integration_call",
            level="INFO" if success else "WARNING",
            tool=tool,
            action=action,
            user_id=request.user_id,
            agent_id=request.agent_id,
            success=success,
            cached=cached,
            execution_time=execution_time,
            error=error,
        )
        return UniversalIntegrationResponse(
            success=success,
            data=data,
            error=error,
            metadata=ResponseMetadata(
                tool=tool,
                action=action,
                execution_time=execution_time,
                cached=cached,
            ),
        )

    async def _execute(self, request: UniversalIntegrationRequest):
        tool, action, user_id = request.tool, request.action, request.user_id
        params = request.params or {}

        # 1. Validate tool
        adapter = self.adapters.get(tool)
        if adapter is None:
            raise UnsupportedToolError(tool, self.adapters.keys())

        # 2. Authentication
        if not await self._is_connected(adapter, user_id):
            raise AuthenticationRequiredError(tool)

        # 3. Rate limit
        capabilities = adapter.capabilities()
        rate_limit = capabilities.rate_limit
        count = await self.mediator.get_request_count(user_id, tool)
        if count >= rate_limit.requests:
            raise RateLimitExceededError(tool, rate_limit.requests, rate_limit.window)

        action = ACTION_ALIASES.get(action, action)
        cacheable = action not in CONNECTION_ACTIONS

        # 4. Cache
        if cacheable:
            cached_data = await self.mediator.get_cached(user_id, tool, action, params)
            if cached_data is not None:
                return cached_data, None, True, True

        # 5. Dispatch
        result = await self._dispatch(adapter, action, request.agent_id or "", params, user_id)

        # 6. Cache successful responses
        if cacheable and result.success and result.data:
            await self.mediator.set_cached(user_id, tool, action, params, result.data, self.cache_ttl)

        # 7. Count the call against the window
        await self.mediator.record_request(user_id, tool, rate_limit.window_seconds)

        error = result.error.message if result.error else None
        return result.data, error, result.success, False

    async def _dispatch(
        self,
        adapter: BaseAdapter,
        action: str,
        agent_id: str,
        params: Dict[str, Any],
        user_id: str,
    ) -> AdapterResult:
        if action == "send":
            return await adapter.send(agent_id, params, user_id)
        if action == "fetch":
            return await adapter.fetch(agent_id, params, user_id)
        if action == "connect":
            status = await adapter.connect(user_id)
            if status.connected:
                return AdapterResult.ok("Connected successfully", data=status.to_wire())
            return AdapterResult.fail(
                "CONNECTION_ERROR", status.error or "Connection failed", details=status.to_wire()
            )
        if action == "disconnect":
            await adapter.disconnect(user_id)
            return AdapterResult.ok("Disconnected successfully", data={"disconnected": True})
        if action == "isConnected":
            connected = await adapter.is_connected(user_id)
            return AdapterResult.ok(
                f"Connection status: {'connected' if connected else 'disconnected'}",
                data={"connected": connected},
            )
        raise UnsupportedActionError(action, adapter.tool_id)

    async def _is_connected(self, adapter: BaseAdapter, user_id: str) -> bool:
        try:
            return await adapter.is_connected(user_id)
        except Exception as e:
            logger.error(f"Auth check failed for {adapter.tool_id}: {e}")
            return False

    # =========================================================================
    # Discovery
    # =========================================================================

    async def get_integration_status(self, user_id: str, tool: Optional[str] = None) -> List[IntegrationStatus]:
        """Derived per-tool status. Unknown tools are skipped."""
        tools = [tool] if tool else list(self.adapters)
        statuses: List[IntegrationStatus] = []

        for tool_id in tools:
            adapter = self.adapters.get(tool_id)
            if adapter is None:
                continue

            try:
                connected = await adapter.is_connected(user_id)
                capabilities = adapter.capabilities()
                last_synced = None
                if self.credentials is not None:
                    credential = await self.credentials.get(user_id, tool_id)
                    if credential is not None:
                        last_synced = credential.updated_at

                statuses.append(IntegrationStatus(
                    tool=tool_id,
                    name=capabilities.name,
                    status="connected" if connected else "disconnected",
                    last_synced=last_synced,
                    capabilities=StatusCapabilities(
                        actions=[a.name for a in capabilities.actions],
                        rate_limit=capabilities.rate_limit,
                    ),
                ))
            except Exception as e:
                logger.error(f"Status check failed for {tool_id}: {e}")
                statuses.append(IntegrationStatus(
                    tool=tool_id,
                    name=tool_id,
                    status="error",
                    capabilities=StatusCapabilities(actions=[]),
                ))

        return statuses

    def get_available_tools(self) -> List[ToolCapabilities]:
        return [adapter.capabilities() for adapter in self.adapters.values()]

    # =========================================================================
    # Preferred-tool routing
    # =========================================================================

    async def send_to_preferred(
        self,
        action: str,
        params: Dict[str, Any],
        agent_id: str,
        user_id: str,
        preferred_tools: Iterable[str] = (),
        fallback_tools: Iterable[str] = (),
    ) -> UniversalIntegrationResponse:
        """
        Execute on the first connected tool, preferred before fallback.

        Unregistered tools are skipped. When nothing is connected the
        response names every tool that was tried.
        """
        start_time = time.monotonic()
        candidates = list(dict.fromkeys([*preferred_tools, *fallback_tools]))

        for tool in candidates:
            adapter = self.adapters.get(tool)
            if adapter is None:
                continue
            if await self._is_connected(adapter, user_id):
                logger.info(f"Routing {action} to preferred tool {tool}", extra={"agent_id": agent_id})
                return await self.execute_integration(UniversalIntegrationRequest(
                    tool=tool,
                    action=action,
                    params=params,
                    agent_id=agent_id,
                    user_id=user_id,
                ))

        return UniversalIntegrationResponse(
            success=False,
            error=(
                f"No connected tools available for action '{action}'. "
                f"Please connect to one of: {', '.join(candidates)}"
            ),
            metadata=ResponseMetadata(
                tool="none",
                action=action,
                execution_time=int((time.monotonic() - start_time) * 1000),
                cached=False,
            ),
        )

    # =========================================================================
    # Authorization lifecycle
    # =========================================================================

    def generate_auth_url(self, tool: str, user_id: str) -> Optional[str]:
        """Authorize URL carrying a signed state bound to (user, tool)."""
        if self.auth_manager is None or self.state_signer is None:
            logger.warning("Authorization requested but OAuth is not configured")
            return None
        if self.auth_manager.get_integration(tool) is None:
            return None
        state = self.state_signer.create(user_id, tool)
        return self.auth_manager.generate_auth_url(tool, state)

    async def complete_authorization(self, tool: str, code: str, state: str) -> AuthStatus:
        """Verify the callback state, exchange the code and store the tokens."""
        if self.auth_manager is None or self.state_signer is None or self.credentials is None:
            return AuthStatus(connected=False, error="OAuth is not configured")

        try:
            user_id = self.state_signer.verify(state, tool)
        except ValidationError as e:
            logger.warning(f"Rejected OAuth callback for {tool}: {e.message}")
            return AuthStatus(connected=False, error=e.message)

        tokens = await self.auth_manager.exchange_code_for_tokens(tool, code)
        if tokens is None:
            return AuthStatus(connected=False, error="Token exchange failed")

        await self.credentials.put(user_id, tool, tokens)
        logger.info(f"{tool} connected for user: {user_id}")
        return AuthStatus(
            connected=True,
            expires_at=tokens.expires_at,
            scopes=tokens.scope.split() if tokens.scope else [],
        )

    async def refresh_credentials(self, user_id: str, tool: str) -> AuthStatus:
        """Caller-triggered token refresh; nothing renews tokens in the background."""
        if self.auth_manager is None or self.credentials is None:
            return AuthStatus(connected=False, error="OAuth is not configured")

        credential = await self.credentials.get(user_id, tool)
        if credential is None:
            return AuthStatus(connected=False, error="Not connected")
        if not credential.tokens.refresh_token:
            return AuthStatus(
                connected=False,
                expires_at=credential.tokens.expires_at,
                error="No refresh token available",
            )

        tokens = await self.auth_manager.refresh_access_token(tool, credential.tokens.refresh_token)
        if tokens is None:
            return AuthStatus(connected=False, error="Token refresh failed")

        await self.credentials.put(user_id, tool, tokens)
        logger.info(f"{tool} token refreshed for user: {user_id}")
        return AuthStatus(
            connected=True,
            expires_at=tokens.expires_at,
            scopes=tokens.scope.split() if tokens.scope else [],
        )

    async def check_health(self, user_id: str, tool: str) -> bool:
        """Live connectivity probe with the stored token."""
        if self.auth_manager is None or self.credentials is None:
            return False
        credential = await self.credentials.get(user_id, tool)
        if credential is None:
            return False
        return await self.auth_manager.test_connection(tool, credential.tokens.access_token)
