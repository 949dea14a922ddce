# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Base adapter for third-party tools.

Every adapter implements the same action contract (connect, disconnect,
is_connected, send, fetch) and exposes a static capability descriptor.
Subclasses only declare their sub-operations and API calls; the shared
plumbing (token lookup, sub-operation dispatch, error translation) lives
here.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from portal.core.errors import UpstreamProviderError
from portal.core.logging import get_service_logger
from portal.integrations.credentials import CredentialStore
from portal.integrations.models import AdapterResult, AuthStatus, ToolCapabilities
from portal.integrations.transport import request_with_retry

logger = get_service_logger("adapters")

Operation = Callable[[str, Dict[str, Any]], Awaitable[AdapterResult]]


class BaseAdapter(ABC):
    """
    Abstract base class for tool adapters.

    Subclasses set ``tool_id``, ``default_send``/``default_fetch`` and
    register their operations in ``send_operations``/``fetch_operations``.
    The sub-operation is picked with ``params["action"]``.
    """

    tool_id: str = ""
    default_send: str = ""
    default_fetch: str = ""

    def __init__(
        self,
        credentials: CredentialStore,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
    ):
        self.credentials = credentials
        self.client = http_client or httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

    # -- Descriptor --------------------------------------------------------

    @abstractmethod
    def capabilities(self) -> ToolCapabilities:
        """Static capability descriptor."""

    @property
    @abstractmethod
    def send_operations(self) -> Dict[str, Operation]:
        ...

    @property
    @abstractmethod
    def fetch_operations(self) -> Dict[str, Operation]:
        ...

    # -- Connection --------------------------------------------------------

    async def is_connected(self, user_id: str) -> bool:
        """Token present and not obviously invalid."""
        credential = await self.credentials.get(user_id, self.tool_id)
        if credential is None:
            return False
        tokens = credential.tokens
        # An expired token still counts while it can be refreshed
        return not tokens.is_expired or bool(tokens.refresh_token)

    async def connect(self, user_id: str) -> AuthStatus:
        try:
            credential = await self.credentials.get(user_id, self.tool_id)
        except (OSError, ValueError) as e:
            logger.error(f"Error connecting to {self.tool_id}: {e}")
            return AuthStatus(connected=False, error=str(e))

        if credential is None:
            return AuthStatus(connected=False, error="Not connected")

        tokens = credential.tokens
        if tokens.is_expired and not tokens.refresh_token:
            return AuthStatus(connected=False, expires_at=tokens.expires_at, error="Token expired")

        return AuthStatus(
            connected=True,
            expires_at=tokens.expires_at,
            scopes=tokens.scope.split() if tokens.scope else [],
        )

    async def disconnect(self, user_id: str) -> None:
        await self.credentials.delete(user_id, self.tool_id)
        logger.info(f"{self.tool_id} disconnected for user: {user_id}")

    # -- Actions -----------------------------------------------------------

    async def send(self, agent_id: str, params: Dict[str, Any], user_id: str) -> AdapterResult:
        """Write operation (post a message, create a page, ...)."""
        return await self._run("send", self.send_operations, self.default_send, agent_id, params, user_id)

    async def fetch(self, agent_id: str, params: Dict[str, Any], user_id: str) -> AdapterResult:
        """Read operation (list channels, search pages, ...)."""
        return await self._run("fetch", self.fetch_operations, self.default_fetch, agent_id, params, user_id)

    async def _run(
        self,
        kind: str,
        operations: Dict[str, Operation],
        default: str,
        agent_id: str,
        params: Dict[str, Any],
        user_id: str,
    ) -> AdapterResult:
        params = dict(params or {})
        operation_name = params.pop("action", None) or default
        operation = operations.get(operation_name)
        if operation is None:
            return AdapterResult.fail(
                "UNKNOWN_ACTION",
                f"The action {operation_name} is not supported by {self.tool_id} {kind}",
            )

        credential = await self.credentials.get(user_id, self.tool_id)
        if credential is None:
            return AdapterResult.fail(
                "NOT_CONNECTED",
                f"Please connect {self.tool_id} before calling {operation_name}",
            )

        logger.debug(
            f"Calling {self.tool_id}.{operation_name}",
            extra={"agent_id": agent_id, "user_id": user_id},
        )
        try:
            return await operation(credential.tokens.access_token, params)
        except KeyError as e:
            return AdapterResult.fail(
                "MISSING_PARAMETER",
                f"{self.tool_id} {operation_name} requires parameter {e}",
            )
        except (UpstreamProviderError, httpx.HTTPError) as e:
            return self.handle_api_error(e)

    # -- Helpers -----------------------------------------------------------

    def auth_headers(self, access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def request(self, method: str, url: str, access_token: str, **kwargs: Any) -> Any:
        headers = {**self.auth_headers(access_token), **kwargs.pop("headers", {})}
        response = await request_with_retry(
            self.client,
            method,
            url,
            tool=self.tool_id,
            max_retries=self.max_retries,
            backoff=self.retry_backoff,
            timeout=self.timeout,
            headers=headers,
            **kwargs,
        )
        if not response.content:
            return {}
        return response.json()

    def handle_api_error(self, error: Exception) -> AdapterResult:
        """Translate a provider/transport failure into the uniform result."""
        logger.error(f"{self.tool_id} API error: {error}")

        if isinstance(error, UpstreamProviderError):
            return AdapterResult.fail(
                str(error.status),
                f"{self.tool_id} API error: {error.message}",
                details=error.body,
            )
        return AdapterResult.fail("500", f"{self.tool_id} API error: {error}")

    async def close(self) -> None:
        await self.client.aclose()
