# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Authorization Manager

Handles the OAuth 2.0 authorization-code flow for every supported tool:
authorize URLs, code exchange, token refresh and connectivity probes.

Nothing in this module raises to its caller. Failures are logged and
returned as None/False, leaving the authenticated decision to the caller.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from urllib.parse import urlencode

import httpx

from portal.core.config import IntegrationConfig
from portal.core.logging import get_service_logger
from portal.integrations.models import OAuthTokens

logger = get_service_logger("oauth")

NOTION_API_VERSION = "2022-06-28"

# One cheap authenticated identity call per tool
CONNECTION_PROBES: Dict[str, dict] = {
    "gmail": {"url": "https://gmail.googleapis.com/gmail/v1/users/me/profile"},
    "slack": {"url": "https://slack.com/api/auth.test", "check_ok_field": True},
    "notion": {
        "url": "https://api.notion.com/v1/users/me",
        "headers": {"Notion-Version": NOTION_API_VERSION},
    },
    "asana": {"url": "https://app.asana.com/api/1.0/users/me"},
}


class AuthorizationManager:
    """
    Manages OAuth 2.0 authorization for third-party tools.

    Built once at startup from the immutable IntegrationConfig set.
    """

    def __init__(
        self,
        integrations: Dict[str, IntegrationConfig],
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.integrations = dict(integrations)
        self.client = http_client or httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout
        logger.info(f"AuthorizationManager initialized for tools: {sorted(self.integrations)}")

    def get_integration(self, tool: str) -> Optional[IntegrationConfig]:
        return self.integrations.get(tool)

    def generate_auth_url(self, tool: str, state: Optional[str] = None) -> Optional[str]:
        """
        Build the provider authorize URL.

        Pure, no I/O. Returns None for unknown tools.
        """
        integration = self.integrations.get(tool)
        if integration is None:
            return None

        params = {
            "client_id": integration.client_id,
            "redirect_uri": integration.redirect_uri,
            "response_type": "code",
            "scope": " ".join(integration.scopes),
        }
        if state:
            params["state"] = state

        return f"{integration.authorize_url}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, tool: str, code: str) -> Optional[OAuthTokens]:
        """Exchange an authorization code for tokens; None on any failure."""
        integration = self.integrations.get(tool)
        if integration is None:
            logger.warning(f"Token exchange requested for unknown tool: {tool}")
            return None

        data = await self._token_request(integration, {
            "client_id": integration.client_id,
            "client_secret": integration.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": integration.redirect_uri,
        }, operation="exchange")
        if data is None:
            return None

        return self._tokens_from_response(data)

    async def refresh_access_token(self, tool: str, refresh_token: str) -> Optional[OAuthTokens]:
        """Refresh an access token; keeps the old refresh token if none is returned."""
        integration = self.integrations.get(tool)
        if integration is None:
            logger.warning(f"Token refresh requested for unknown tool: {tool}")
            return None

        data = await self._token_request(integration, {
            "client_id": integration.client_id,
            "client_secret": integration.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }, operation="refresh")
        if data is None:
            return None

        # Some providers don't return a new refresh token
        return self._tokens_from_response(data, fallback_refresh_token=refresh_token)

    async def test_connection(self, tool: str, access_token: str) -> bool:
        """
        Perform one cheap authenticated call.

        Used for health checks only; routing relies on stored connection
        state, not on live probes.
        """
        probe = CONNECTION_PROBES.get(tool)
        if probe is None:
            return False

        headers = {"Authorization": f"Bearer {access_token}", **probe.get("headers", {})}
        try:
            response = await self.client.get(probe["url"], headers=headers, timeout=self.timeout)
            if not response.is_success:
                logger.warning(f"Connection test failed for {tool}: {response.status_code}")
                return False
            if probe.get("check_ok_field"):
                body = response.json()
                return isinstance(body, dict) and body.get("ok") is True
            return True
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Connection test failed for {tool}: {e}")
            return False

    async def _token_request(
        self,
        integration: IntegrationConfig,
        form: Dict[str, str],
        operation: str,
    ) -> Optional[dict]:
        try:
            response = await self.client.post(
                integration.token_url,
                data=form,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"OAuth token {operation} error for {integration.tool}: {e}")
            return None

        if not response.is_success:
            logger.error(
                f"OAuth token {operation} failed for {integration.tool}: "
                f"{response.status_code} - {response.text}"
            )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.error(f"OAuth token {operation} for {integration.tool} returned non-JSON body")
            return None
        if not isinstance(data, dict):
            logger.error(f"OAuth token {operation} for {integration.tool} returned {type(data).__name__}, expected object")
            return None

        # Slack reports failures with HTTP 200 and ok=false
        if data.get("ok") is False or not data.get("access_token"):
            logger.error(
                f"OAuth token {operation} for {integration.tool} returned no access token: "
                f"{data.get('error', 'unknown error')}"
            )
            return None

        return data

    @staticmethod
    def _tokens_from_response(data: dict, fallback_refresh_token: Optional[str] = None) -> OAuthTokens:
        expires_in = data.get("expires_in")
        expires_at = None
        if expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))

        return OAuthTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or fallback_refresh_token,
            expires_at=expires_at,
            scope=data.get("scope"),
        )
