# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Integration Models

Pydantic models for the integration layer: OAuth tokens, capability
descriptors, the uniform adapter result, and the router's wire contract.
Attributes are snake_case; JSON uses the camelCase names callers expect.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# OAUTH
# =============================================================================

class OAuthTokens(WireModel):
    """Tokens held for one (user, tool)."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires_at


class StoredCredential(WireModel):
    """Tokens plus bookkeeping kept by the credential store."""
    user_id: str
    tool: str
    tokens: OAuthTokens
    updated_at: datetime


class AuthStatus(WireModel):
    """Result of an adapter connect()."""
    connected: bool
    expires_at: Optional[datetime] = None
    error: Optional[str] = None
    scopes: Optional[List[str]] = None


# =============================================================================
# CAPABILITIES
# =============================================================================

_WINDOW_PATTERN = re.compile(r"^(\d+)([smhd])$")
_WINDOW_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_time_window(window: str) -> int:
    """Convert '30s', '1m', '1h', '1d' into seconds (60 when unparseable)."""
    match = _WINDOW_PATTERN.match(window or "")
    if not match:
        return 60
    value, unit = match.groups()
    return int(value) * _WINDOW_UNITS[unit]


class RateLimit(WireModel):
    requests: int
    window: str

    @property
    def window_seconds(self) -> int:
        return parse_time_window(self.window)


class ToolAction(WireModel):
    name: str
    description: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolCapabilities(WireModel):
    """Static descriptor for one tool. Never mutated at runtime."""
    id: str
    name: str
    description: str
    actions: List[ToolAction] = Field(default_factory=list)
    rate_limit: RateLimit
    requires_auth: bool = True


class StatusCapabilities(WireModel):
    actions: List[str] = Field(default_factory=list)
    rate_limit: Optional[RateLimit] = None


class IntegrationStatus(WireModel):
    """Derived per-tool status; computed on demand, never stored."""
    tool: str
    name: str
    status: Literal["connected", "disconnected", "error"]
    last_synced: Optional[datetime] = None
    capabilities: StatusCapabilities


# =============================================================================
# ADAPTER RESULT
# =============================================================================

class AdapterError(WireModel):
    code: str
    message: str
    details: Any = None


class AdapterResult(WireModel):
    """Uniform result shape returned by every adapter action."""
    success: bool
    message: str
    data: Any = None
    error: Optional[AdapterError] = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "AdapterResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, code: str, message: str, details: Any = None) -> "AdapterResult":
        return cls(
            success=False,
            message=message,
            error=AdapterError(code=code, message=message, details=details),
        )


# =============================================================================
# ROUTER WIRE CONTRACT
# =============================================================================

class UniversalIntegrationRequest(WireModel):
    tool: str
    action: str
    params: Dict[str, Any] = Field(default_factory=dict)
    agent_id: Optional[str] = None
    user_id: str


class ResponseMetadata(WireModel):
    tool: str
    action: str
    execution_time: int  # milliseconds
    cached: bool = False


class UniversalIntegrationResponse(WireModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: ResponseMetadata


class PreferredDispatchRequest(WireModel):
    action: str
    params: Dict[str, Any] = Field(default_factory=dict)
    agent_id: str
    user_id: str
    preferred_tools: List[str] = Field(default_factory=list)
    fallback_tools: List[str] = Field(default_factory=list)
