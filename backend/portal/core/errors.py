# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Portal exception hierarchy.

Every error carries an HTTP status so the API layer can render it without
knowing the concrete type. Integration failures never reach callers as
exceptions: the router folds them into an IntegrationResponse.
"""

from typing import Any, Iterable, Optional


class PortalError(Exception):
    """Root of the portal error hierarchy."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """JSON body for an error response."""
        body = {"error": type(self).__name__, "message": self.message, "status_code": self.status_code}
        body["details"] = self.details
        return body


class NotFoundError(PortalError):
    """Unknown execution, schedule, agent or similar."""

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}", status_code=404, details=details)


class ValidationError(PortalError):
    """Bad input; ``field`` names the offending attribute when known."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        self.field = field
        super().__init__(message, status_code=400, details=details)


class ServiceUnavailableError(PortalError):
    """A backing service was not started."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"{service} not initialized", status_code=503, details={"service": service})


# Integration errors

class UnsupportedToolError(ValidationError):
    """Requested tool has no registered adapter."""

    def __init__(self, tool: str, available: Iterable[str]):
        self.tool = tool
        self.available = list(available)
        super().__init__(
            f"Tool '{tool}' not supported. Available tools: {', '.join(self.available)}",
            field="tool",
        )


class UnsupportedActionError(ValidationError):
    """Action is not part of the adapter contract (or agent action set)."""

    def __init__(self, action: str, target: Optional[str] = None):
        self.action = action
        self.target = target
        message = f"Action '{action}' not supported"
        if target:
            message += f" for {target}"
        super().__init__(message, field="action")


class AuthenticationRequiredError(PortalError):
    """No valid token for (user, tool)."""

    def __init__(self, tool: str, reason: Optional[str] = None):
        self.tool = tool
        message = f"Authentication required for {tool}."
        if reason:
            message += f" {reason}"
        super().__init__(message, status_code=401)


class RateLimitExceededError(PortalError):
    """Per-(user, tool) quota exhausted in the current window."""

    def __init__(self, tool: str, limit: int, window: str):
        self.tool = tool
        self.limit = limit
        self.window = window
        super().__init__(
            f"Rate limit exceeded for {tool} ({limit} requests per {window}). Please try again later.",
            status_code=429,
            details={"limit": limit, "window": window},
        )


class UpstreamProviderError(PortalError):
    """Non-success response from a provider API."""

    def __init__(self, tool: str, status: int, body: Any = None):
        self.tool = tool
        self.status = status
        self.body = body
        super().__init__(
            f"{tool} API error ({status})",
            status_code=502,
            details={"status": status, "body": body},
        )


# User-facing messages

_INTERNAL_PATHS = ("/app/", "/configs/")
MAX_USER_MESSAGE = 500


def sanitize_error_for_user(error: Exception) -> str:
    """
    First line of ``str(error)`` with container paths stripped and the
    length capped; falls back to the class name for empty messages.
    """
    lines = str(error).strip().splitlines()
    message = lines[0] if lines else type(error).__name__
    for path in _INTERNAL_PATHS:
        message = message.replace(path, "")
    if len(message) > MAX_USER_MESSAGE:
        message = message[:MAX_USER_MESSAGE] + "..."
    return message
