# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Signed OAuth state parameter.

The state carries (user, tool, issued-at, nonce) and an HMAC-SHA256
signature, so the callback can recover the user without server-side
session storage and reject forged or stale callbacks.
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Optional

from portal.core.errors import ValidationError


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _b64decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


class OAuthStateSigner:
    """Creates and verifies signed OAuth state values."""

    def __init__(self, secret: Optional[str] = None, ttl: int = 600):
        # Without a configured secret, states only survive this process
        self._secret = (secret or secrets.token_hex(32)).encode()
        self.ttl = ttl

    def _sign(self, payload: str) -> str:
        mac = hmac.new(self._secret, msg=payload.encode(), digestmod=hashlib.sha256)
        return _b64encode(mac.digest())

    def create(self, user_id: str, tool: str) -> str:
        payload = _b64encode(json.dumps({
            "userId": user_id,
            "tool": tool,
            "issuedAt": int(time.time()),
            "nonce": secrets.token_hex(8),
        }).encode())
        return f"{payload}.{self._sign(payload)}"

    def verify(self, state: str, tool: str) -> str:
        """
        Verify a state value and return the user id it was issued for.

        Raises:
            ValidationError: If state is malformed, tampered, for another
                tool, or older than the TTL
        """
        try:
            payload, signature = state.split(".", 1)
        except (AttributeError, ValueError):
            raise ValidationError("Invalid state format", field="state")

        # Constant-time comparison
        if not hmac.compare_digest(self._sign(payload), signature):
            raise ValidationError("State signature mismatch", field="state")

        try:
            data = json.loads(_b64decode(payload))
        except ValueError:
            raise ValidationError("Invalid state payload", field="state")

        if data.get("tool") != tool:
            raise ValidationError(f"State was not issued for {tool}", field="state")
        if time.time() - data.get("issuedAt", 0) > self.ttl:
            raise ValidationError("State parameter expired", field="state")

        user_id = data.get("userId")
        if not user_id:
            raise ValidationError("State has no user", field="state")
        return user_id
