# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Shared fixtures: a Redis stand-in with a controllable clock, a temporary
credential store, a stub adapter and an httpx MockTransport client factory.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any, Callable, Dict, Optional

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from portal.integrations.adapters.base import BaseAdapter, Operation
from portal.integrations.credentials import FileCredentialStore
from portal.integrations.models import (
    AdapterResult,
    OAuthTokens,
    RateLimit,
    ToolAction,
    ToolCapabilities,
)


class FakeClock:
    """Monotonic seconds that only move when told to."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """
    Minimal redis.asyncio stand-in: get/setex/incr/expire/ping/aclose.

    Values are stored as strings (decode_responses=True semantics) and
    expire according to the injected clock.
    """

    def __init__(self, clock: FakeClock, fail: bool = False):
        self.clock = clock
        self.fail = fail
        self._data: Dict[str, str] = {}
        self._expires: Dict[str, float] = {}
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("redis unavailable")

    def _alive(self, key: str) -> bool:
        expires = self._expires.get(key)
        if expires is not None and self.clock() >= expires:
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return key in self._data

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self._data[key] if self._alive(key) else None

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self._data[key] = value
        self._expires[key] = self.clock() + ttl
        return True

    async def incr(self, key: str) -> int:
        self._check()
        current = int(self._data[key]) if self._alive(key) else 0
        self._data[key] = str(current + 1)
        return current + 1

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        if not self._alive(key):
            return False
        self._expires[key] = self.clock() + seconds
        return True

    async def aclose(self) -> None:
        self.closed = True


class StubAdapter(BaseAdapter):
    """Adapter with a configurable rate limit that records every call."""

    default_send = "post"
    default_fetch = "read"

    def __init__(self, credentials, tool_id: str = "stub", rate_limit: RateLimit = None, **kwargs):
        super().__init__(credentials, http_client=httpx.AsyncClient(), **kwargs)
        self.tool_id = tool_id
        self.rate_limit = rate_limit or RateLimit(requests=5, window="1m")
        self.calls = []
        self.error: Optional[Exception] = None

    def capabilities(self) -> ToolCapabilities:
        return ToolCapabilities(
            id=self.tool_id,
            name=self.tool_id.title(),
            description=f"{self.tool_id} stub",
            actions=[ToolAction(name="send", description="post"), ToolAction(name="fetch", description="read")],
            rate_limit=self.rate_limit,
        )

    @property
    def send_operations(self) -> Dict[str, Operation]:
        return {"post": self._post}

    @property
    def fetch_operations(self) -> Dict[str, Operation]:
        return {"read": self._read}

    async def _post(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        self.calls.append(("send", params))
        if self.error is not None:
            raise self.error
        return AdapterResult.ok("posted", data={"tool": self.tool_id, "echo": params, "call": len(self.calls)})

    async def _read(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        self.calls.append(("fetch", params))
        return AdapterResult.ok("read", data={"items": [1, 2, 3], "call": len(self.calls)})


def make_tokens(expires_in: Optional[int] = 3600, refresh_token: Optional[str] = "refresh-1") -> OAuthTokens:
    expires_at = None
    if expires_in is not None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return OAuthTokens(
        access_token="access-1",
        refresh_token=refresh_token,
        expires_at=expires_at,
        scope="read write",
    )


@pytest.fixture
def temp_dir():
    """Temporary directory for file-backed stores"""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def credential_store(temp_dir):
    return FileCredentialStore(temp_dir / "credentials")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest.fixture
def stub_adapter_factory(credential_store):
    """Build StubAdapters sharing the temporary credential store"""
    def factory(tool_id: str = "stub", rate_limit: RateLimit = None) -> StubAdapter:
        return StubAdapter(credential_store, tool_id=tool_id, rate_limit=rate_limit)
    return factory


@pytest.fixture
def tokens_factory():
    return make_tokens


@pytest.fixture
def mock_client_factory():
    """httpx.AsyncClient whose requests are answered by a handler"""
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return factory
