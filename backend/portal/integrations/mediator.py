# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Rate/Cache Mediator

Per-(user, tool) call counters with expiry and per-(user, tool, action,
params) response caching with TTL, behind one port with two strategies:

- RedisMediator: backed by Redis (get/setex/incr/expire)
- NullMediator: no-op, used when Redis is disabled or unreachable

Every path fails open: a store error counts as "allowed" and "cache miss".
"""

import hashlib
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from portal.core.config import Config
from portal.core.logging import get_service_logger

logger = get_service_logger("mediator")


def rate_limit_key(user_id: str, tool: str) -> str:
    return f"rate_limit:{user_id}:{tool}"


def cache_key(user_id: str, tool: str, action: str, params: Dict[str, Any]) -> str:
    """Deterministic key: identical params in any key order hash the same."""
    canonical = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode()).hexdigest()
    return f"response:{user_id}:{tool}:{action}:{digest}"


class RateCacheMediator(ABC):
    """Port used by the router for rate limiting and response caching."""

    @property
    @abstractmethod
    def available(self) -> bool:
        ...

    @abstractmethod
    async def get_request_count(self, user_id: str, tool: str) -> int:
        ...

    @abstractmethod
    async def record_request(self, user_id: str, tool: str, window_seconds: int) -> None:
        ...

    @abstractmethod
    async def get_cached(
        self, user_id: str, tool: str, action: str, params: Dict[str, Any]
    ) -> Optional[Any]:
        ...

    @abstractmethod
    async def set_cached(
        self, user_id: str, tool: str, action: str, params: Dict[str, Any], value: Any, ttl: int
    ) -> None:
        ...

    async def close(self) -> None:
        return None


class NullMediator(RateCacheMediator):
    """No rate limiting, no caching."""

    @property
    def available(self) -> bool:
        return False

    async def get_request_count(self, user_id: str, tool: str) -> int:
        return 0

    async def record_request(self, user_id: str, tool: str, window_seconds: int) -> None:
        return None

    async def get_cached(self, user_id, tool, action, params) -> Optional[Any]:
        return None

    async def set_cached(self, user_id, tool, action, params, value, ttl) -> None:
        return None


class RedisMediator(RateCacheMediator):
    """Redis-backed counters and response cache."""

    def __init__(self, client: "redis.Redis"):
        self.client = client

    @property
    def available(self) -> bool:
        return True

    async def get_request_count(self, user_id: str, tool: str) -> int:
        try:
            current = await self.client.get(rate_limit_key(user_id, tool))
        except RedisError as e:
            logger.warning(f"Rate limit check failed: {e}")
            return 0  # Allow on error
        return int(current) if current else 0

    async def record_request(self, user_id: str, tool: str, window_seconds: int) -> None:
        key = rate_limit_key(user_id, tool)
        try:
            await self.client.incr(key)
            await self.client.expire(key, window_seconds)
        except RedisError as e:
            logger.warning(f"Rate limit update failed: {e}")

    async def get_cached(self, user_id, tool, action, params) -> Optional[Any]:
        key = cache_key(user_id, tool, action, params)
        try:
            cached = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get failed: {e}")
            return None
        if cached is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry: {key}")
            return None

    async def set_cached(self, user_id, tool, action, params, value, ttl) -> None:
        key = cache_key(user_id, tool, action, params)
        try:
            await self.client.setex(key, ttl, json.dumps(value, default=str))
        except (RedisError, TypeError) as e:
            logger.warning(f"Cache set failed: {e}")

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except RedisError as e:
            logger.warning(f"Error closing Redis connection: {e}")


async def create_mediator(config: Config) -> RateCacheMediator:
    """
    Select the mediator strategy at startup.

    Falls back to NullMediator when Redis is disabled or unreachable, so
    rate limiting and caching degrade without affecting availability.
    """
    if not config.redis_enabled:
        logger.info("Redis disabled by configuration - rate limiting and caching off")
        return NullMediator()

    client = redis.from_url(config.redis_url, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Redis not available, rate limiting and caching disabled: {e}")
        try:
            await client.aclose()
        except (RedisError, OSError):
            pass
        return NullMediator()

    logger.info("Rate limiting and response cache backed by Redis")
    return RedisMediator(client)
