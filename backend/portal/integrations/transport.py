# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Outbound HTTP transport for provider APIs.

Bounded retries with exponential backoff and a hard timeout per attempt.
Retry policy lives here, in the calling layer, so the router and the
workflow engine stay free of transport concerns.
"""

import asyncio
from typing import Any, Optional

import httpx

from portal.core.errors import UpstreamProviderError
from portal.core.logging import get_service_logger

logger = get_service_logger("transport")

RETRYABLE_STATUS = {429, 502, 503, 504}


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    tool: str,
    max_retries: int = 3,
    backoff: float = 1.0,
    timeout: Optional[float] = 10.0,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request, retrying transient failures.

    Retries on 429/502/503/504 and on network errors. Any other non-2xx
    response raises UpstreamProviderError immediately.

    Raises:
        UpstreamProviderError: Provider answered with a non-success status
        httpx.HTTPError: Network failure after the last attempt
    """
    attempts = max(1, max_retries)
    delay = backoff

    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1
        try:
            response = await client.request(method, url, timeout=timeout, **kwargs)
        except httpx.HTTPError as e:
            if last_attempt:
                logger.error(f"{tool} request failed after {attempts} attempts: {e}")
                raise
            logger.warning(
                f"{tool} request error: {e}, retrying in {delay}s "
                f"(attempt {attempt + 1}/{attempts})"
            )
            await asyncio.sleep(delay)
            delay *= 2  # Exponential backoff
            continue

        if response.is_success:
            return response

        if response.status_code in RETRYABLE_STATUS and not last_attempt:
            logger.warning(
                f"{tool} request failed with {response.status_code}, retrying in {delay}s "
                f"(attempt {attempt + 1}/{attempts})"
            )
            await asyncio.sleep(delay)
            delay *= 2
            continue

        raise UpstreamProviderError(tool, response.status_code, _response_body(response))

    # Unreachable: the loop either returns or raises on the last attempt
    raise UpstreamProviderError(tool, 0, "no attempts made")
