# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tool adapters.

ADAPTER_CLASSES maps tool id to adapter class. Adding a tool means adding
one adapter module and one entry here; dispatch code never changes.
"""

from typing import Dict, Optional, Type

import httpx

from portal.core.config import Config
from portal.integrations.adapters.asana import AsanaAdapter
from portal.integrations.adapters.base import BaseAdapter
from portal.integrations.adapters.gmail import GmailAdapter
from portal.integrations.adapters.notion import NotionAdapter
from portal.integrations.adapters.slack import SlackAdapter
from portal.integrations.credentials import CredentialStore

ADAPTER_CLASSES: Dict[str, Type[BaseAdapter]] = {
    "slack": SlackAdapter,
    "gmail": GmailAdapter,
    "notion": NotionAdapter,
    "asana": AsanaAdapter,
}


def build_adapter_registry(
    credentials: CredentialStore,
    http_client: Optional[httpx.AsyncClient],
    config: Config,
) -> Dict[str, BaseAdapter]:
    """Instantiate every adapter against shared collaborators."""
    return {
        tool: adapter_class(
            credentials,
            http_client=http_client,
            timeout=config.http_timeout,
            max_retries=config.http_max_retries,
            retry_backoff=config.http_retry_backoff,
        )
        for tool, adapter_class in ADAPTER_CLASSES.items()
    }


__all__ = [
    "ADAPTER_CLASSES",
    "AsanaAdapter",
    "BaseAdapter",
    "GmailAdapter",
    "NotionAdapter",
    "SlackAdapter",
    "build_adapter_registry",
]
