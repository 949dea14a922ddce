# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Portal Configuration - Single source of truth.
YAML is king. Env vars ONLY for secrets and deployment endpoints.

- ALL configuration in plain text (configs/portal.yaml)
- OAuth client credentials come from the environment, never from YAML
"""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable application configuration.
    All values from YAML. No hidden state.
    """

    # -- Service --
    service_host: str = "0.0.0.0"
    service_port: int = 8000
    app_url: str = "http://localhost:8000"

    # -- Redis (rate limiting + response cache) --
    redis_enabled: bool = True
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 300

    # -- HTTP (outbound provider calls) --
    http_timeout: float = 10.0
    http_max_retries: int = 3
    http_retry_backoff: float = 1.0

    # -- Paths --
    executions_path: str = "/app/volumes/executions"
    credentials_path: str = "/app/volumes/credentials"
    agents_path: str = "/app/agent-definitions"

    # -- OAuth --
    oauth_state_ttl: int = 600

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"

    def get_oauth_redirect_uri(self, tool: str) -> str:
        return f"{self.app_url.rstrip('/')}/integrations/oauth/{tool}/callback"


@dataclass(frozen=True)
class IntegrationConfig:
    """OAuth parameters for one third-party tool. Immutable after startup."""

    tool: str
    name: str
    description: str
    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str
    token_url: str
    scopes: List[str] = field(default_factory=list)


# Provider endpoints and scopes. Credentials are looked up from the
# environment under "<PREFIX>_CLIENT_ID" / "<PREFIX>_CLIENT_SECRET".
OAUTH_PROVIDERS: Dict[str, dict] = {
    "gmail": {
        "env_prefix": "GOOGLE",
        "name": "Gmail",
        "description": "Send and manage emails through Gmail",
        "authorize_url": "https://accounts.google.com/o/oauth2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "scopes": [
            "https://www.googleapis.com/auth/gmail.send",
            "https://www.googleapis.com/auth/gmail.readonly",
            "https://www.googleapis.com/auth/gmail.modify",
        ],
    },
    "slack": {
        "env_prefix": "SLACK",
        "name": "Slack",
        "description": "Send messages and manage Slack workspaces",
        "authorize_url": "https://slack.com/oauth/v2/authorize",
        "token_url": "https://slack.com/api/oauth.v2.access",
        "scopes": ["chat:write", "channels:read", "channels:history", "users:read", "files:write"],
    },
    "notion": {
        "env_prefix": "NOTION",
        "name": "Notion",
        "description": "Create and manage Notion pages and databases",
        "authorize_url": "https://api.notion.com/v1/oauth/authorize",
        "token_url": "https://api.notion.com/v1/oauth/token",
        "scopes": [],
    },
    "asana": {
        "env_prefix": "ASANA",
        "name": "Asana",
        "description": "Create and track tasks and projects in Asana",
        "authorize_url": "https://app.asana.com/-/oauth_authorize",
        "token_url": "https://app.asana.com/-/oauth_token",
        "scopes": ["default"],
    },
}


# =============================================================================
# SECRETS - The ONLY thing from environment variables
# =============================================================================

def get_oauth_client_credentials(tool: str) -> Optional[tuple]:
    """Client id/secret pair for a tool, or None when not configured."""
    provider = OAUTH_PROVIDERS.get(tool)
    if provider is None:
        return None
    prefix = provider["env_prefix"]
    client_id = os.getenv(f"{prefix}_CLIENT_ID")
    client_secret = os.getenv(f"{prefix}_CLIENT_SECRET")
    if not client_id or not client_secret:
        return None
    return client_id, client_secret


def get_oauth_state_secret() -> str:
    """Secret used to sign OAuth state parameters."""
    return os.getenv("OAUTH_STATE_SECRET", "")


def load_integration_configs(config: "Config") -> Dict[str, IntegrationConfig]:
    """
    Build one IntegrationConfig per tool whose client credentials are set.

    Tools without credentials are simply absent, so the authorization
    manager reports them as unknown.
    """
    integrations: Dict[str, IntegrationConfig] = {}
    for tool, provider in OAUTH_PROVIDERS.items():
        credentials = get_oauth_client_credentials(tool)
        if credentials is None:
            continue
        client_id, client_secret = credentials
        integrations[tool] = IntegrationConfig(
            tool=tool,
            name=provider["name"],
            description=provider["description"],
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=config.get_oauth_redirect_uri(tool),
            authorize_url=provider["authorize_url"],
            token_url=provider["token_url"],
            scopes=list(provider["scopes"]),
        )
    return integrations


# =============================================================================
# LOADER
# =============================================================================

def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(path: str = "/app/configs/portal.yaml") -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.
    """
    load_dotenv()

    y: dict = {}
    if Path(path).exists():
        with open(path) as f:
            y = yaml.safe_load(f) or {}

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    defaults = Config()
    redis_enabled = get(y, "redis", "enabled")

    return Config(
        # Service
        service_host=get(y, "service", "host") or defaults.service_host,
        service_port=get(y, "service", "port") or defaults.service_port,
        app_url=os.getenv("APP_URL") or get(y, "service", "app_url") or defaults.app_url,

        # Redis
        redis_enabled=_env_flag(
            "REDIS_ENABLED",
            defaults.redis_enabled if redis_enabled is None else bool(redis_enabled),
        ),
        redis_url=os.getenv("REDIS_URL") or get(y, "redis", "url") or defaults.redis_url,
        cache_ttl=get(y, "cache", "ttl") or defaults.cache_ttl,

        # HTTP
        http_timeout=get(y, "http", "timeout") or defaults.http_timeout,
        http_max_retries=get(y, "http", "max_retries") or defaults.http_max_retries,
        http_retry_backoff=get(y, "http", "retry_backoff") or defaults.http_retry_backoff,

        # Paths
        executions_path=get(y, "paths", "executions") or defaults.executions_path,
        credentials_path=get(y, "paths", "credentials") or defaults.credentials_path,
        agents_path=get(y, "paths", "agents") or defaults.agents_path,

        # OAuth
        oauth_state_ttl=get(y, "oauth", "state_ttl") or defaults.oauth_state_ttl,

        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or defaults.log_level,
        log_format=get(y, "logging", "format") or defaults.log_format,
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        config_path = os.getenv("PORTAL_CONFIG_PATH", "/app/configs/portal.yaml")
        _config = load_config(config_path)
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
