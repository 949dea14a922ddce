# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for the portal backend.

This package contains:
- config: Configuration management
- errors: Custom exceptions
- logging: Structured logging
"""

from portal.core.config import get_config, Config, IntegrationConfig
from portal.core.errors import PortalError, NotFoundError, ValidationError
from portal.core.logging import get_logger

__all__ = [
    "get_config",
    "Config",
    "IntegrationConfig",
    "PortalError",
    "NotFoundError",
    "ValidationError",
    "get_logger",
]
