# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Third-party tool integrations.

- auth: OAuth 2.0 authorization manager
- credentials: token storage per (user, tool)
- mediator: rate limiting and response caching
- adapters: one adapter per tool
- router: single entry point for agent tool calls
"""

from portal.integrations.router import IntegrationRouter

__all__ = ["IntegrationRouter"]
