# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
API Routes

- integrations: tool calls, status, OAuth connect flow
- workflows: execution, cancellation, scheduling
"""

from portal.api import integrations, workflows

__all__ = ["integrations", "workflows"]
