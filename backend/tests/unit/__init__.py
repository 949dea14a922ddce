# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for the integration layer and core services.

Adapters, authorization, mediator and router tested in isolation,
plus configuration loading and log formatting.
"""
