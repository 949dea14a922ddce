# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Suite for the Agent Portal backend

Structure:
- unit/: Integration layer and core components in isolation
- workflows/: Workflow engine
- test_api.py: HTTP routes
"""
