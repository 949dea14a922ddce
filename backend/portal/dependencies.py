# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FastAPI dependencies.

Services are constructed once at startup and stored in app.state; routes
pull them from there so tests can substitute any of them.
"""

from fastapi import Request

from portal.core.errors import ServiceUnavailableError
from portal.integrations.router import IntegrationRouter
from portal.workflows.executor import WorkflowExecutor
from portal.workflows.scheduler import WorkflowScheduler


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise ServiceUnavailableError(name)
    return service


def get_integration_router(request: Request) -> IntegrationRouter:
    return _service(request, "integration_router")


def get_workflow_executor(request: Request) -> WorkflowExecutor:
    return _service(request, "workflow_executor")


def get_workflow_scheduler(request: Request) -> WorkflowScheduler:
    return _service(request, "workflow_scheduler")
