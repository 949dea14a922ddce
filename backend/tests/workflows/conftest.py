# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow engine fixtures: a scripted integration router, an execution
repository on a temporary directory and a workflow builder.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from portal.integrations.models import (
    ResponseMetadata,
    UniversalIntegrationRequest,
    UniversalIntegrationResponse,
)
from portal.workflows.agents import AgentProfile, StaticAgentDirectory
from portal.workflows.executor import WorkflowExecutor
from portal.workflows.models import Workflow
from portal.workflows.store import ExecutionRepository


class ScriptedRouter:
    """
    Stands in for IntegrationRouter.execute_integration.

    Responses are keyed by tool; a tool mapped to an Exception fails with
    that message. Setting ``gate`` blocks every call until it is set.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = dict(responses or {})
        self.requests: List[UniversalIntegrationRequest] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def execute_integration(self, request: UniversalIntegrationRequest) -> UniversalIntegrationResponse:
        self.requests.append(request)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()

        metadata = ResponseMetadata(tool=request.tool, action=request.action, execution_time=1)
        outcome = self.responses.get(request.tool, {"ok": True})
        if isinstance(outcome, Exception):
            return UniversalIntegrationResponse(success=False, error=str(outcome), metadata=metadata)
        return UniversalIntegrationResponse(success=True, data=outcome, metadata=metadata)


def build_workflow(*steps: Dict[str, Any], **overrides: Any) -> Workflow:
    """Workflow from compact step dicts: {"id", "type", "action", ...}."""
    data = {
        "id": "wf-1",
        "name": "Digest",
        "agent": {"id": "agent-1", "name": "Writer", "role": "summarizer"},
        "steps": [
            {
                "id": step["id"],
                "agentId": step.get("agent_id"),
                "action": {
                    "type": step["type"],
                    "action": step["action"],
                    "target": step.get("target"),
                    "config": step.get("config", {}),
                },
            }
            for step in steps
        ],
    }
    data.update(overrides)
    return Workflow.model_validate(data)


@pytest.fixture
def repository(temp_dir):
    return ExecutionRepository(temp_dir / "executions")


@pytest.fixture
def scripted_router():
    return ScriptedRouter()


@pytest.fixture
def agent_directory():
    return StaticAgentDirectory({
        "analyst": AgentProfile(id="analyst", name="Analyst", role="classifier"),
    })


@pytest.fixture
def executor(scripted_router, agent_directory, repository):
    return WorkflowExecutor(scripted_router, agent_directory, repository)
