# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Models

Pydantic models for the workflow engine - ordered steps bound to one
agent and one trigger, and the execution records they produce.

Structural fields are optional at the model level on purpose: malformed
workflows must still parse so the engine can record and reject them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from portal.integrations.models import WireModel


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    ERROR = "error"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class WorkflowTrigger(WireModel):
    type: str  # gmail | slack | notion | schedule | manual
    event: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class WorkflowAgent(WireModel):
    id: Optional[str] = None
    name: str = ""
    role: str = ""


class WorkflowAction(WireModel):
    """What a step does. ``type`` is 'agent' or a tool id."""
    type: Optional[str] = None
    action: Optional[str] = None
    target: Optional[Dict[str, Any]] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class WorkflowStep(WireModel):
    id: str
    action: Optional[WorkflowAction] = None
    agent_id: Optional[str] = None
    conditions: Optional[Dict[str, Any]] = None
    next_steps: Optional[List[str]] = None  # Advisory only; steps run in list order


class Workflow(WireModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: str = ""
    trigger: WorkflowTrigger = Field(default_factory=lambda: WorkflowTrigger(type="manual"))
    agent: Optional[WorkflowAgent] = None
    steps: List[WorkflowStep] = Field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.DRAFT


class ExecutionLog(WireModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: LogLevel
    message: str
    data: Any = None


class WorkflowExecution(WireModel):
    """One run of a workflow. Logs are append-only."""
    id: str
    workflow_id: Optional[str] = None
    user_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    errors: Optional[List[str]] = None
    logs: List[ExecutionLog] = Field(default_factory=list)

    def log(self, level: LogLevel, message: str, data: Any = None) -> None:
        self.logs.append(ExecutionLog(level=level, message=message, data=data))


class ExecuteWorkflowRequest(WireModel):
    workflow: Workflow
    input: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None


class ScheduleWorkflowRequest(WireModel):
    workflow: Workflow
    input: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
