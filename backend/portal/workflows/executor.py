# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Executor

Sequential step execution engine.

State machine: pending -> running -> {completed | failed}. Steps run in
list order; each step sees the context accumulated so far and its result
is shallow-merged into a new context for the next step. When two steps
produce the same key the later one wins.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from portal.core.errors import sanitize_error_for_user
from portal.core.logging import get_service_logger
from portal.integrations.models import UniversalIntegrationRequest
from portal.integrations.router import IntegrationRouter

from .agent_actions import run_agent_action
from .agents import AgentDirectory, AgentProfile
from .context import ActiveExecution, ActiveExecutionIndex
from .exceptions import CancellationError, StepExecutionError, WorkflowValidationError
from .models import (
    ExecutionStatus,
    LogLevel,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
)
from .store import ExecutionRepository
from .validation import validate_workflow

logger = get_service_logger("workflow_executor")

DEFAULT_SLACK_CHANNEL = "#general"


def generate_execution_id() -> str:
    return f"exec_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


def _summary_text(data: Mapping[str, Any]) -> Optional[str]:
    summary = data.get("summary")
    if isinstance(summary, dict):
        return summary.get("summary")
    return None


def _slack_hints(step: WorkflowStep, data: Mapping[str, Any]) -> Dict[str, Any]:
    action = step.action
    target = action.target or {}
    return {
        "channel": target.get("channel") or action.config.get("channel") or DEFAULT_SLACK_CHANNEL,
        "text": _summary_text(data) or data.get("content") or data.get("text") or "Workflow result",
    }


def _notion_hints(step: WorkflowStep, data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "title": data.get("title") or f"Workflow Result - {datetime.now(timezone.utc).isoformat()}",
        "content": _summary_text(data) or data.get("content") or json.dumps(dict(data), default=str),
    }


# Tool-specific parameters derived from the step target and the context
STEP_PARAM_HINTS = {
    "slack": _slack_hints,
    "notion": _notion_hints,
}


class WorkflowExecutor:
    """
    Runs workflows step by step.

    Integration steps go through the IntegrationRouter and inherit its
    auth, rate-limit and cache behavior. Agent steps run in-engine.
    """

    def __init__(
        self,
        router: IntegrationRouter,
        agent_directory: AgentDirectory,
        repository: ExecutionRepository,
        active_index: Optional[ActiveExecutionIndex] = None,
    ):
        self.router = router
        self.agent_directory = agent_directory
        self.repository = repository
        self.active = active_index or ActiveExecutionIndex()

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_workflow(
        self,
        workflow: Workflow,
        input: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> WorkflowExecution:
        """
        Execute a workflow with the given input.

        The execution record is persisted on every state change. Errors are
        recorded on the execution and then re-raised to the caller.

        Raises:
            WorkflowValidationError: Workflow is malformed (never reaches running)
            StepExecutionError: A step failed; remaining steps were skipped
            CancellationError: Execution was cancelled while running
        """
        execution = WorkflowExecution(
            id=generate_execution_id(),
            workflow_id=workflow.id,
            user_id=user_id,
            input=dict(input or {}),
        )
        self._log(execution, LogLevel.INFO, f"Starting workflow execution: {workflow.name}")
        await self.repository.create(execution)

        # 1. Validate before any state transition
        try:
            validate_workflow(workflow)
        except WorkflowValidationError as e:
            self._log(execution, LogLevel.ERROR, f"Workflow validation failed: {e.message}", {"field": e.field})
            e.execution_id = execution.id
            await self._finish(execution, ExecutionStatus.FAILED, errors=[e.message])
            raise

        execution.status = ExecutionStatus.RUNNING
        await self.repository.update(execution)

        # 2. Run steps in a child task so cancellation can target it alone
        entry = self.active.register(execution)
        entry.task = asyncio.create_task(self._run_steps(workflow, execution, execution.input))
        try:
            output = await entry.task
            if entry.cancelled:
                raise CancellationError(execution.id)
        except asyncio.CancelledError:
            if entry.cancelled:
                raise CancellationError(execution.id) from None
            # Cancelled from outside (shutdown, caller went away)
            self.active.discard(execution.id)
            self._log(execution, LogLevel.ERROR, "Workflow execution interrupted")
            await self._finish(execution, ExecutionStatus.FAILED, errors=["Execution interrupted"])
            raise
        except StepExecutionError as e:
            self.active.discard(execution.id)
            self._log(execution, LogLevel.ERROR, f"Workflow execution failed: {e.message}")
            await self._finish(execution, ExecutionStatus.FAILED, errors=[e.message])
            e.execution_id = execution.id
            raise

        # Leave the index before persisting so a late cancel is a no-op
        self.active.discard(execution.id)
        execution.output = output
        self._log(execution, LogLevel.INFO, "Workflow execution completed successfully")
        await self._finish(execution, ExecutionStatus.COMPLETED)

        return execution

    async def _run_steps(
        self,
        workflow: Workflow,
        execution: WorkflowExecution,
        input: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Fold the step list over the input, one immutable context per step."""
        context: Mapping[str, Any] = MappingProxyType(dict(input))

        for step in workflow.steps:
            label = f"{step.action.type}.{step.action.action}"
            self._log(execution, LogLevel.INFO, f"Executing step: {label}", {"stepId": step.id})

            try:
                result = await self._execute_step(workflow, step, context, execution)
            except StepExecutionError as e:
                self._log(execution, LogLevel.ERROR, f"Step failed: {e.message}", {"stepId": step.id})
                raise
            except Exception as e:
                error = StepExecutionError(step.id, label, sanitize_error_for_user(e))
                self._log(execution, LogLevel.ERROR, f"Step failed: {error.message}", {"stepId": step.id})
                raise error from e

            context = MappingProxyType({**context, **result})
            self._log(execution, LogLevel.INFO, "Step completed successfully", {"stepId": step.id})

        return dict(context)

    async def _execute_step(
        self,
        workflow: Workflow,
        step: WorkflowStep,
        context: Mapping[str, Any],
        execution: WorkflowExecution,
    ) -> Dict[str, Any]:
        action = step.action
        if action.type == "agent":
            agent = await self._resolve_agent(workflow, step)
            self._log(execution, LogLevel.INFO, f"Executing agent action: {action.action} with {agent.name}")
            return run_agent_action(action.action, agent, context)

        return await self._execute_integration_step(workflow, step, context, execution)

    async def _execute_integration_step(
        self,
        workflow: Workflow,
        step: WorkflowStep,
        context: Mapping[str, Any],
        execution: WorkflowExecution,
    ) -> Dict[str, Any]:
        action = step.action
        label = f"{action.type}.{action.action}"
        if not execution.user_id:
            raise StepExecutionError(step.id, label, "integration steps require a user")

        params = {**action.config, **context}
        hints = STEP_PARAM_HINTS.get(action.type)
        if hints is not None:
            params.update(hints(step, context))

        response = await self.router.execute_integration(UniversalIntegrationRequest(
            tool=action.type,
            action=action.action,
            params=params,
            agent_id=step.agent_id or workflow.agent.id,
            user_id=execution.user_id,
        ))
        if not response.success:
            raise StepExecutionError(step.id, label, response.error)

        data = response.data
        if data is None:
            return {}
        if isinstance(data, dict):
            return data
        return {"result": data}

    async def _resolve_agent(self, workflow: Workflow, step: WorkflowStep) -> AgentProfile:
        agent_id = step.agent_id or workflow.agent.id
        profile = await self.agent_directory.resolve(agent_id)
        if profile is not None:
            return profile
        if agent_id == workflow.agent.id:
            return AgentProfile(id=workflow.agent.id, name=workflow.agent.name, role=workflow.agent.role)
        raise StepExecutionError(step.id, f"agent.{step.action.action}", f"agent '{agent_id}' not found")

    async def _finish(
        self,
        execution: WorkflowExecution,
        status: ExecutionStatus,
        errors: Optional[List[str]] = None,
    ) -> None:
        execution.status = status
        execution.completed_at = datetime.now(timezone.utc)
        if errors is not None:
            execution.errors = errors
        await self.repository.update(execution)

    def _log(self, execution: WorkflowExecution, level: LogLevel, message: str, data: Any = None) -> None:
        execution.log(level, message, data)
        log_level = {"info": "info", "warn": "warning", "error": "error"}[level.value]
        getattr(logger, log_level)(
            f"[Workflow {execution.workflow_id}] {message}",
            extra={"execution_id": execution.id},
        )

    # =========================================================================
    # Cancellation and lookup
    # =========================================================================

    async def cancel_execution(self, execution_id: str) -> bool:
        """
        Cancel an active execution.

        Unknown or already-finished ids are a no-op and return False.
        """
        entry: Optional[ActiveExecution] = self.active.get(execution_id)
        if entry is None or entry.cancelled or (entry.task is not None and entry.task.done()):
            return False

        entry.cancelled = True
        self.active.discard(execution_id)
        if entry.task is not None:
            entry.task.cancel()

        execution = entry.execution
        self._log(execution, LogLevel.WARN, "Execution cancelled by user")
        await self._finish(execution, ExecutionStatus.FAILED, errors=["Execution cancelled by user"])
        return True

    def get_active_executions(self) -> List[WorkflowExecution]:
        return self.active.executions()

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Active executions first, then the repository."""
        entry = self.active.get(execution_id)
        if entry is not None:
            return entry.execution
        return await self.repository.get(execution_id)
