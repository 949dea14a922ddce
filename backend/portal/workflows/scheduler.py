# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Schedule Trigger
Executes workflows on a schedule using cron expressions.

Each scheduled workflow gets one loop task; every due run is started as
its own task, so a slow or failing run never delays the next one.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from croniter import croniter

from portal.core.logging import get_service_logger
from portal.core.errors import NotFoundError

from .exceptions import WorkflowException
from .executor import WorkflowExecutor
from .models import Workflow
from .validation import validate_schedule, validate_workflow

logger = get_service_logger("scheduler")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScheduledWorkflow:
    workflow: Workflow
    cron: str
    input: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    paused: bool = False
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    loop_task: Optional[asyncio.Task] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow.id,
            "name": self.workflow.name,
            "cron": self.cron,
            "paused": self.paused,
            "nextRun": self.next_run.isoformat() if self.next_run else None,
            "lastRun": self.last_run.isoformat() if self.last_run else None,
        }


class WorkflowScheduler:
    """Cron-driven trigger for workflows whose trigger type is 'schedule'."""

    def __init__(self, executor: WorkflowExecutor, clock: Callable[[], datetime] = _utcnow):
        self.executor = executor
        self.clock = clock
        self._schedules: Dict[str, ScheduledWorkflow] = {}
        self._runs: Set[asyncio.Task] = set()

    def schedule(
        self,
        workflow: Workflow,
        input: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ScheduledWorkflow:
        """
        Start (or replace) the schedule for a workflow.

        Raises:
            WorkflowValidationError: Trigger is not a schedule or cron is invalid
        """
        validate_workflow(workflow)
        cron = validate_schedule(workflow)
        if workflow.id in self._schedules:
            self.cancel(workflow.id)

        scheduled = ScheduledWorkflow(workflow=workflow, cron=cron, input=dict(input or {}), user_id=user_id)
        scheduled.next_run = self.next_run_after(cron, self.clock())
        scheduled.loop_task = asyncio.create_task(self._loop(scheduled))
        self._schedules[workflow.id] = scheduled

        logger.info(
            "Schedule trigger started",
            extra={"workflow_id": workflow.id, "cron_expression": cron, "next_run": scheduled.next_run.isoformat()},
        )
        return scheduled

    @staticmethod
    def next_run_after(cron: str, base: datetime) -> datetime:
        return croniter(cron, base).get_next(datetime)

    def pause(self, workflow_id: str) -> ScheduledWorkflow:
        scheduled = self._get(workflow_id)
        scheduled.paused = True
        logger.info(f"Schedule paused: {workflow_id}")
        return scheduled

    def resume(self, workflow_id: str) -> ScheduledWorkflow:
        scheduled = self._get(workflow_id)
        scheduled.paused = False
        logger.info(f"Schedule resumed: {workflow_id}")
        return scheduled

    def cancel(self, workflow_id: str) -> None:
        scheduled = self._get(workflow_id)
        if scheduled.loop_task is not None:
            scheduled.loop_task.cancel()
        del self._schedules[workflow_id]
        logger.info(f"Schedule cancelled: {workflow_id}")

    def list_schedules(self) -> List[ScheduledWorkflow]:
        return list(self._schedules.values())

    def get(self, workflow_id: str) -> Optional[ScheduledWorkflow]:
        return self._schedules.get(workflow_id)

    async def shutdown(self) -> None:
        """Stop every loop and wait for in-flight runs to settle."""
        for workflow_id in list(self._schedules):
            self.cancel(workflow_id)
        if self._runs:
            await asyncio.gather(*self._runs, return_exceptions=True)

    def _get(self, workflow_id: str) -> ScheduledWorkflow:
        scheduled = self._schedules.get(workflow_id)
        if scheduled is None:
            raise NotFoundError("Schedule", workflow_id)
        return scheduled

    async def _loop(self, scheduled: ScheduledWorkflow) -> None:
        while True:
            wait_seconds = max((scheduled.next_run - self.clock()).total_seconds(), 0)
            await asyncio.sleep(wait_seconds)

            fired_at = scheduled.next_run
            scheduled.next_run = self.next_run_after(scheduled.cron, max(self.clock(), fired_at))
            if scheduled.paused:
                logger.debug(f"Skipping paused schedule: {scheduled.workflow.id}")
                continue

            scheduled.last_run = fired_at
            self.trigger(scheduled, fired_at)

    def trigger(self, scheduled: ScheduledWorkflow, fired_at: datetime) -> asyncio.Task:
        """Start one run as an independent task."""
        run_input = {
            **scheduled.input,
            "triggered_at": fired_at.isoformat(),
            "trigger_type": "schedule",
            "cron_expression": scheduled.cron,
        }
        task = asyncio.create_task(self._run(scheduled.workflow, run_input, scheduled.user_id))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    async def _run(self, workflow: Workflow, run_input: Dict[str, Any], user_id: Optional[str]) -> None:
        try:
            execution = await self.executor.execute_workflow(workflow, run_input, user_id=user_id)
            logger.info(
                "Scheduled workflow triggered successfully",
                extra={"workflow_id": workflow.id, "execution_id": execution.id},
            )
        except WorkflowException as e:
            # The execution record already carries the failure
            logger.error(
                "Scheduled workflow run failed",
                extra={"workflow_id": workflow.id, "error": str(e)},
            )
        except Exception as e:
            logger.error(
                "Error in scheduled workflow run",
                extra={"workflow_id": workflow.id, "error": str(e)},
                exc_info=True,
            )
