# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow API Routes

Execution, inspection, cancellation and scheduling of workflows.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from portal.core.errors import NotFoundError
from portal.core.logging import get_api_logger
from portal.dependencies import get_workflow_executor, get_workflow_scheduler
from portal.workflows.exceptions import CancellationError, StepExecutionError, WorkflowValidationError
from portal.workflows.executor import WorkflowExecutor
from portal.workflows.models import ExecuteWorkflowRequest, ScheduleWorkflowRequest
from portal.workflows.scheduler import WorkflowScheduler

router = APIRouter(prefix="/workflows", tags=["workflows"])
logger = get_api_logger()


@router.post("/execute")
async def execute_workflow(
    request: ExecuteWorkflowRequest,
    executor: WorkflowExecutor = Depends(get_workflow_executor)
) -> Dict[str, Any]:
    """Execute a workflow and return its execution record"""
    try:
        execution = await executor.execute_workflow(request.workflow, request.input, user_id=request.user_id)
    except WorkflowValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": e.message, "field": e.field, "executionId": e.execution_id},
        )
    except (StepExecutionError, CancellationError) as e:
        logger.error(f"Workflow {request.workflow.id} failed: {e}")
        return JSONResponse(
            status_code=409 if isinstance(e, CancellationError) else 500,
            content={"error": e.message, "workflowId": request.workflow.id, "executionId": e.execution_id},
        )
    return execution.to_wire()


@router.get("/executions")
async def list_executions(
    workflow_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    executor: WorkflowExecutor = Depends(get_workflow_executor)
) -> List[Dict[str, Any]]:
    """List persisted executions, newest first"""
    executions = await executor.repository.list(workflow_id=workflow_id, status=status, limit=limit)
    return [execution.to_wire() for execution in executions]


@router.get("/executions/active")
async def list_active_executions(
    executor: WorkflowExecutor = Depends(get_workflow_executor)
) -> List[Dict[str, Any]]:
    """Executions currently running in this process"""
    return [execution.to_wire() for execution in executor.get_active_executions()]


@router.get("/executions/{execution_id}")
async def get_execution(
    execution_id: str,
    executor: WorkflowExecutor = Depends(get_workflow_executor)
) -> Dict[str, Any]:
    """Get one execution (active first, then persisted)"""
    execution = await executor.get_execution(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail=f"Execution not found: {execution_id}")
    return execution.to_wire()


@router.post("/executions/{execution_id}/cancel")
async def cancel_execution(
    execution_id: str,
    executor: WorkflowExecutor = Depends(get_workflow_executor)
) -> Dict[str, Any]:
    """Cancel a running execution; no-op for unknown or finished ids"""
    cancelled = await executor.cancel_execution(execution_id)
    return {"executionId": execution_id, "cancelled": cancelled}


@router.post("/schedule")
async def schedule_workflow(
    request: ScheduleWorkflowRequest,
    scheduler: WorkflowScheduler = Depends(get_workflow_scheduler)
) -> Dict[str, Any]:
    """Run a workflow on its cron schedule"""
    try:
        scheduled = scheduler.schedule(request.workflow, request.input, user_id=request.user_id)
    except WorkflowValidationError as e:
        raise HTTPException(status_code=400, detail={"message": e.message, "field": e.field})
    return scheduled.to_dict()


@router.get("/schedule")
async def list_schedules(
    scheduler: WorkflowScheduler = Depends(get_workflow_scheduler)
) -> List[Dict[str, Any]]:
    return [scheduled.to_dict() for scheduled in scheduler.list_schedules()]


@router.post("/schedule/{workflow_id}/pause")
async def pause_schedule(
    workflow_id: str,
    scheduler: WorkflowScheduler = Depends(get_workflow_scheduler)
) -> Dict[str, Any]:
    try:
        return scheduler.pause(workflow_id).to_dict()
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/schedule/{workflow_id}/resume")
async def resume_schedule(
    workflow_id: str,
    scheduler: WorkflowScheduler = Depends(get_workflow_scheduler)
) -> Dict[str, Any]:
    try:
        return scheduler.resume(workflow_id).to_dict()
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/schedule/{workflow_id}")
async def cancel_schedule(
    workflow_id: str,
    scheduler: WorkflowScheduler = Depends(get_workflow_scheduler)
) -> Dict[str, str]:
    """Stop a workflow's schedule"""
    try:
        scheduler.cancel(workflow_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "cancelled", "workflowId": workflow_id}
