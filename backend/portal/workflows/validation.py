# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Validation

Structural checks run before an execution may start.
"""

from croniter import croniter

from .exceptions import WorkflowValidationError
from .models import Workflow


def validate_workflow(workflow: Workflow) -> None:
    """
    Validate workflow structure.

    Raises WorkflowValidationError if validation fails.
    """
    # 1. Identity
    if not workflow.id or not workflow.name:
        raise WorkflowValidationError("Workflow must have id and name", field="id" if not workflow.id else "name")

    # 2. Steps
    if not workflow.steps:
        raise WorkflowValidationError("Workflow must have at least one step", field="steps")

    # 3. Agent
    if workflow.agent is None or not workflow.agent.id:
        raise WorkflowValidationError("Workflow must have an assigned agent", field="agent")

    # 4. Each step needs a complete action
    for index, step in enumerate(workflow.steps):
        if step.action is None or not step.action.type or not step.action.action:
            raise WorkflowValidationError(
                "Each step must have a valid action",
                field=f"steps[{index}].action"
            )


def validate_schedule(workflow: Workflow) -> str:
    """
    Validate a schedule trigger and return its cron expression.

    Raises WorkflowValidationError if the trigger is not a valid schedule.
    """
    if workflow.trigger.type != "schedule":
        raise WorkflowValidationError(
            f"Workflow trigger is '{workflow.trigger.type}', expected 'schedule'",
            field="trigger.type"
        )

    cron = workflow.trigger.config.get("cron")
    if not cron or not croniter.is_valid(cron):
        raise WorkflowValidationError(f"Invalid cron expression: {cron}", field="trigger.config.cron")

    return cron
