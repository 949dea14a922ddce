# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Engine

Sequential workflow execution: steps run in order, each step's result is
merged into the context passed to the next. Integration steps go through
the IntegrationRouter; agent steps run in-engine.
"""

from .exceptions import (
    CancellationError,
    ExecutionStateError,
    StepExecutionError,
    WorkflowException,
    WorkflowValidationError,
)
from .executor import WorkflowExecutor
from .models import ExecutionStatus, Workflow, WorkflowExecution
from .store import ExecutionRepository

__all__ = [
    "CancellationError",
    "ExecutionRepository",
    "ExecutionStateError",
    "ExecutionStatus",
    "StepExecutionError",
    "Workflow",
    "WorkflowException",
    "WorkflowExecution",
    "WorkflowExecutor",
    "WorkflowValidationError",
]
