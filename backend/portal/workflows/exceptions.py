# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Exceptions

Custom exceptions for the workflow engine.
"""


class WorkflowException(Exception):
    """Base exception for workflows"""
    execution_id: str = None  # Set once an execution record exists


class WorkflowValidationError(WorkflowException):
    """Workflow validation failed"""
    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(message)


class StepExecutionError(WorkflowException):
    """Step failed; wraps the underlying cause"""
    def __init__(self, step_id: str, action: str, cause):
        self.step_id = step_id
        self.action = action
        self.cause = cause
        self.message = f"Step '{step_id}' ({action}) failed: {cause}"
        super().__init__(self.message)


class CancellationError(WorkflowException):
    """Execution was cancelled by the user"""
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        self.message = "Execution cancelled by user"
        super().__init__(self.message)


class ExecutionStateError(WorkflowException):
    """Refused execution state transition (terminal records are final)"""
    def __init__(self, execution_id: str, current: str, requested: str):
        self.execution_id = execution_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Execution {execution_id} cannot move from '{current}' to '{requested}'"
        )
